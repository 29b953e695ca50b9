from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.logger import logger
from app.core.notifications import ConnectionManager
from app.core.redis import redis_client
from app.db.init_db import create_tables, ensure_superuser
from app.db.session import async_session, engine
from app.middleware.log_middleware import LogMiddleware
from app.services.sms_service import SmsSender

@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_tables(engine)
    async with async_session() as session:
        await ensure_superuser(session)
    logger.info(f"{settings.PROJECT_NAME} started")
    yield
    await redis_client.close()
    await engine.dispose()

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_PREFIX}/openapi.json",
    lifespan=lifespan
)

# Process-wide notification channels, injected into services per request
app.state.notifier = ConnectionManager()
app.state.sms_sender = SmsSender()

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(LogMiddleware)

def _format_validation_errors(exc: RequestValidationError) -> str:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else error.get("msg", "Invalid value"))
    return ", ".join(messages)

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": _format_validation_errors(exc)},
    )

@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )

@app.get("/")
async def root():
    return {"message": "Welcome to the HealthCare HMS API"}

from app.api.api import api_router
from app.api.routes import ws
app.include_router(api_router, prefix=settings.API_PREFIX)
app.include_router(ws.router)
