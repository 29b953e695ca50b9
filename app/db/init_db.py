from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession
from sqlmodel import SQLModel, select

from app.core.config import settings
from app.core.constants import UserRole
from app.core.logger import logger
from app.core.security import get_password_hash
from app.db.models import User

async def create_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

async def ensure_superuser(session: AsyncSession) -> None:
    """
    Create the platform-level super admin on a fresh database.
    Skipped unless FIRST_SUPERUSER_EMAIL and FIRST_SUPERUSER_PASSWORD are set.
    """
    if not (settings.FIRST_SUPERUSER_EMAIL and settings.FIRST_SUPERUSER_PASSWORD):
        return

    email = settings.FIRST_SUPERUSER_EMAIL.lower()
    result = await session.execute(select(User).where(User.email == email))
    if result.scalars().first():
        return

    session.add(User(
        email=email,
        full_name=settings.FIRST_SUPERUSER_NAME,
        role=UserRole.SUPER_ADMIN.value,
        password_hash=get_password_hash(settings.FIRST_SUPERUSER_PASSWORD),
    ))
    await session.commit()
    logger.info(f"Created super admin account {email}")
