from typing import Callable
from uuid import UUID

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from jwt.exceptions import PyJWTError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.constants import UserRole
from app.core.exceptions import Forbidden, Unauthorized
from app.core.notifications import NotificationSink
from app.core.redis import redis_client
from app.core.security import decode_access_token
from app.db.models import User
from app.db.session import get_session
from app.services.sms_service import SmsSender

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_PREFIX}/login")

async def authenticate_token(token: str, session: AsyncSession) -> User:
    """
    Resolve a bearer token to an active user.
    Shared by the HTTP dependency below and the WebSocket endpoint.
    """
    try:
        payload = decode_access_token(token)
        user_id = payload.get("sub")
        if user_id is None:
            raise Unauthorized()
        user_uuid = UUID(user_id)
    except (PyJWTError, ValueError):
        raise Unauthorized()

    # Revoked (logged out) tokens are no longer registered
    if await redis_client.get_token(token) is None:
        raise Unauthorized()

    user = await session.get(User, user_uuid)
    if user is None:
        raise Unauthorized()
    if not user.is_active:
        raise Forbidden("This user account has been deactivated")
    return user

async def get_current_user(
    token: str = Depends(oauth2_scheme),
    session: AsyncSession = Depends(get_session)
) -> User:
    return await authenticate_token(token, session)

def require_roles(*roles: UserRole) -> Callable:
    allowed = {role.value for role in roles}

    async def role_gate(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            raise Forbidden(f"Role '{current_user.role}' is not permitted to perform this action")
        return current_user

    return role_gate

def get_notifier(request: Request) -> NotificationSink:
    return request.app.state.notifier

def get_sms_sender(request: Request) -> SmsSender:
    return request.app.state.sms_sender
