import json

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import settings
from app.core.exceptions import Forbidden, Unauthorized
from app.core.logger import logger
from app.core.redis import redis_client
from app.core.security import create_access_token, verify_password
from app.core.utils import utcnow
from app.db.models import Hospital, User
from app.schemas.auth import LoginRequest, LoginResponse, UserInfo

class AuthService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def login(self, login_data: LoginRequest) -> LoginResponse:
        email = login_data.email.strip().lower()
        result = await self.session.execute(select(User).where(User.email == email))
        user = result.scalars().first()

        if not user or not verify_password(login_data.password, user.password_hash):
            raise Unauthorized("Invalid email or password")

        if not user.is_active:
            raise Forbidden("This user account has been deactivated")

        user.last_login_at = utcnow()
        self.session.add(user)
        await self.session.commit()

        access_token = create_access_token(data={"sub": str(user.id), "role": user.role})

        token_data = {
            "user_id": str(user.id),
            "role": user.role,
        }
        await redis_client.set_token(
            access_token,
            json.dumps(token_data),
            settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
        )
        logger.info(f"User {user.email} logged in")

        hospital_name = None
        if user.hospital_id:
            hospital = await self.session.get(Hospital, user.hospital_id)
            hospital_name = hospital.name if hospital else None

        return LoginResponse(
            access_token=access_token,
            token_type="bearer",
            user=UserInfo(
                id=user.id,
                full_name=user.full_name,
                email=user.email,
                role=user.role,
                hospital_id=user.hospital_id,
                hospital_name=hospital_name
            )
        )

    async def logout(self, token: str) -> None:
        await redis_client.delete_token(token)
