from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.constants import ROLE_CREATION_MATRIX, UserRole
from app.core.exceptions import Conflict, Forbidden, NotFound, ValidationError
from app.core.logger import logger
from app.core.security import get_password_hash
from app.db.models import Hospital, User
from app.schemas.user import UserCreate, UserResponse
from app.services.access import ensure_same_hospital, require_hospital

# Roles a doctor may view and manage
DOCTOR_MANAGED_ROLES = {UserRole.NURSE.value, UserRole.MEDICAL_SHOP.value}

class UserService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_me(self, current_user: User) -> UserResponse:
        response = UserResponse.model_validate(current_user)
        if current_user.hospital_id:
            hospital = await self.session.get(Hospital, current_user.hospital_id)
            response.hospital_name = hospital.name if hospital else None
        return response

    async def create_user(self, data: UserCreate, current_user: User) -> User:
        allowed = ROLE_CREATION_MATRIX.get(UserRole(current_user.role))
        if not allowed:
            raise Forbidden("You are not authorized to create new users.")
        if data.role not in allowed:
            raise Forbidden(
                f"Your role ({current_user.role}) is not permitted to create a user with the role '{data.role.value}'."
            )
        hospital_id = require_hospital(current_user)

        email = data.email.lower()
        result = await self.session.execute(select(User).where(User.email == email))
        if result.scalars().first():
            raise Conflict("A user with this email already exists.")

        user = User(
            hospital_id=hospital_id,
            role=data.role.value,
            full_name=data.full_name,
            email=email,
            speciality=data.speciality,
            password_hash=get_password_hash(data.password)
        )
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user)
        logger.info(f"User {email} ({user.role}) created by {current_user.email}")
        return user

    async def get_users(
        self, current_user: User, role: Optional[UserRole] = None, is_active: Optional[bool] = None
    ) -> List[User]:
        hospital_id = require_hospital(current_user)
        query = select(User).where(User.hospital_id == hospital_id)
        if role:
            query = query.where(User.role == role.value)
        if is_active is not None:
            query = query.where(User.is_active == is_active)
        result = await self.session.execute(query.order_by(User.full_name))
        return result.scalars().all()

    async def get_my_staff(self, current_user: User, role: Optional[UserRole]) -> List[User]:
        if role is None or role.value not in DOCTOR_MANAGED_ROLES:
            raise ValidationError("Doctors can only view Nurses or Medical Shops.")
        return await self.get_users(current_user, role=role)

    async def _get_managed_user(self, user_id: UUID, current_user: User, action: str) -> User:
        user = await self.session.get(User, user_id)
        if not user:
            raise NotFound("User not found")
        ensure_same_hospital(current_user, user.hospital_id, "User not found")
        if current_user.role == UserRole.DOCTOR.value and user.role not in DOCTOR_MANAGED_ROLES:
            raise Forbidden(f"Doctors can only {action} Nurses or Medical Shops.")
        return user

    async def update_status(self, user_id: UUID, is_active: bool, current_user: User) -> User:
        user = await self._get_managed_user(user_id, current_user, "manage")
        user.is_active = is_active
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user)
        logger.info(f"User {user.email} {'activated' if is_active else 'deactivated'} by {current_user.email}")
        return user

    async def reset_password(self, user_id: UUID, current_user: User) -> str:
        user = await self._get_managed_user(user_id, current_user, "reset passwords for")
        # Delivery of the reset link is handled outside this service
        logger.info(f"Password reset initiated for {user.email} by {current_user.email}")
        return f"Password reset initiated for user {user.email}"
