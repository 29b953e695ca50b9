from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from uuid import UUID

from app.api.deps import get_current_user, require_roles
from app.core.constants import UserRole
from app.db.models import User
from app.db.session import get_session
from app.schemas.user import MessageResponse, UserCreate, UserResponse, UserStatusUpdate
from app.services.user_service import UserService

router = APIRouter()

async def get_user_service(session: AsyncSession = Depends(get_session)) -> UserService:
    return UserService(session)

@router.get("/me", response_model=UserResponse)
async def read_me(
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service)
):
    return await service.get_me(current_user)

@router.get("/my-staff", response_model=List[UserResponse])
async def read_my_staff(
    role: Optional[UserRole] = None,
    current_user: User = Depends(require_roles(UserRole.DOCTOR)),
    service: UserService = Depends(get_user_service)
):
    return await service.get_my_staff(current_user, role)

@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    current_user: User = Depends(require_roles(UserRole.ADMIN, UserRole.DOCTOR)),
    service: UserService = Depends(get_user_service)
):
    return await service.create_user(user_data, current_user)

@router.get("", response_model=List[UserResponse])
async def read_users(
    role: Optional[UserRole] = None,
    is_active: Optional[bool] = None,
    current_user: User = Depends(require_roles(UserRole.ADMIN, UserRole.NURSE)),
    service: UserService = Depends(get_user_service)
):
    return await service.get_users(current_user, role, is_active)

@router.put("/{user_id}", response_model=UserResponse)
async def update_user_status(
    user_id: UUID,
    payload: UserStatusUpdate,
    current_user: User = Depends(require_roles(UserRole.ADMIN, UserRole.DOCTOR)),
    service: UserService = Depends(get_user_service)
):
    return await service.update_status(user_id, payload.is_active, current_user)

@router.post("/{user_id}/reset-password", response_model=MessageResponse)
async def reset_user_password(
    user_id: UUID,
    current_user: User = Depends(require_roles(UserRole.ADMIN, UserRole.DOCTOR)),
    service: UserService = Depends(get_user_service)
):
    return MessageResponse(msg=await service.reset_password(user_id, current_user))
