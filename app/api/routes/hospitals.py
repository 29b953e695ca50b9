from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
from uuid import UUID

from app.api.deps import require_roles
from app.core.constants import UserRole
from app.db.models import User
from app.db.session import get_session
from app.schemas.hospital import HospitalCreate, HospitalResponse
from app.schemas.user import MessageResponse
from app.services.hospital_service import HospitalService

router = APIRouter()

@router.post("", response_model=HospitalResponse, status_code=status.HTTP_201_CREATED)
async def create_hospital(
    hospital_data: HospitalCreate,
    current_user: User = Depends(require_roles(UserRole.SUPER_ADMIN)),
    session: AsyncSession = Depends(get_session)
):
    service = HospitalService(session)
    return await service.create_hospital(hospital_data, current_user)

@router.get("", response_model=List[HospitalResponse])
async def read_hospitals(
    current_user: User = Depends(require_roles(UserRole.SUPER_ADMIN, UserRole.ADMIN)),
    session: AsyncSession = Depends(get_session)
):
    service = HospitalService(session)
    return await service.get_hospitals()

@router.delete("/{hospital_id}", response_model=MessageResponse)
async def delete_hospital(
    hospital_id: UUID,
    current_user: User = Depends(require_roles(UserRole.SUPER_ADMIN)),
    session: AsyncSession = Depends(get_session)
):
    service = HospitalService(session)
    return MessageResponse(msg=await service.delete_hospital(hospital_id, current_user))
