from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
from uuid import UUID

from app.api.deps import get_current_user, get_notifier, require_roles
from app.core.constants import UserRole
from app.core.notifications import NotificationSink
from app.db.models import User
from app.db.session import get_session
from app.schemas.prescription import (
    DispenseRequest,
    PharmacyStats,
    PrescriptionResponse,
    PublicPrescriptionView
)
from app.services.prescription_service import PrescriptionService

router = APIRouter()

async def get_prescription_service(
    session: AsyncSession = Depends(get_session),
    notifier: NotificationSink = Depends(get_notifier)
) -> PrescriptionService:
    return PrescriptionService(session, notifier)

# Public: the token itself is the capability
@router.get("/view/{token}", response_model=PublicPrescriptionView)
async def read_public_prescription(
    token: str,
    service: PrescriptionService = Depends(get_prescription_service)
):
    return await service.get_public_view(token)

@router.get("/queue", response_model=List[PrescriptionResponse])
async def read_pharmacy_queue(
    current_user: User = Depends(require_roles(UserRole.MEDICAL_SHOP, UserRole.ADMIN)),
    service: PrescriptionService = Depends(get_prescription_service)
):
    return await service.get_queue(current_user)

@router.get("/stats", response_model=PharmacyStats)
async def read_pharmacy_stats(
    current_user: User = Depends(require_roles(UserRole.MEDICAL_SHOP)),
    service: PrescriptionService = Depends(get_prescription_service)
):
    return await service.get_stats(current_user)

@router.get("/{prescription_id}", response_model=PrescriptionResponse)
async def read_prescription(
    prescription_id: UUID,
    current_user: User = Depends(get_current_user),
    service: PrescriptionService = Depends(get_prescription_service)
):
    return await service.get_detail(prescription_id, current_user)

@router.put("/{prescription_id}/dispense", response_model=PrescriptionResponse)
@router.put("/{prescription_id}", response_model=PrescriptionResponse, include_in_schema=False)
async def dispense_prescription(
    prescription_id: UUID,
    payload: DispenseRequest,
    current_user: User = Depends(require_roles(UserRole.MEDICAL_SHOP)),
    service: PrescriptionService = Depends(get_prescription_service)
):
    return await service.dispense(prescription_id, payload, current_user)
