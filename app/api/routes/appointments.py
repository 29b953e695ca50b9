from datetime import date
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from uuid import UUID

from app.api.deps import get_notifier, get_sms_sender, require_roles
from app.core.constants import Sex, UserRole
from app.core.notifications import NotificationSink
from app.db.models import User
from app.db.session import get_session
from app.schemas.appointment import (
    AppointmentCreate,
    AppointmentResponse,
    VisitComplete,
    VisitSavedResponse
)
from app.services.appointment_service import AppointmentService
from app.services.sms_service import SmsSender

router = APIRouter()

hospital_staff = require_roles(UserRole.ADMIN, UserRole.DOCTOR, UserRole.NURSE)

async def get_appointment_service(
    session: AsyncSession = Depends(get_session),
    notifier: NotificationSink = Depends(get_notifier),
    sms_sender: SmsSender = Depends(get_sms_sender)
) -> AppointmentService:
    return AppointmentService(session, notifier, sms_sender)

@router.post("", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    request: AppointmentCreate,
    current_user: User = Depends(hospital_staff),
    service: AppointmentService = Depends(get_appointment_service)
):
    return await service.create_appointment(request, current_user)

@router.get("", response_model=List[AppointmentResponse])
async def read_appointments(
    appointment_date: Optional[date] = None,
    doctor_id: Optional[UUID] = None,
    patient_id: Optional[UUID] = None,
    current_user: User = Depends(hospital_staff),
    service: AppointmentService = Depends(get_appointment_service)
):
    return await service.get_appointments(
        current_user, appointment_date=appointment_date, doctor_id=doctor_id, patient_id=patient_id
    )

@router.get("/all", response_model=List[AppointmentResponse])
async def read_all_appointments(
    appointment_date: Optional[date] = None,
    doctor_id: Optional[UUID] = None,
    patient_gender: Optional[Sex] = None,
    current_user: User = Depends(require_roles(UserRole.NURSE)),
    service: AppointmentService = Depends(get_appointment_service)
):
    return await service.get_appointments(
        current_user,
        appointment_date=appointment_date,
        doctor_id=doctor_id,
        patient_gender=patient_gender,
        newest_first=True
    )

@router.put("/{appointment_id}/status/start", response_model=AppointmentResponse)
async def start_consultation(
    appointment_id: UUID,
    current_user: User = Depends(require_roles(UserRole.DOCTOR)),
    service: AppointmentService = Depends(get_appointment_service)
):
    return await service.start_consultation(appointment_id, current_user)

@router.put("/{appointment_id}/status/complete", response_model=VisitSavedResponse)
async def complete_consultation(
    appointment_id: UUID,
    payload: VisitComplete,
    current_user: User = Depends(require_roles(UserRole.DOCTOR)),
    service: AppointmentService = Depends(get_appointment_service)
):
    return await service.complete_consultation(appointment_id, payload, current_user)

@router.put("/{appointment_id}/status/cancel", response_model=AppointmentResponse)
async def cancel_appointment(
    appointment_id: UUID,
    current_user: User = Depends(require_roles(UserRole.DOCTOR, UserRole.NURSE)),
    service: AppointmentService = Depends(get_appointment_service)
):
    return await service.cancel_appointment(appointment_id, current_user)

@router.put("/{appointment_id}/status/no-show", response_model=AppointmentResponse)
async def mark_no_show(
    appointment_id: UUID,
    current_user: User = Depends(require_roles(UserRole.DOCTOR, UserRole.NURSE)),
    service: AppointmentService = Depends(get_appointment_service)
):
    return await service.mark_no_show(appointment_id, current_user)
