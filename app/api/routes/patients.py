from datetime import date
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from uuid import UUID

from app.api.deps import require_roles
from app.core.constants import UserRole
from app.db.models import User
from app.db.session import get_session
from app.schemas.appointment import AppointmentResponse
from app.schemas.patient import PatientCreate, PatientResponse
from app.services.appointment_service import AppointmentService
from app.services.patient_service import PatientService
from app.services.report_service import ReportService, content_disposition, report_filename

router = APIRouter()

hospital_staff = require_roles(UserRole.ADMIN, UserRole.DOCTOR, UserRole.NURSE)

async def get_patient_service(session: AsyncSession = Depends(get_session)) -> PatientService:
    return PatientService(session)

@router.post("", response_model=PatientResponse, status_code=status.HTTP_201_CREATED)
async def register_patient(
    payload: PatientCreate,
    current_user: User = Depends(hospital_staff),
    service: PatientService = Depends(get_patient_service)
):
    return await service.register_patient(payload, current_user)

@router.get("", response_model=List[PatientResponse])
async def read_patients(
    search: Optional[str] = None,
    appointment_date: Optional[date] = None,
    current_user: User = Depends(hospital_staff),
    service: PatientService = Depends(get_patient_service)
):
    return await service.get_patients(current_user, search, appointment_date)

@router.get("/search", response_model=List[PatientResponse])
async def search_patients_by_phone(
    phone_number: Optional[str] = None,
    current_user: User = Depends(hospital_staff),
    service: PatientService = Depends(get_patient_service)
):
    return await service.search_by_phone(phone_number, current_user)

@router.get("/{patient_id}/appointment-history", response_model=List[AppointmentResponse])
async def read_appointment_history(
    patient_id: UUID,
    current_user: User = Depends(hospital_staff),
    service: PatientService = Depends(get_patient_service)
):
    patient = await service.get_patient(patient_id, current_user)
    return await AppointmentService(service.session).get_completed_history(patient, current_user)

@router.get("/{patient_id}/report")
async def download_patient_report(
    patient_id: UUID,
    current_user: User = Depends(require_roles(UserRole.DOCTOR, UserRole.NURSE)),
    service: PatientService = Depends(get_patient_service)
):
    patient = await service.get_patient(patient_id, current_user)
    pdf = await ReportService(service.session).build_patient_report(patient, current_user)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": content_disposition(report_filename(patient))}
    )
