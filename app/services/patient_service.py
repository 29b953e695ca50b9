from datetime import date
from typing import List, Optional
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import col, select

from app.core.exceptions import Conflict, NotFound
from app.core.logger import logger
from app.core.utils import day_bounds, digits_only
from app.db.models import Appointment, Patient, User
from app.schemas.patient import PatientCreate
from app.services.access import ensure_same_hospital, require_hospital

# Shorter fragments would match a large share of the registry
MIN_PHONE_SEARCH_DIGITS = 5

class PatientService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def register_patient(self, data: PatientCreate, current_user: User) -> Patient:
        hospital_id = require_hospital(current_user)

        stmt = select(Patient).where(
            Patient.full_name == data.full_name,
            Patient.phone_number == data.phone_number,
            Patient.hospital_id == hospital_id
        )
        result = await self.session.execute(stmt)
        if result.scalars().first():
            raise Conflict("This patient is already registered with this phone number.")

        patient = Patient(
            hospital_id=hospital_id,
            full_name=data.full_name,
            phone_number=data.phone_number,
            date_of_birth=data.date_of_birth,
            sex=data.sex.value if data.sex else None,
            height=data.height,
            weight=data.weight
        )
        self.session.add(patient)
        await self.session.commit()
        await self.session.refresh(patient)
        logger.info(f"Patient {patient.id} registered in hospital {hospital_id}")
        return patient

    async def search_by_phone(self, phone_fragment: Optional[str], current_user: User) -> List[Patient]:
        hospital_id = require_hospital(current_user)
        digits = digits_only(phone_fragment or "")
        if len(digits) < MIN_PHONE_SEARCH_DIGITS:
            return []

        stmt = select(Patient).where(
            Patient.hospital_id == hospital_id,
            col(Patient.phone_number).contains(digits, autoescape=True)
        ).order_by(Patient.created_at)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def get_patients(
        self, current_user: User, search: Optional[str] = None, appointment_date: Optional[date] = None
    ) -> List[Patient]:
        hospital_id = require_hospital(current_user)
        stmt = select(Patient).where(Patient.hospital_id == hospital_id)

        if search:
            stmt = stmt.where(or_(
                col(Patient.full_name).icontains(search, autoescape=True),
                col(Patient.phone_number).icontains(search, autoescape=True)
            ))

        if appointment_date:
            start, end = day_bounds(appointment_date)
            booked = select(Appointment.patient_id).where(
                Appointment.hospital_id == hospital_id,
                Appointment.appointment_time >= start,
                Appointment.appointment_time < end
            )
            stmt = stmt.where(col(Patient.id).in_(booked))

        result = await self.session.execute(stmt.order_by(Patient.full_name))
        return result.scalars().all()

    async def get_patient(self, patient_id: UUID, current_user: User) -> Patient:
        patient = await self.session.get(Patient, patient_id)
        if not patient:
            raise NotFound("Patient not found in this hospital.")
        ensure_same_hospital(current_user, patient.hospital_id, "Patient not found in this hospital.")
        return patient
