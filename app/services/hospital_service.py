from typing import List
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import delete, select

from app.core.constants import UserRole
from app.core.exceptions import Conflict, NotFound
from app.core.logger import logger
from app.core.security import get_password_hash
from app.db.models import (
    Appointment, ClinicalNote, Hospital, Patient, Prescription, PrescriptionLineItem, User, Visit
)
from app.schemas.hospital import HospitalCreate
from app.services.audit_service import AuditService

class HospitalService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_hospital(self, data: HospitalCreate, current_user: User) -> Hospital:
        # 1. Uniqueness checks
        result = await self.session.execute(select(Hospital).where(Hospital.name == data.name))
        if result.scalars().first():
            raise Conflict("A hospital with this name already exists.")

        admin_email = data.admin_email.lower()
        result = await self.session.execute(select(User).where(User.email == admin_email))
        if result.scalars().first():
            raise Conflict("A user with this email already exists.")

        # 2. Create Hospital
        hospital = Hospital(name=data.name, address=data.address)
        self.session.add(hospital)
        await self.session.flush()

        # 3. Create its first Admin
        admin_user = User(
            hospital_id=hospital.id,
            role=UserRole.ADMIN.value,
            full_name=data.admin_full_name,
            email=admin_email,
            password_hash=get_password_hash(data.admin_password)
        )
        self.session.add(admin_user)
        AuditService(self.session).record(
            current_user, "hospital.created", "hospital", hospital.id,
            {"name": hospital.name, "admin_email": admin_email}, tenant_id=hospital.id
        )
        await self.session.commit()
        logger.info(f"Hospital '{hospital.name}' created with admin {admin_email}")
        return hospital

    async def get_hospitals(self) -> List[Hospital]:
        result = await self.session.execute(select(Hospital).order_by(Hospital.name))
        return result.scalars().all()

    async def delete_hospital(self, hospital_id: UUID, current_user: User) -> str:
        hospital = await self.session.get(Hospital, hospital_id)
        if not hospital:
            raise NotFound("Hospital not found")

        appointment_ids = select(Appointment.id).where(Appointment.hospital_id == hospital_id)
        visit_ids = select(Visit.id).where(Visit.appointment_id.in_(appointment_ids))
        prescription_ids = select(Prescription.id).where(Prescription.hospital_id == hospital_id)

        # Children before parents so foreign keys hold at every step
        await self.session.execute(
            delete(PrescriptionLineItem).where(PrescriptionLineItem.prescription_id.in_(prescription_ids))
        )
        await self.session.execute(delete(Prescription).where(Prescription.hospital_id == hospital_id))
        await self.session.execute(delete(ClinicalNote).where(ClinicalNote.visit_id.in_(visit_ids)))
        await self.session.execute(delete(Visit).where(Visit.appointment_id.in_(appointment_ids)))
        await self.session.execute(delete(Appointment).where(Appointment.hospital_id == hospital_id))
        await self.session.execute(delete(Patient).where(Patient.hospital_id == hospital_id))
        await self.session.execute(delete(User).where(User.hospital_id == hospital_id))
        await self.session.delete(hospital)

        AuditService(self.session).record(
            current_user, "hospital.deleted", "hospital", hospital_id,
            {"name": hospital.name}, tenant_id=hospital_id
        )
        await self.session.commit()
        logger.info(f"Hospital '{hospital.name}' deleted with all its data")
        return f"Hospital '{hospital.name}' and all its data have been deleted."
