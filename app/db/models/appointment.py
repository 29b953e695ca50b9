from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from uuid import UUID, uuid4

from app.core.constants import AppointmentStatus
from app.core.utils import utcnow

class Appointment(SQLModel, table=True):
    __tablename__ = "appointments"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    hospital_id: UUID = Field(foreign_key="hospitals.id", index=True)
    patient_id: UUID = Field(foreign_key="patients.id", index=True)
    doctor_id: UUID = Field(foreign_key="users.id", index=True)
    created_by_id: UUID = Field(foreign_key="users.id")
    appointment_time: datetime = Field(sa_type=DateTime, index=True)
    status: str = Field(default=AppointmentStatus.SCHEDULED.value)
    visit_purpose: Optional[str] = None
    # Set by start_consultation, never cleared
    visit_id: Optional[UUID] = Field(default=None, index=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
