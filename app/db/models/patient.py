from sqlmodel import SQLModel, Field
from sqlalchemy import DateTime, UniqueConstraint
from typing import Optional
from datetime import date, datetime
from uuid import UUID, uuid4

from app.core.utils import utcnow

class Patient(SQLModel, table=True):
    __tablename__ = "patients"
    __table_args__ = (
        UniqueConstraint("full_name", "phone_number", "hospital_id", name="uq_patient_identity"),
    )
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    hospital_id: UUID = Field(foreign_key="hospitals.id", index=True)
    full_name: str = Field(index=True)
    phone_number: str = Field(index=True)
    date_of_birth: Optional[date] = None
    sex: Optional[str] = None # Male, Female, Other
    height: Optional[str] = None
    weight: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
