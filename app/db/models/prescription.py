from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import DateTime, Text, Column
from typing import Optional, List
from datetime import datetime
from uuid import UUID, uuid4

from app.core.constants import DispenseLineStatus, PrescriptionStatus, PrescriptionType
from app.core.utils import generate_view_token, utcnow

class Prescription(SQLModel, table=True):
    __tablename__ = "prescriptions"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    hospital_id: UUID = Field(foreign_key="hospitals.id", index=True)
    visit_id: UUID = Field(foreign_key="visits.id", unique=True, index=True)
    patient_id: UUID = Field(foreign_key="patients.id", index=True)
    doctor_id: UUID = Field(foreign_key="users.id", index=True)
    status: str = Field(default=PrescriptionStatus.CREATED.value, index=True)
    # Capability for the unauthenticated patient view; assigned once
    public_view_token: str = Field(default_factory=generate_view_token, unique=True, index=True)
    prescription_type: str = Field(default=PrescriptionType.DIGITAL.value)
    prescription_image: Optional[str] = Field(default=None, sa_column=Column(Text))
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)

    line_items: List["PrescriptionLineItem"] = Relationship(
        back_populates="prescription",
        sa_relationship_kwargs={
            "lazy": "selectin",
            "cascade": "all, delete-orphan",
            "order_by": "PrescriptionLineItem.position",
        },
    )

class PrescriptionLineItem(SQLModel, table=True):
    __tablename__ = "prescription_line_items"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    prescription_id: UUID = Field(foreign_key="prescriptions.id", index=True)
    position: int = Field(default=0)
    medicine_name: str
    dose: Optional[str] = None
    frequency: Optional[str] = None
    duration_days: Optional[int] = None
    instructions: Optional[str] = None
    status: str = Field(default=DispenseLineStatus.NOT_GIVEN.value)
    substitution_info: Optional[str] = None

    prescription: Optional[Prescription] = Relationship(back_populates="line_items")
