from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import DateTime, Text, Column, UniqueConstraint
from typing import Optional, List
from datetime import date, datetime
from uuid import UUID, uuid4

from app.core.utils import utcnow

class Visit(SQLModel, table=True):
    __tablename__ = "visits"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    appointment_id: UUID = Field(foreign_key="appointments.id", unique=True, index=True)
    subjective: Optional[str] = Field(default=None, sa_column=Column(Text))
    objective: Optional[str] = Field(default=None, sa_column=Column(Text))
    assessment: Optional[str] = Field(default=None, sa_column=Column(Text))
    plan: Optional[str] = Field(default=None, sa_column=Column(Text))
    next_visit_date: Optional[date] = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)

    notes: List["ClinicalNote"] = Relationship(
        back_populates="visit",
        sa_relationship_kwargs={
            "lazy": "selectin",
            "cascade": "all, delete-orphan",
            "order_by": "ClinicalNote.created_at",
        },
    )

class ClinicalNote(SQLModel, table=True):
    __tablename__ = "clinical_notes"
    __table_args__ = (
        UniqueConstraint("visit_id", "author_doctor_id", name="uq_note_per_author"),
    )
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    visit_id: UUID = Field(foreign_key="visits.id", index=True)
    author_doctor_id: UUID = Field(foreign_key="users.id")
    content: str = Field(sa_column=Column(Text, nullable=False))
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)

    visit: Optional[Visit] = Relationship(back_populates="notes")
