from pydantic import BaseModel, field_validator, model_validator
from uuid import UUID
from datetime import date, datetime
from typing import Optional, List

from app.core.constants import PrescriptionType
from app.schemas.prescription import LineItemIn, PrescriptionResponse

class AppointmentCreate(BaseModel):
    patient_id: UUID
    doctor_id: UUID
    appointment_time: datetime
    visit_purpose: Optional[str] = None

class VisitDetails(BaseModel):
    subjective: Optional[str] = None
    objective: Optional[str] = None
    assessment: Optional[str] = None
    plan: Optional[str] = None
    # Omitted keeps the stored date, null or "" clears it
    next_visit_date: Optional[date] = None
    private_note: Optional[str] = None

    @field_validator("next_visit_date", mode="before")
    @classmethod
    def blank_date_is_none(cls, value):
        return value or None

class PrescriptionDetails(BaseModel):
    type: PrescriptionType = PrescriptionType.DIGITAL
    line_items: List[LineItemIn] = []
    prescription_image: Optional[str] = None

    @model_validator(mode="after")
    def image_for_handwritten(self):
        if self.type == PrescriptionType.HANDWRITTEN and not self.prescription_image:
            raise ValueError("A handwritten prescription requires prescription_image")
        return self

class VisitComplete(BaseModel):
    visit_details: Optional[VisitDetails] = None
    prescription_details: Optional[PrescriptionDetails] = None

class ClinicalNoteResponse(BaseModel):
    author_doctor_id: UUID
    content: str
    created_at: datetime

    class Config:
        from_attributes = True

class VisitResponse(BaseModel):
    id: UUID
    appointment_id: UUID
    subjective: Optional[str] = None
    objective: Optional[str] = None
    assessment: Optional[str] = None
    plan: Optional[str] = None
    next_visit_date: Optional[date] = None
    notes: List[ClinicalNoteResponse] = []
    prescription: Optional[PrescriptionResponse] = None
    is_editable: bool = True
    created_at: datetime
    updated_at: datetime

class AppointmentResponse(BaseModel):
    id: UUID
    hospital_id: UUID
    patient_id: UUID
    doctor_id: UUID
    created_by_id: UUID
    appointment_time: datetime
    status: str
    visit_purpose: Optional[str] = None
    visit_id: Optional[UUID] = None
    created_at: datetime
    patient_name: Optional[str] = None
    patient_sex: Optional[str] = None
    patient_date_of_birth: Optional[date] = None
    doctor_name: Optional[str] = None
    visit: Optional[VisitResponse] = None

class VisitSavedResponse(BaseModel):
    msg: str
    visit_id: UUID
    prescription_id: Optional[UUID] = None
    prescription_updated: bool = False
