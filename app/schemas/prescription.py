from pydantic import BaseModel, Field, model_validator
from typing import Optional, List
from uuid import UUID
from datetime import datetime

from app.core.constants import DispenseLineStatus

class LineItemIn(BaseModel):
    medicine_name: str = Field(min_length=1)
    dose: Optional[str] = None
    frequency: Optional[str] = None
    duration_days: Optional[int] = Field(default=None, ge=0)
    instructions: Optional[str] = None

class DispenseLineItem(LineItemIn):
    status: DispenseLineStatus = DispenseLineStatus.GIVEN

class DispenseUpdate(BaseModel):
    line_item_id: UUID
    status: DispenseLineStatus
    substitution_info: Optional[str] = None

class DispenseRequest(BaseModel):
    """
    One of three pharmacy actions, checked in this order:
    ``line_items`` replaces every item (digitizing a handwritten prescription),
    ``updates`` changes individual items, ``status`` overrides the overall status.
    """
    status: Optional[str] = None
    line_items: Optional[List[DispenseLineItem]] = None
    updates: Optional[List[DispenseUpdate]] = None

    @model_validator(mode="after")
    def require_action(self):
        if not self.line_items and self.updates is None and not self.status:
            raise ValueError("Provide line_items, updates or status")
        return self

class LineItemResponse(BaseModel):
    id: UUID
    medicine_name: str
    dose: Optional[str] = None
    frequency: Optional[str] = None
    duration_days: Optional[int] = None
    instructions: Optional[str] = None
    status: str
    substitution_info: Optional[str] = None

    class Config:
        from_attributes = True

class PrescriptionResponse(BaseModel):
    id: UUID
    status: str
    public_view_token: str
    visit_id: UUID
    patient_id: UUID
    doctor_id: UUID
    hospital_id: UUID
    prescription_type: str
    prescription_image: Optional[str] = None
    line_items: List[LineItemResponse] = []
    created_at: datetime
    updated_at: datetime
    is_editable: bool = False
    patient_name: Optional[str] = None
    doctor_name: Optional[str] = None

    class Config:
        from_attributes = True

class PharmacyStats(BaseModel):
    new_prescriptions: int
    in_progress: int
    completed_today: int
    total_pending: int

class PublicLineItem(BaseModel):
    medicine_name: str
    dose: Optional[str] = None
    frequency: Optional[str] = None
    duration_days: Optional[int] = None
    instructions: Optional[str] = None
    status: str

    class Config:
        from_attributes = True

class PublicPrescriptionView(BaseModel):
    patient_name: str
    doctor_name: str
    hospital_name: str
    status: str
    created_at: datetime
    prescription_type: str
    prescription_image: Optional[str] = None
    line_items: List[PublicLineItem]
