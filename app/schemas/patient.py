from pydantic import BaseModel, Field, field_validator
from typing import Optional
from uuid import UUID
from datetime import date, datetime

from app.core.constants import Sex

class PatientCreate(BaseModel):
    full_name: str = Field(min_length=1)
    phone_number: str = Field(min_length=1)
    date_of_birth: Optional[date] = None
    sex: Optional[Sex] = None
    height: Optional[str] = None
    weight: Optional[str] = None

    @field_validator("full_name", "phone_number")
    @classmethod
    def strip_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("height", "weight", mode="before")
    @classmethod
    def measurement_as_text(cls, value):
        # The registration form sends numbers; stored as free text
        if isinstance(value, (int, float)):
            return str(value)
        return value

    @field_validator("date_of_birth", mode="before")
    @classmethod
    def blank_date_is_none(cls, value):
        return value or None

class PatientResponse(BaseModel):
    id: UUID
    hospital_id: UUID
    full_name: str
    phone_number: str
    date_of_birth: Optional[date] = None
    sex: Optional[str] = None
    height: Optional[str] = None
    weight: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
