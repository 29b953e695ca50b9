from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from uuid import UUID
from datetime import datetime

class HospitalBase(BaseModel):
    name: str = Field(min_length=1)
    address: Optional[str] = None

class HospitalCreate(HospitalBase):
    admin_email: EmailStr
    admin_full_name: str = Field(min_length=1)
    admin_password: str = Field(min_length=6)

class HospitalResponse(HospitalBase):
    id: UUID
    created_at: datetime

    class Config:
        from_attributes = True
