from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from uuid import UUID
from datetime import datetime

from app.core.constants import UserRole

class UserBase(BaseModel):
    full_name: str = Field(min_length=1)
    email: EmailStr
    speciality: Optional[str] = None

class UserCreate(UserBase):
    password: str = Field(min_length=6)
    role: UserRole

class UserStatusUpdate(BaseModel):
    is_active: bool

class UserResponse(BaseModel):
    id: UUID
    hospital_id: Optional[UUID]
    role: str
    full_name: str
    email: str
    speciality: Optional[str] = None
    is_active: bool
    last_login_at: Optional[datetime] = None
    created_at: datetime
    hospital_name: Optional[str] = None # Helper field for /users/me

    class Config:
        from_attributes = True

class MessageResponse(BaseModel):
    msg: str
