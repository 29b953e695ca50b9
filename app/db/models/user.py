from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from uuid import UUID, uuid4

from app.core.utils import utcnow

class User(SQLModel, table=True):
    __tablename__ = "users"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    hospital_id: Optional[UUID] = Field(default=None, foreign_key="hospitals.id", index=True)
    role: str # super_admin, admin, doctor, nurse, medical_shop
    full_name: str = Field(index=True)
    email: str = Field(unique=True, index=True)
    password_hash: str
    is_active: bool = Field(default=True)
    speciality: Optional[str] = None
    last_login_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
