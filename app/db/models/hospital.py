from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from uuid import UUID, uuid4

from app.core.utils import utcnow

class Hospital(SQLModel, table=True):
    __tablename__ = "hospitals"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str = Field(unique=True, index=True)
    address: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
