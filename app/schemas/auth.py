from pydantic import BaseModel
from typing import Optional
from uuid import UUID

class LoginRequest(BaseModel):
    email: str
    password: str

class UserInfo(BaseModel):
    id: UUID
    full_name: str
    email: str
    role: str
    hospital_id: Optional[UUID] = None
    hospital_name: Optional[str] = None

class LoginResponse(BaseModel):
    access_token: str
    token_type: str
    user: UserInfo
