from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, Literal
from datetime import datetime

Role = Literal["student", "admin", "super_admin"]

class SignupRequest(BaseModel):
    email: str = Field(..., min_length=5, max_length=255)
    password: str = Field(..., min_length=6, max_length=255)
    display_name: str = Field(..., min_length=2, max_length=255)
    role: Role = "student"
    department: Optional[str] = None
    student_id: Optional[str] = None
    hostel_block: Optional[str] = None
    room_number: Optional[str] = None
    phone_number: Optional[str] = None

class LoginRequest(BaseModel):
    email: str
    password: str

class ProfileUpdate(BaseModel):
    display_name: Optional[str] = Field(None, min_length=2, max_length=255)
    department: Optional[str] = None
    student_id: Optional[str] = None
    hostel_block: Optional[str] = None
    room_number: Optional[str] = None
    phone_number: Optional[str] = None

class UserResponse(BaseModel):
    user_id: str
    email: str
    display_name: str
    role: Role
    department: Optional[str] = None
    student_id: Optional[str] = None
    hostel_block: Optional[str] = None
    room_number: Optional[str] = None
    phone_number: Optional[str] = None
    created_at: datetime
    last_login_at: Optional[datetime] = None
    is_active: bool

    model_config = ConfigDict(from_attributes=True)
