# villa_booking/schemas/user.py
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field

from villa_booking.db.enums import Role


class UserBase(BaseModel):
    id: int
    full_name: str
    email: EmailStr
    phone: Optional[str] = None
    role: str

    # Pydantic v2 style (replaces orm_mode = True)
    model_config = {"from_attributes": True}


class UserOut(UserBase):
    """
    Public-facing user data (token payloads, booking guest/owner).
    """
    pass


class UserProfile(UserBase):
    date_of_birth: Optional[date] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class UserCreate(BaseModel):
    full_name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=6, max_length=100)


class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class UserProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None


class PasswordChange(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=6, max_length=100)


class UserRoleUpdate(BaseModel):
    """
    Admin role change:
      body: { "role": "GUEST" | "HOST" | "ADMIN" }
    """
    role: Role


class ProfileCompleteness(BaseModel):
    is_complete: bool
    missing_fields: List[str]
