from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List

from ticketops.models.user import UserRole


class UserCreate(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    username: str = Field(..., min_length=3, max_length=100)
    password: str = Field(..., min_length=6)
    role: UserRole = UserRole.L1_ENGINEER
    mobile_number: Optional[str] = None
    designation: Optional[str] = None
    site_id: Optional[str] = None
    assigned_sites: List[str] = []


class UserUpdate(BaseModel):
    full_name: Optional[str] = None
    email: Optional[EmailStr] = None
    username: Optional[str] = Field(None, min_length=3, max_length=100)
    role: Optional[UserRole] = None
    mobile_number: Optional[str] = None
    designation: Optional[str] = None
    site_id: Optional[str] = None
    assigned_sites: Optional[List[str]] = None
    is_active: Optional[bool] = None


class AdminPasswordReset(BaseModel):
    # Generated when omitted
    new_password: Optional[str] = Field(None, min_length=6)


class UserDropdownItem(BaseModel):
    id: str
    full_name: str
    role: UserRole
    mobile_number: Optional[str] = None
    email: Optional[str] = None

    class Config:
        from_attributes = True
