from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime

from ticketops.models.user import UserRole


class UserLogin(BaseModel):
    # Username or e-mail
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class UserResponse(BaseModel):
    id: str
    email: str
    username: str
    full_name: str
    role: UserRole
    is_active: bool
    mobile_number: Optional[str] = None
    designation: Optional[str] = None
    site_id: Optional[str] = None
    assigned_sites: List[str] = []
    preferences: Dict[str, Any] = {}
    last_login: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=6)


class PreferencesUpdate(BaseModel):
    preferences: Dict[str, Any]
