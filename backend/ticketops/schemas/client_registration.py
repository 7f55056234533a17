from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime

from ticketops.models.client_registration import RegistrationStatus


class RegistrationSubmit(BaseModel):
    # Required fields are checked in the service so the error message lists them
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    designation: Optional[str] = None
    site_name: Optional[str] = None
    message: Optional[str] = None


class RegistrationReject(BaseModel):
    reason: Optional[str] = None


class RegistrationResponse(BaseModel):
    id: str
    full_name: str
    email: str
    phone: str
    designation: Optional[str] = None
    site_name: str
    message: Optional[str] = None
    status: RegistrationStatus
    rejection_reason: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    user_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ApprovalResult(BaseModel):
    registration: RegistrationResponse
    user_id: str
    username: str
    # Returned once so the admin can pass it on if e-mail is down
    temp_password: str
    email_sent: bool


class ClientCreate(BaseModel):
    full_name: str = Field(..., min_length=1)
    email: EmailStr
    mobile_number: Optional[str] = None
    designation: Optional[str] = None
    site_id: Optional[str] = None
    username: Optional[str] = None


class ClientUpdate(BaseModel):
    full_name: Optional[str] = None
    email: Optional[EmailStr] = None
    mobile_number: Optional[str] = None
    designation: Optional[str] = None
    site_id: Optional[str] = None
    is_active: Optional[bool] = None


class ClientCredentials(BaseModel):
    user_id: str
    username: str
    temp_password: str
    email_sent: bool
