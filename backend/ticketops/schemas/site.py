from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class SiteBase(BaseModel):
    site_name: str = Field(..., min_length=1, max_length=255)
    site_code: str = Field(..., min_length=1, max_length=50)
    city: Optional[str] = None
    zone: Optional[str] = None
    ward: Optional[str] = None
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    contact_person: Optional[str] = None
    contact_phone: Optional[str] = None
    is_head_office: bool = False


class SiteCreate(SiteBase):
    pass


class SiteUpdate(BaseModel):
    site_name: Optional[str] = None
    site_code: Optional[str] = None
    city: Optional[str] = None
    zone: Optional[str] = None
    ward: Optional[str] = None
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    contact_person: Optional[str] = None
    contact_phone: Optional[str] = None
    is_head_office: Optional[bool] = None
    is_active: Optional[bool] = None


class SiteResponse(SiteBase):
    id: str
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class SiteDropdownItem(BaseModel):
    id: str
    site_name: str
    site_code: str
    city: Optional[str] = None

    class Config:
        from_attributes = True
