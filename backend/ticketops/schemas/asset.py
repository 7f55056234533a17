from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from ticketops.models.asset import AssetStatus


class AssetBase(BaseModel):
    asset_code: str = Field(..., min_length=1, max_length=100)
    asset_type: str = Field(..., min_length=1, max_length=100)
    device_type: Optional[str] = None
    serial_number: Optional[str] = None
    mac: Optional[str] = None
    ip_address: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None
    used_for: Optional[str] = None
    site_id: Optional[str] = None
    location_name: Optional[str] = None
    location_description: Optional[str] = None
    criticality: int = Field(2, ge=1, le=3)
    status: AssetStatus = AssetStatus.OPERATIONAL
    remark: Optional[str] = None
    installation_date: Optional[datetime] = None
    warranty_end_date: Optional[datetime] = None
    vms_reference_id: Optional[str] = None
    nms_reference_id: Optional[str] = None


class AssetCreate(AssetBase):
    user_name: Optional[str] = None
    password: Optional[str] = None


class AssetUpdate(BaseModel):
    asset_code: Optional[str] = None
    asset_type: Optional[str] = None
    device_type: Optional[str] = None
    serial_number: Optional[str] = None
    mac: Optional[str] = None
    ip_address: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None
    used_for: Optional[str] = None
    site_id: Optional[str] = None
    location_name: Optional[str] = None
    location_description: Optional[str] = None
    criticality: Optional[int] = Field(None, ge=1, le=3)
    status: Optional[AssetStatus] = None
    user_name: Optional[str] = None
    password: Optional[str] = None
    remark: Optional[str] = None
    installation_date: Optional[datetime] = None
    warranty_end_date: Optional[datetime] = None
    vms_reference_id: Optional[str] = None
    nms_reference_id: Optional[str] = None


class AssetStatusUpdate(BaseModel):
    status: AssetStatus
    remark: Optional[str] = None


class AssetResponse(AssetBase):
    id: str
    is_active: bool
    reserved_by_rma_id: Optional[str] = None
    # Only filled for users allowed to see device credentials
    user_name: Optional[str] = None
    password: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AssetDropdownItem(BaseModel):
    id: str
    asset_code: str
    asset_type: str
    device_type: Optional[str] = None
    location_name: Optional[str] = None

    class Config:
        from_attributes = True


class DeviceTypeCreate(BaseModel):
    asset_type: str = Field(..., min_length=1, max_length=100)
    device_type: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None


class DeviceTypeUpdate(BaseModel):
    description: Optional[str] = None
    is_active: Optional[bool] = None


class DeviceTypeResponse(BaseModel):
    id: str
    asset_type: str
    device_type: str
    description: Optional[str] = None
    is_active: bool

    class Config:
        from_attributes = True
