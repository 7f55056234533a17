from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime

from ticketops.models.asset import AssetStatus
from ticketops.models.stock import (
    TransferStatus, RequisitionType, RequisitionStatus, MovementType,
)


class StockItemCreate(BaseModel):
    asset_code: str = Field(..., min_length=1, max_length=100)
    serial_number: Optional[str] = None
    mac: Optional[str] = None
    remark: Optional[str] = None


class StockAdd(BaseModel):
    site_id: str
    asset_type: str = Field(..., min_length=1)
    device_type: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None
    items: List[StockItemCreate] = Field(..., min_length=1)


class StockItemUpdate(BaseModel):
    serial_number: Optional[str] = None
    mac: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None
    device_type: Optional[str] = None
    remark: Optional[str] = None
    status: Optional[AssetStatus] = None


class InventoryGroup(BaseModel):
    site_id: Optional[str] = None
    site_name: Optional[str] = None
    asset_type: str
    count: int


class TransferCreate(BaseModel):
    source_site_id: str
    destination_site_id: str
    asset_ids: List[str] = Field(..., min_length=1)
    notes: Optional[str] = None


class DispatchRequest(BaseModel):
    shipping_details: Dict[str, Any] = {}


class TransferResponse(BaseModel):
    id: str
    transfer_number: str
    source_site_id: str
    destination_site_id: str
    asset_ids: List[str]
    status: TransferStatus
    notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    shipping_details: Dict[str, Any] = {}
    initiated_by: str
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    dispatched_by: Optional[str] = None
    dispatched_at: Optional[datetime] = None
    received_by: Optional[str] = None
    received_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class RequisitionCreate(BaseModel):
    requisition_type: RequisitionType = RequisitionType.STOCK_REQUEST
    requesting_site_id: str
    source_site_id: Optional[str] = None
    ticket_id: Optional[str] = None
    rma_id: Optional[str] = None
    asset_type: str = Field(..., min_length=1)
    device_type: Optional[str] = None
    quantity: int = Field(1, ge=1)
    reason: Optional[str] = None


class FulfillRequest(BaseModel):
    asset_ids: List[str] = Field(..., min_length=1)


class RequisitionResponse(BaseModel):
    id: str
    requisition_number: str
    requisition_type: RequisitionType
    requesting_site_id: str
    source_site_id: Optional[str] = None
    ticket_id: Optional[str] = None
    rma_id: Optional[str] = None
    asset_type: str
    device_type: Optional[str] = None
    quantity: int
    reason: Optional[str] = None
    status: RequisitionStatus
    fulfilled_asset_ids: List[str] = []
    rejection_reason: Optional[str] = None
    requested_by: str
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    fulfilled_by: Optional[str] = None
    fulfilled_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class MovementLogResponse(BaseModel):
    id: str
    asset_id: str
    movement_type: MovementType
    from_site_id: Optional[str] = None
    to_site_id: Optional[str] = None
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    notes: Optional[str] = None
    performed_by: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
