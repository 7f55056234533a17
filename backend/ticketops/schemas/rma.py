from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime

from ticketops.models.rma import (
    RMAStatus, RepairTrackStatus, ReplacementTrackStatus, ReplacementSource,
)


class RMACreate(BaseModel):
    ticket_id: str
    request_reason: str = Field(..., min_length=1)
    replacement_source: ReplacementSource = ReplacementSource.REPAIR_ONLY
    replacement_details: Dict[str, Any] = {}


class RMAUpdate(BaseModel):
    status: Optional[RMAStatus] = None
    repair_track_status: Optional[RepairTrackStatus] = None
    replacement_track_status: Optional[ReplacementTrackStatus] = None
    installation_status: Optional[str] = None
    shipping_details: Optional[Dict[str, Any]] = None
    replacement_details: Optional[Dict[str, Any]] = None
    remarks: Optional[str] = None


class TimelineEntry(BaseModel):
    status: str
    changed_by: Optional[str] = None
    changed_on: str
    remarks: Optional[str] = None


class RMAResponse(BaseModel):
    id: str
    rma_number: str
    ticket_id: str
    site_id: Optional[str] = None
    original_asset_id: str
    original_details_snapshot: Dict[str, Any] = {}
    replacement_source: ReplacementSource
    replacement_details: Dict[str, Any] = {}
    status: RMAStatus
    repair_track_status: RepairTrackStatus
    replacement_track_status: ReplacementTrackStatus
    installation_status: str
    request_reason: str
    shipping_details: Dict[str, Any] = {}
    requested_by: str
    approved_by: Optional[str] = None
    approved_on: Optional[datetime] = None
    installed_by: Optional[str] = None
    installed_on: Optional[datetime] = None
    timeline: List[TimelineEntry] = []
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
