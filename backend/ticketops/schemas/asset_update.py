from pydantic import BaseModel
from typing import Optional, Dict, Any
from datetime import datetime

from ticketops.models.asset_update_request import AssetUpdateStatus


class AssetUpdateInitiate(BaseModel):
    asset_id: str
    rma_id: Optional[str] = None
    ticket_id: Optional[str] = None


class AssetUpdateSubmit(BaseModel):
    changes: Dict[str, Any]


class AssetUpdateReject(BaseModel):
    reason: Optional[str] = None


class AssetUpdateRequestResponse(BaseModel):
    id: str
    token: str
    rma_id: Optional[str] = None
    ticket_id: Optional[str] = None
    asset_id: str
    requested_by: str
    status: AssetUpdateStatus
    expires_at: datetime
    is_submitted: bool
    submitted_at: Optional[datetime] = None
    original_values: Dict[str, Any] = {}
    proposed_changes: Dict[str, Any] = {}
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class AssetUpdateLinkInfo(BaseModel):
    """What the engineer sees when opening an update link"""
    asset: Dict[str, Any]
    seconds_remaining: int
    expires_at: datetime
