from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import datetime

from ticketops.models.ticket import (
    TicketStatus, TicketPriority, TicketCategory, TicketSource, ActivityType,
)


class TicketCreate(BaseModel):
    asset_id: Optional[str] = None
    site_id: Optional[str] = None
    category: TicketCategory
    sub_category: Optional[str] = None
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    impact: int = Field(3, ge=1, le=5)
    urgency: int = Field(3, ge=1, le=5)
    # Computed from impact/urgency/criticality when omitted
    priority: Optional[TicketPriority] = None
    source: TicketSource = TicketSource.MANUAL
    source_reference: Optional[str] = None
    assigned_to: Optional[str] = None
    tags: List[str] = []


class TicketUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[TicketCategory] = None
    sub_category: Optional[str] = None
    impact: Optional[int] = Field(None, ge=1, le=5)
    urgency: Optional[int] = Field(None, ge=1, le=5)
    priority: Optional[TicketPriority] = None
    tags: Optional[List[str]] = None


class AssignRequest(BaseModel):
    assigned_to: str
    remarks: Optional[str] = None


class RemarksRequest(BaseModel):
    remarks: Optional[str] = None


class HoldRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class ResolveRequest(BaseModel):
    root_cause: Optional[str] = None
    resolution_summary: str = Field(..., min_length=1)


class ReasonRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class ActivityCreate(BaseModel):
    content: str = Field(..., min_length=1)
    activity_type: ActivityType = ActivityType.COMMENT
    is_internal: bool = False


class ActivityResponse(BaseModel):
    id: str
    ticket_id: str
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    activity_type: ActivityType
    content: str
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    is_internal: bool
    created_at: datetime

    class Config:
        from_attributes = True


class TicketResponse(BaseModel):
    id: str
    ticket_number: str
    asset_id: Optional[str] = None
    site_id: Optional[str] = None
    category: TicketCategory
    sub_category: Optional[str] = None
    title: str
    description: Optional[str] = None
    tags: List[str] = []
    impact: int
    urgency: int
    priority_score: Optional[int] = None
    priority: TicketPriority
    status: TicketStatus
    source: TicketSource
    source_reference: Optional[str] = None
    created_by: str
    assigned_to: Optional[str] = None
    assigned_on: Optional[datetime] = None
    acknowledged_on: Optional[datetime] = None
    resolved_on: Optional[datetime] = None
    verified_on: Optional[datetime] = None
    verified_by: Optional[str] = None
    closed_on: Optional[datetime] = None
    sla_policy_id: Optional[str] = None
    sla_response_due: Optional[datetime] = None
    sla_restore_due: Optional[datetime] = None
    is_sla_response_breached: bool
    is_sla_restore_breached: bool
    escalation_level: int
    escalation_reason: Optional[str] = None
    escalation_accepted_by: Optional[str] = None
    root_cause: Optional[str] = None
    resolution_summary: Optional[str] = None
    rejection_reason: Optional[str] = None
    hold_reason: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AssetSummary(BaseModel):
    id: str
    asset_code: str
    asset_type: str
    device_type: Optional[str] = None
    location_name: Optional[str] = None
    criticality: int

    class Config:
        from_attributes = True


class PersonSummary(BaseModel):
    id: str
    full_name: str
    email: str
    mobile_number: Optional[str] = None

    class Config:
        from_attributes = True


class TicketDetail(TicketResponse):
    asset: Optional[AssetSummary] = None
    assignee: Optional[PersonSummary] = None
    creator: Optional[PersonSummary] = None


class DashboardStats(BaseModel):
    open_tickets: int
    in_progress_tickets: int
    sla_breached: int
    sla_at_risk: int
    sla_compliance_percent: float
    total_tickets: int
    resolved_today: int
    total_assets: int
    offline_assets: int
    by_priority: Dict[str, int]
    by_status: Dict[str, int]
    by_category: Dict[str, int]


class SLAPolicyBase(BaseModel):
    policy_name: str = Field(..., min_length=1, max_length=100)
    priority: TicketPriority
    response_time_minutes: int = Field(..., gt=0)
    restore_time_minutes: int = Field(..., gt=0)
    escalation_level1_minutes: Optional[int] = Field(None, gt=0)
    escalation_level2_minutes: Optional[int] = Field(None, gt=0)


class SLAPolicyCreate(SLAPolicyBase):
    is_active: bool = True


class SLAPolicyUpdate(BaseModel):
    policy_name: Optional[str] = None
    response_time_minutes: Optional[int] = Field(None, gt=0)
    restore_time_minutes: Optional[int] = Field(None, gt=0)
    escalation_level1_minutes: Optional[int] = Field(None, gt=0)
    escalation_level2_minutes: Optional[int] = Field(None, gt=0)
    is_active: Optional[bool] = None


class SLAPolicyResponse(SLAPolicyBase):
    id: str
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True
