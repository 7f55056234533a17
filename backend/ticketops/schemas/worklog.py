from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import date, datetime

from ticketops.models.worklog import WorkLogCategory


class WorkLogEntryCreate(BaseModel):
    category: WorkLogCategory
    description: str = Field(..., min_length=1)
    ref_type: Optional[str] = None
    ref_id: Optional[str] = None
    details: Dict[str, Any] = {}


class SummaryUpdate(BaseModel):
    summary: str


class WorkLogEntryResponse(BaseModel):
    id: str
    category: WorkLogCategory
    description: str
    source: str
    ref_type: Optional[str] = None
    ref_id: Optional[str] = None
    details: Dict[str, Any] = {}
    timestamp: datetime

    class Config:
        from_attributes = True


class DailyWorkLogResponse(BaseModel):
    id: str
    user_id: str
    log_date: date
    stats: Dict[str, int] = {}
    summary: Optional[str] = None
    entries: List[WorkLogEntryResponse] = []

    class Config:
        from_attributes = True


class TeamMemberSummary(BaseModel):
    user_id: str
    full_name: str
    role: str
    entry_count: int
    stats: Dict[str, int] = {}
    summary: Optional[str] = None
