from sqlalchemy import (
    Column, String, DateTime, Date, Text, ForeignKey, JSON, Enum as SQLEnum,
    UniqueConstraint,
)
from datetime import datetime
import enum

from ticketops.core.database import Base
from ticketops.core.types import GUID, generate_uuid


class WorkLogCategory(str, enum.Enum):
    # Automatic
    LOGIN = "Login"
    TICKET_CREATED = "TicketCreated"
    TICKET_UPDATED = "TicketUpdated"
    TICKET_ASSIGNED = "TicketAssigned"
    TICKET_ACKNOWLEDGED = "TicketAcknowledged"
    TICKET_STARTED = "TicketStarted"
    TICKET_RESOLVED = "TicketResolved"
    TICKET_VERIFIED = "TicketVerified"
    TICKET_ESCALATED = "TicketEscalated"
    TICKET_CLOSED = "TicketClosed"
    TICKET_REOPENED = "TicketReopened"
    ASSET_CREATED = "AssetCreated"
    ASSET_UPDATED = "AssetUpdated"
    ASSET_DELETED = "AssetDeleted"
    STOCK_ADDED = "StockAdded"
    STOCK_TRANSFERRED = "StockTransferred"
    STOCK_DELETED = "StockDeleted"
    REQUISITION_CREATED = "RequisitionCreated"
    RMA_CREATED = "RMACreated"
    RMA_STATUS_CHANGED = "RMAStatusChanged"
    USER_CREATED = "UserCreated"
    USER_UPDATED = "UserUpdated"
    USER_DELETED = "UserDeleted"
    NOTIFICATION_CREATED = "NotificationCreated"
    SITE_CREATED = "SiteCreated"
    SITE_UPDATED = "SiteUpdated"
    SITE_DELETED = "SiteDeleted"
    # Manual
    SITE_VISIT = "SiteVisit"
    ADMIN_WORK = "AdminWork"
    COORDINATION = "Coordination"
    TRAINING = "Training"
    OTHER = "Other"


MANUAL_CATEGORIES = (
    WorkLogCategory.SITE_VISIT,
    WorkLogCategory.ADMIN_WORK,
    WorkLogCategory.COORDINATION,
    WorkLogCategory.TRAINING,
    WorkLogCategory.OTHER,
)

# Which daily counter each category bumps; Login bumps nothing
CATEGORY_STAT_MAP = {
    WorkLogCategory.TICKET_CREATED: "tickets_created",
    WorkLogCategory.TICKET_UPDATED: "tickets_updated",
    WorkLogCategory.TICKET_ASSIGNED: "tickets_updated",
    WorkLogCategory.TICKET_ACKNOWLEDGED: "tickets_updated",
    WorkLogCategory.TICKET_STARTED: "tickets_updated",
    WorkLogCategory.TICKET_ESCALATED: "tickets_updated",
    WorkLogCategory.TICKET_REOPENED: "tickets_updated",
    WorkLogCategory.TICKET_RESOLVED: "tickets_resolved",
    WorkLogCategory.TICKET_VERIFIED: "tickets_resolved",
    WorkLogCategory.TICKET_CLOSED: "tickets_resolved",
    WorkLogCategory.ASSET_CREATED: "assets_added",
    WorkLogCategory.ASSET_UPDATED: "assets_updated",
    WorkLogCategory.ASSET_DELETED: "assets_deleted",
    WorkLogCategory.STOCK_ADDED: "stock_movements",
    WorkLogCategory.STOCK_TRANSFERRED: "stock_movements",
    WorkLogCategory.STOCK_DELETED: "stock_movements",
    WorkLogCategory.REQUISITION_CREATED: "stock_movements",
    WorkLogCategory.RMA_CREATED: "rma_actions",
    WorkLogCategory.RMA_STATUS_CHANGED: "rma_actions",
    WorkLogCategory.USER_CREATED: "users_managed",
    WorkLogCategory.USER_UPDATED: "users_managed",
    WorkLogCategory.USER_DELETED: "users_managed",
    WorkLogCategory.NOTIFICATION_CREATED: "notifications_created",
    WorkLogCategory.SITE_CREATED: "sites_managed",
    WorkLogCategory.SITE_UPDATED: "sites_managed",
    WorkLogCategory.SITE_DELETED: "sites_managed",
}

STAT_KEYS = (
    "tickets_created", "tickets_updated", "tickets_resolved",
    "assets_added", "assets_updated", "assets_deleted",
    "stock_movements", "rma_actions", "users_managed",
    "notifications_created", "sites_managed", "manual_entries",
)


def empty_stats() -> dict:
    return {key: 0 for key in STAT_KEYS}


class DailyWorkLog(Base):
    """One journal per user per (local) day"""
    __tablename__ = "daily_work_logs"
    __table_args__ = (
        UniqueConstraint("user_id", "log_date", name="uq_daily_work_logs_user_date"),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    log_date = Column(Date, nullable=False, index=True)

    stats = Column(JSON, default=empty_stats, nullable=False)
    summary = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<DailyWorkLog {self.user_id} {self.log_date}>"


class WorkLogEntry(Base):
    """A single activity in a daily work log"""
    __tablename__ = "work_log_entries"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    work_log_id = Column(GUID, ForeignKey("daily_work_logs.id", ondelete="CASCADE"), nullable=False, index=True)

    category = Column(SQLEnum(WorkLogCategory), nullable=False)
    description = Column(Text, nullable=False)
    source = Column(String(10), default="auto", nullable=False)  # auto | manual

    # What the activity touched (Ticket, Asset, RMA, ...)
    ref_type = Column(String(30), nullable=True)
    ref_id = Column(String(50), nullable=True)
    details = Column(JSON, default=dict, nullable=False)

    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<WorkLogEntry {self.category.value} {self.source}>"
