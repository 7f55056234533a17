from sqlalchemy import (
    Column, String, Boolean, DateTime, Integer, Text, ForeignKey, JSON,
    Enum as SQLEnum,
)
from datetime import datetime
import enum

from ticketops.core.database import Base
from ticketops.core.types import GUID, generate_uuid


class TicketStatus(str, enum.Enum):
    """Ticket lifecycle status"""
    OPEN = "Open"
    ASSIGNED = "Assigned"
    ACKNOWLEDGED = "Acknowledged"
    IN_PROGRESS = "InProgress"
    ON_HOLD = "OnHold"
    ESCALATED = "Escalated"
    RESOLVED = "Resolved"
    RESOLUTION_REJECTED = "ResolutionRejected"
    VERIFIED = "Verified"
    CLOSED = "Closed"
    CANCELLED = "Cancelled"


# No longer counted against SLA
TERMINAL_STATUSES = (
    TicketStatus.RESOLVED,
    TicketStatus.VERIFIED,
    TicketStatus.CLOSED,
    TicketStatus.CANCELLED,
)


class TicketPriority(str, enum.Enum):
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"
    P4 = "P4"


class TicketCategory(str, enum.Enum):
    HARDWARE = "Hardware"
    SOFTWARE = "Software"
    NETWORK = "Network"
    POWER = "Power"
    CONNECTIVITY = "Connectivity"
    OTHER = "Other"


class TicketSource(str, enum.Enum):
    """Where the ticket came from: a person or a monitoring system"""
    MANUAL = "Manual"
    VMS = "VMS"
    NMS = "NMS"
    IOT = "IoT"


class ActivityType(str, enum.Enum):
    COMMENT = "Comment"
    STATUS_CHANGE = "StatusChange"
    ASSIGNMENT = "Assignment"
    ESCALATION = "Escalation"
    RESOLUTION = "Resolution"
    NOTE = "Note"
    RMA = "RMA"


class Ticket(Base):
    """Maintenance ticket raised against an asset"""
    __tablename__ = "tickets"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    ticket_number = Column(String(30), unique=True, index=True, nullable=False)

    asset_id = Column(GUID, ForeignKey("assets.id"), nullable=True, index=True)
    site_id = Column(GUID, ForeignKey("sites.id"), nullable=True, index=True)

    category = Column(SQLEnum(TicketCategory), nullable=False)
    sub_category = Column(String(100), nullable=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    tags = Column(JSON, default=list, nullable=False)

    # Priority matrix inputs
    impact = Column(Integer, default=3, nullable=False)
    urgency = Column(Integer, default=3, nullable=False)
    priority_score = Column(Integer, nullable=True)
    priority = Column(SQLEnum(TicketPriority), nullable=False, index=True)

    status = Column(SQLEnum(TicketStatus), default=TicketStatus.OPEN, nullable=False, index=True)
    source = Column(SQLEnum(TicketSource), default=TicketSource.MANUAL, nullable=False)
    source_reference = Column(String(100), nullable=True)

    # People
    created_by = Column(GUID, ForeignKey("users.id"), nullable=False, index=True)
    assigned_to = Column(GUID, ForeignKey("users.id"), nullable=True, index=True)

    # Lifecycle timestamps
    assigned_on = Column(DateTime, nullable=True)
    acknowledged_on = Column(DateTime, nullable=True)
    resolved_on = Column(DateTime, nullable=True)
    verified_on = Column(DateTime, nullable=True)
    verified_by = Column(String(255), nullable=True)
    closed_on = Column(DateTime, nullable=True)

    # SLA
    sla_policy_id = Column(GUID, ForeignKey("sla_policies.id"), nullable=True)
    sla_response_due = Column(DateTime, nullable=True)
    sla_restore_due = Column(DateTime, nullable=True, index=True)
    is_sla_response_breached = Column(Boolean, default=False, nullable=False)
    is_sla_restore_breached = Column(Boolean, default=False, nullable=False)
    is_breach_warning_sent = Column(Boolean, default=False, nullable=False)
    is_sla_breach_notification_sent = Column(Boolean, default=False, nullable=False)

    # Escalation
    escalation_level = Column(Integer, default=0, nullable=False)
    escalated_by = Column(GUID, nullable=True)
    escalated_on = Column(DateTime, nullable=True)
    escalation_reason = Column(Text, nullable=True)
    escalation_accepted_by = Column(GUID, nullable=True)
    escalation_accepted_on = Column(DateTime, nullable=True)

    # Resolution
    root_cause = Column(Text, nullable=True)
    resolution_summary = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    hold_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Ticket {self.ticket_number} {self.status.value if self.status else '-'}>"


class TicketActivity(Base):
    """Timeline entry on a ticket; doubles as its audit trail"""
    __tablename__ = "ticket_activities"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    ticket_id = Column(GUID, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(GUID, ForeignKey("users.id"), nullable=True)

    activity_type = Column(SQLEnum(ActivityType), nullable=False)
    content = Column(Text, nullable=False)
    from_status = Column(String(30), nullable=True)
    to_status = Column(String(30), nullable=True)
    # Hidden from client roles
    is_internal = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<TicketActivity {self.activity_type.value} on {self.ticket_id}>"


class SLAPolicy(Base):
    """Response/restore targets per priority"""
    __tablename__ = "sla_policies"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    policy_name = Column(String(100), nullable=False)
    priority = Column(SQLEnum(TicketPriority), nullable=False, index=True)

    response_time_minutes = Column(Integer, nullable=False)
    restore_time_minutes = Column(Integer, nullable=False)
    escalation_level1_minutes = Column(Integer, nullable=True)
    escalation_level2_minutes = Column(Integer, nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<SLAPolicy {self.priority.value if self.priority else '-'} {self.policy_name}>"
