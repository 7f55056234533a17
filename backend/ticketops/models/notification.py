from sqlalchemy import Column, String, Boolean, DateTime, Text, ForeignKey, JSON, Enum as SQLEnum
from datetime import datetime
import enum

from ticketops.core.database import Base
from ticketops.core.types import GUID, generate_uuid


class NotificationType(str, enum.Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    ANNOUNCEMENT = "announcement"
    TICKET = "ticket"
    SYSTEM = "system"


class Notification(Base):
    """In-app notification; ``user_id`` NULL means broadcast to everyone"""
    __tablename__ = "notifications"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)

    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(SQLEnum(NotificationType), default=NotificationType.INFO, nullable=False)
    link = Column(String(500), nullable=True)

    is_read = Column(Boolean, default=False, nullable=False)
    # Broadcasts are shared rows, so readers are tracked per user
    read_by = Column(JSON, default=list, nullable=False)

    created_by = Column(GUID, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    @property
    def is_broadcast(self) -> bool:
        return self.user_id is None

    def is_read_by(self, user_id: str) -> bool:
        if self.is_broadcast:
            return str(user_id) in (self.read_by or [])
        return bool(self.is_read)

    def mark_read_by(self, user_id: str) -> None:
        if self.is_broadcast:
            if str(user_id) not in (self.read_by or []):
                self.read_by = list(self.read_by or []) + [str(user_id)]
        else:
            self.is_read = True

    def __repr__(self):
        return f"<Notification {self.title!r} to {self.user_id or 'all'}>"


class NotificationChannel(str, enum.Enum):
    EMAIL = "Email"
    SYSTEM = "System"


class NotificationCategory(str, enum.Enum):
    ACCOUNT = "Account"
    TICKET_ASSIGNMENT = "TicketAssignment"
    TICKET_ESCALATION = "TicketEscalation"
    TICKET_STATUS = "TicketStatus"
    RMA = "RMA"
    BREACH_WARNING = "BreachWarning"
    SLA_BREACH = "SLABreach"
    PASSWORD_RESET = "PasswordReset"
    OTHER = "Other"


class DeliveryStatus(str, enum.Enum):
    SENT = "Sent"
    FAILED = "Failed"


class NotificationLog(Base):
    """Record of every outbound e-mail attempt"""
    __tablename__ = "notification_logs"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    recipient = Column(String(255), nullable=False, index=True)
    subject = Column(String(500), nullable=False)
    content = Column(Text, nullable=True)

    channel = Column(SQLEnum(NotificationChannel), default=NotificationChannel.EMAIL, nullable=False)
    category = Column(SQLEnum(NotificationCategory), default=NotificationCategory.OTHER, nullable=False, index=True)
    related_ticket_id = Column(GUID, nullable=True, index=True)

    status = Column(SQLEnum(DeliveryStatus), nullable=False, index=True)
    error = Column(Text, nullable=True)
    sent_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<NotificationLog {self.category.value} to {self.recipient}: {self.status.value}>"
