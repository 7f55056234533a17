from sqlalchemy import Column, String, DateTime, Text, ForeignKey, Enum as SQLEnum
from datetime import datetime
import enum

from ticketops.core.database import Base
from ticketops.core.types import GUID, generate_uuid


class RegistrationStatus(str, enum.Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class ClientRegistration(Base):
    """Public sign-up request from a site client, reviewed by an admin"""
    __tablename__ = "client_registrations"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(20), nullable=False)
    designation = Column(String(100), nullable=True)
    site_name = Column(String(255), nullable=False)
    message = Column(Text, nullable=True)

    status = Column(SQLEnum(RegistrationStatus), default=RegistrationStatus.PENDING, nullable=False, index=True)
    rejection_reason = Column(Text, nullable=True)
    approved_by = Column(GUID, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    # Account created on approval
    user_id = Column(GUID, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<ClientRegistration {self.email} {self.status.value if self.status else '-'}>"
