from sqlalchemy import Column, String, DateTime, Text, ForeignKey, JSON
from datetime import datetime

from ticketops.core.database import Base
from ticketops.core.types import GUID, generate_uuid


class AuditLog(Base):
    """Administrative changes (users, rights, settings, client approvals)"""
    __tablename__ = "audit_logs"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    admin_id = Column(GUID, ForeignKey("users.id"), nullable=False, index=True)

    action = Column(String(100), nullable=False)  # e.g. 'user_created', 'rights_updated'
    target_type = Column(String(50), nullable=False)  # e.g. 'user', 'setting', 'client_registration'
    target_id = Column(String(100), nullable=True)

    details = Column(JSON, nullable=True)

    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog {self.action} by {self.admin_id}>"
