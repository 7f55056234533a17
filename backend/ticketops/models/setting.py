from sqlalchemy import Column, String, DateTime, Text, ForeignKey, UniqueConstraint
from datetime import datetime

from ticketops.core.database import Base
from ticketops.core.types import GUID, generate_uuid


DEFAULT_CATEGORY = "General"


class Setting(Base):
    """Key-value configuration editable from the admin screens"""
    __tablename__ = "settings"
    __table_args__ = (
        UniqueConstraint("category", "key", name="uq_settings_category_key"),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    category = Column(String(50), default=DEFAULT_CATEGORY, nullable=False, index=True)
    key = Column(String(100), nullable=False)

    # Always stored as text; callers parse what they need
    value = Column(Text, nullable=False, default="")
    description = Column(Text, nullable=True)

    updated_by = Column(GUID, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Setting {self.category}.{self.key}>"
