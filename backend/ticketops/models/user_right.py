from sqlalchemy import Column, DateTime, ForeignKey, JSON
from datetime import datetime
from typing import Optional
import enum

from ticketops.core.database import Base
from ticketops.core.types import GUID, generate_uuid


class Right(str, enum.Enum):
    """Fine-grained permissions granted on top of a role"""
    CREATE_TICKET = "CREATE_TICKET"
    EDIT_TICKET = "EDIT_TICKET"
    DELETE_TICKET = "DELETE_TICKET"
    ESCALATION_L1 = "ESCALATION_L1"
    ESCALATION_L2 = "ESCALATION_L2"
    ESCALATION_L3 = "ESCALATION_L3"
    MANAGE_SITE_STOCK = "MANAGE_SITE_STOCK"
    VIEW_CREDENTIALS = "VIEW_CREDENTIALS"
    MANAGE_ASSETS = "MANAGE_ASSETS"
    VIEW_REPORTS = "VIEW_REPORTS"


ALL_RIGHTS = [r.value for r in Right]


class UserRight(Base):
    """
    Rights held by one user.

    ``global_rights`` apply everywhere; ``site_rights`` is a list of
    ``{"site_id": ..., "rights": [...]}`` entries scoped to one site.
    """
    __tablename__ = "user_rights"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)

    global_rights = Column(JSON, default=list, nullable=False)
    site_rights = Column(JSON, default=list, nullable=False)

    updated_by = Column(GUID, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def has_right(self, right: str, site_id: Optional[str] = None) -> bool:
        """
        True when the right is held globally, or for ``site_id``.
        Without a site, a right held for any site counts.
        """
        right = getattr(right, "value", right)
        if right in (self.global_rights or []):
            return True
        for entry in self.site_rights or []:
            if right not in (entry.get("rights") or []):
                continue
            if site_id is None or str(entry.get("site_id")) == str(site_id):
                return True
        return False

    def sites_with_right(self, right: str) -> list:
        right = getattr(right, "value", right)
        return [
            str(entry.get("site_id"))
            for entry in self.site_rights or []
            if right in (entry.get("rights") or [])
        ]

    def __repr__(self):
        return f"<UserRight user={self.user_id}>"
