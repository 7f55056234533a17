from sqlalchemy import Column, String, Boolean, DateTime, Text, ForeignKey, JSON, Enum as SQLEnum
from datetime import datetime
import enum

from ticketops.core.database import Base
from ticketops.core.types import GUID, generate_uuid


class AssetUpdateStatus(str, enum.Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    EXPIRED = "Expired"


# Fields an engineer may propose through an update link
UPDATABLE_ASSET_FIELDS = (
    "serial_number",
    "ip_address",
    "mac",
    "installation_date",
    "warranty_end_date",
    "vms_reference_id",
    "nms_reference_id",
    "user_name",
    "password",
    "remark",
)


class AssetUpdateRequest(Base):
    """
    Time-limited link letting a field engineer propose new asset details
    after a replacement; an admin approves before the asset changes.
    """
    __tablename__ = "asset_update_requests"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    token = Column(String(64), unique=True, index=True, nullable=False)

    rma_id = Column(GUID, ForeignKey("rma_requests.id"), nullable=True, index=True)
    ticket_id = Column(GUID, ForeignKey("tickets.id"), nullable=True)
    asset_id = Column(GUID, ForeignKey("assets.id"), nullable=False, index=True)
    requested_by = Column(GUID, ForeignKey("users.id"), nullable=False)

    status = Column(SQLEnum(AssetUpdateStatus), default=AssetUpdateStatus.PENDING, nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False)

    is_submitted = Column(Boolean, default=False, nullable=False)
    submitted_at = Column(DateTime, nullable=True)

    original_values = Column(JSON, default=dict, nullable=False)
    proposed_changes = Column(JSON, default=dict, nullable=False)

    reviewed_by = Column(GUID, nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def is_access_valid(self, now: datetime = None) -> bool:
        now = now or datetime.utcnow()
        return (
            self.status == AssetUpdateStatus.PENDING
            and not self.is_submitted
            and self.expires_at > now
        )

    def seconds_remaining(self, now: datetime = None) -> int:
        now = now or datetime.utcnow()
        return max(0, int((self.expires_at - now).total_seconds()))

    def __repr__(self):
        return f"<AssetUpdateRequest {self.asset_id} {self.status.value if self.status else '-'}>"
