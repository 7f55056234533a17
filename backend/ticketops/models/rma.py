from sqlalchemy import Column, String, DateTime, Text, ForeignKey, JSON, Enum as SQLEnum
from datetime import datetime
import enum

from ticketops.core.database import Base
from ticketops.core.types import GUID, generate_uuid


class RMAStatus(str, enum.Enum):
    """Overall RMA status shown in lists"""
    REQUESTED = "Requested"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    ORDERED = "Ordered"
    DISPATCHED = "Dispatched"
    SENT_TO_SERVICE_CENTER = "SentToServiceCenter"
    RECEIVED_AT_SITE = "ReceivedAtSite"
    INSTALLED = "Installed"
    REPAIRED_ITEM_RECEIVED = "RepairedItemReceived"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


# An RMA in any other status blocks a new RMA on the same ticket
CLOSED_RMA_STATUSES = (RMAStatus.COMPLETED, RMAStatus.REJECTED, RMAStatus.CANCELLED)


class RepairTrackStatus(str, enum.Enum):
    """Where the faulty unit is"""
    PENDING = "Pending"
    SENT_TO_HO = "SentToHO"
    SENT_TO_SERVICE_CENTER = "SentToServiceCenter"
    RECEIVED_AT_HO = "ReceivedAtHO"
    SENT_FOR_REPAIR = "SentForRepair"
    REPAIRED = "Repaired"
    RETURN_SHIPPED = "ReturnShipped"
    RETURN_RECEIVED = "ReturnReceived"
    INSTALLED = "Installed"
    COMPLETED_TO_HO_STOCK = "CompletedToHOStock"


class ReplacementTrackStatus(str, enum.Enum):
    """Where the replacement unit is"""
    NOT_REQUIRED = "NotRequired"
    PENDING = "Pending"
    REQUISITION_RAISED = "RequisitionRaised"
    DISPATCHED = "Dispatched"
    RECEIVED = "Received"
    INSTALLED = "Installed"


class ReplacementSource(str, enum.Enum):
    REPAIR_ONLY = "RepairOnly"
    REPAIR_AND_REPLACE = "RepairAndReplace"
    MARKET = "Market"
    STOCK = "Stock"


class RMARequest(Base):
    """
    Repair/replace request for a faulty asset.

    Progress is tracked on two independent tracks (repair of the faulty
    unit, delivery of a replacement) plus an overall status; every change
    is appended to ``timeline``.
    """
    __tablename__ = "rma_requests"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    rma_number = Column(String(30), unique=True, index=True, nullable=False)

    ticket_id = Column(GUID, ForeignKey("tickets.id"), nullable=False, index=True)
    site_id = Column(GUID, ForeignKey("sites.id"), nullable=True, index=True)
    original_asset_id = Column(GUID, ForeignKey("assets.id"), nullable=False, index=True)
    original_details_snapshot = Column(JSON, default=dict, nullable=False)

    replacement_source = Column(SQLEnum(ReplacementSource), default=ReplacementSource.REPAIR_ONLY, nullable=False)
    replacement_details = Column(JSON, default=dict, nullable=False)

    status = Column(SQLEnum(RMAStatus), default=RMAStatus.REQUESTED, nullable=False, index=True)
    repair_track_status = Column(SQLEnum(RepairTrackStatus), default=RepairTrackStatus.PENDING, nullable=False)
    replacement_track_status = Column(
        SQLEnum(ReplacementTrackStatus), default=ReplacementTrackStatus.NOT_REQUIRED, nullable=False
    )
    installation_status = Column(String(50), default="Pending", nullable=False)

    request_reason = Column(Text, nullable=False)
    shipping_details = Column(JSON, default=dict, nullable=False)

    requested_by = Column(GUID, ForeignKey("users.id"), nullable=False)
    approved_by = Column(GUID, nullable=True)
    approved_on = Column(DateTime, nullable=True)
    installed_by = Column(GUID, nullable=True)
    installed_on = Column(DateTime, nullable=True)

    # [{status, changed_by, changed_on, remarks}]
    timeline = Column(JSON, default=list, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def add_timeline_entry(self, status: str, changed_by: str, remarks: str = None) -> None:
        # Reassign so SQLAlchemy sees the JSON column change
        self.timeline = list(self.timeline or []) + [{
            "status": status,
            "changed_by": str(changed_by) if changed_by else None,
            "changed_on": datetime.utcnow().isoformat(),
            "remarks": remarks,
        }]

    @property
    def is_open(self) -> bool:
        return self.status not in CLOSED_RMA_STATUSES

    def __repr__(self):
        return f"<RMARequest {self.rma_number} {self.status.value if self.status else '-'}>"
