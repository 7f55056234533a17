from sqlalchemy import Column, String, DateTime, Integer, Text, ForeignKey, JSON, Enum as SQLEnum
from datetime import datetime
import enum

from ticketops.core.database import Base
from ticketops.core.types import GUID, generate_uuid


class TransferStatus(str, enum.Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    DISPATCHED = "Dispatched"
    IN_TRANSIT = "InTransit"
    COMPLETED = "Completed"
    REJECTED = "Rejected"
    CANCELLED = "Cancelled"


class StockTransfer(Base):
    """Movement of spare assets from one site to another"""
    __tablename__ = "stock_transfers"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    transfer_number = Column(String(30), unique=True, index=True, nullable=False)

    source_site_id = Column(GUID, ForeignKey("sites.id"), nullable=False, index=True)
    destination_site_id = Column(GUID, ForeignKey("sites.id"), nullable=False, index=True)
    asset_ids = Column(JSON, default=list, nullable=False)

    status = Column(SQLEnum(TransferStatus), default=TransferStatus.PENDING, nullable=False, index=True)
    notes = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)

    # Courier, docket number, vehicle, expected date, ...
    shipping_details = Column(JSON, default=dict, nullable=False)

    initiated_by = Column(GUID, ForeignKey("users.id"), nullable=False)
    approved_by = Column(GUID, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    dispatched_by = Column(GUID, nullable=True)
    dispatched_at = Column(DateTime, nullable=True)
    received_by = Column(GUID, nullable=True)
    received_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<StockTransfer {self.transfer_number} {self.status.value if self.status else '-'}>"


class RequisitionType(str, enum.Enum):
    STOCK_REQUEST = "StockRequest"
    RMA_TRANSFER = "RMATransfer"
    REPAIRED_ITEM_TRANSFER = "RepairedItemTransfer"


REQUISITION_PREFIXES = {
    RequisitionType.STOCK_REQUEST: "REQ",
    RequisitionType.RMA_TRANSFER: "RMT",
    RequisitionType.REPAIRED_ITEM_TRANSFER: "RPT",
}


class RequisitionStatus(str, enum.Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    IN_TRANSIT = "InTransit"
    FULFILLED = "Fulfilled"
    REJECTED = "Rejected"
    CANCELLED = "Cancelled"


class Requisition(Base):
    """A site's request for spare stock"""
    __tablename__ = "requisitions"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    requisition_number = Column(String(30), unique=True, index=True, nullable=False)
    requisition_type = Column(SQLEnum(RequisitionType), default=RequisitionType.STOCK_REQUEST, nullable=False)

    requesting_site_id = Column(GUID, ForeignKey("sites.id"), nullable=False, index=True)
    source_site_id = Column(GUID, ForeignKey("sites.id"), nullable=True)
    ticket_id = Column(GUID, nullable=True)
    rma_id = Column(GUID, nullable=True)

    asset_type = Column(String(100), nullable=False)
    device_type = Column(String(100), nullable=True)
    quantity = Column(Integer, default=1, nullable=False)
    reason = Column(Text, nullable=True)

    status = Column(SQLEnum(RequisitionStatus), default=RequisitionStatus.PENDING, nullable=False, index=True)
    fulfilled_asset_ids = Column(JSON, default=list, nullable=False)
    rejection_reason = Column(Text, nullable=True)

    requested_by = Column(GUID, ForeignKey("users.id"), nullable=False)
    approved_by = Column(GUID, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    fulfilled_by = Column(GUID, nullable=True)
    fulfilled_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Requisition {self.requisition_number}>"


class MovementType(str, enum.Enum):
    ADDED = "Added"
    TRANSFERRED = "Transferred"
    RECEIVED = "Received"
    REPLACED = "Replaced"
    REMOVED = "Removed"
    STATUS_CHANGED = "StatusChanged"


class StockMovementLog(Base):
    """Append-only history of stock changes"""
    __tablename__ = "stock_movement_logs"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    asset_id = Column(GUID, ForeignKey("assets.id"), nullable=False, index=True)
    movement_type = Column(SQLEnum(MovementType), nullable=False, index=True)

    from_site_id = Column(GUID, nullable=True)
    to_site_id = Column(GUID, nullable=True)
    from_status = Column(String(30), nullable=True)
    to_status = Column(String(30), nullable=True)

    # e.g. transfer or requisition number
    reference_type = Column(String(30), nullable=True)
    reference_id = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)

    performed_by = Column(GUID, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<StockMovementLog {self.movement_type.value} {self.asset_id}>"
