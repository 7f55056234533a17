from sqlalchemy import (
    Column, String, Boolean, DateTime, Integer, Text, ForeignKey,
    Enum as SQLEnum, UniqueConstraint,
)
from datetime import datetime
import enum

from ticketops.core.database import Base
from ticketops.core.types import GUID, generate_uuid


class AssetStatus(str, enum.Enum):
    """Asset lifecycle status"""
    OPERATIONAL = "Operational"
    DEGRADED = "Degraded"
    OFFLINE = "Offline"
    MAINTENANCE = "Maintenance"
    IN_REPAIR = "In Repair"
    NOT_INSTALLED = "Not Installed"
    SPARE = "Spare"
    IN_TRANSIT = "InTransit"
    DAMAGED = "Damaged"
    RESERVED = "Reserved"
    ONLINE = "Online"
    PASSIVE_DEVICE = "Passive Device"


# Statuses that count as stock rather than installed equipment
STOCK_STATUSES = (AssetStatus.SPARE, AssetStatus.IN_TRANSIT, AssetStatus.RESERVED)


class Asset(Base):
    """A camera, switch, NVR or other maintained device"""
    __tablename__ = "assets"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    asset_code = Column(String(100), unique=True, index=True, nullable=False)
    asset_type = Column(String(100), nullable=False, index=True)
    device_type = Column(String(100), nullable=True)

    serial_number = Column(String(100), nullable=True, index=True)
    mac = Column(String(50), nullable=True)
    ip_address = Column(String(50), nullable=True)
    make = Column(String(100), nullable=True)
    model = Column(String(100), nullable=True)
    used_for = Column(String(255), nullable=True)

    site_id = Column(GUID, ForeignKey("sites.id"), nullable=True, index=True)
    location_name = Column(String(255), nullable=True)
    location_description = Column(Text, nullable=True)

    # 1 = low, 2 = medium, 3 = high; feeds ticket priority scoring
    criticality = Column(Integer, default=2, nullable=False)
    status = Column(SQLEnum(AssetStatus), default=AssetStatus.OPERATIONAL, nullable=False, index=True)

    # Device login, only shown to privileged users
    user_name = Column(String(100), nullable=True)
    password = Column(String(255), nullable=True)
    remark = Column(Text, nullable=True)

    installation_date = Column(DateTime, nullable=True)
    warranty_end_date = Column(DateTime, nullable=True)
    vms_reference_id = Column(String(100), nullable=True)
    nms_reference_id = Column(String(100), nullable=True)

    reserved_by_rma_id = Column(GUID, nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Asset {self.asset_code} ({self.status.value if self.status else '-'})>"


class DeviceType(Base):
    """Known device types per asset type (Camera -> PTZ, Bullet, ...)"""
    __tablename__ = "device_types"
    __table_args__ = (
        UniqueConstraint("asset_type", "device_type", name="uq_device_types_asset_device"),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    asset_type = Column(String(100), nullable=False, index=True)
    device_type = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<DeviceType {self.asset_type}/{self.device_type}>"
