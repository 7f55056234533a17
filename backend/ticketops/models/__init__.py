# Re-export all models for convenient imports
from ticketops.models.user import User, UserRole, MANAGER_ROLES, ENGINEER_ROLES, CLIENT_ROLES
from ticketops.models.user_right import UserRight, Right, ALL_RIGHTS
from ticketops.models.site import Site
from ticketops.models.asset import Asset, AssetStatus, DeviceType, STOCK_STATUSES
from ticketops.models.ticket import (
    Ticket, TicketActivity, SLAPolicy, TicketStatus, TicketPriority,
    TicketCategory, TicketSource, ActivityType, TERMINAL_STATUSES,
)
from ticketops.models.rma import (
    RMARequest, RMAStatus, RepairTrackStatus, ReplacementTrackStatus,
    ReplacementSource, CLOSED_RMA_STATUSES,
)
from ticketops.models.stock import (
    StockTransfer, TransferStatus, Requisition, RequisitionType,
    RequisitionStatus, REQUISITION_PREFIXES, StockMovementLog, MovementType,
)
from ticketops.models.worklog import DailyWorkLog, WorkLogEntry, WorkLogCategory, CATEGORY_STAT_MAP
from ticketops.models.asset_update_request import AssetUpdateRequest, AssetUpdateStatus, UPDATABLE_ASSET_FIELDS
from ticketops.models.notification import (
    Notification, NotificationType, NotificationLog, NotificationChannel,
    NotificationCategory, DeliveryStatus,
)
from ticketops.models.setting import Setting
from ticketops.models.client_registration import ClientRegistration, RegistrationStatus
from ticketops.models.audit_log import AuditLog

__all__ = [
    # Identity
    "User",
    "UserRole",
    "MANAGER_ROLES",
    "ENGINEER_ROLES",
    "CLIENT_ROLES",
    "UserRight",
    "Right",
    "ALL_RIGHTS",
    # Master data
    "Site",
    "Asset",
    "AssetStatus",
    "DeviceType",
    "STOCK_STATUSES",
    "Setting",
    # Tickets
    "Ticket",
    "TicketActivity",
    "SLAPolicy",
    "TicketStatus",
    "TicketPriority",
    "TicketCategory",
    "TicketSource",
    "ActivityType",
    "TERMINAL_STATUSES",
    # RMA
    "RMARequest",
    "RMAStatus",
    "RepairTrackStatus",
    "ReplacementTrackStatus",
    "ReplacementSource",
    "CLOSED_RMA_STATUSES",
    "AssetUpdateRequest",
    "AssetUpdateStatus",
    "UPDATABLE_ASSET_FIELDS",
    # Stock
    "StockTransfer",
    "TransferStatus",
    "Requisition",
    "RequisitionType",
    "RequisitionStatus",
    "REQUISITION_PREFIXES",
    "StockMovementLog",
    "MovementType",
    # Work logs
    "DailyWorkLog",
    "WorkLogEntry",
    "WorkLogCategory",
    "CATEGORY_STAT_MAP",
    # Notifications
    "Notification",
    "NotificationType",
    "NotificationLog",
    "NotificationChannel",
    "NotificationCategory",
    "DeliveryStatus",
    # Admin
    "ClientRegistration",
    "RegistrationStatus",
    "AuditLog",
]
