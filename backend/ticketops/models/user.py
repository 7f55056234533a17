from sqlalchemy import Column, String, Boolean, DateTime, Enum as SQLEnum, JSON
from datetime import datetime
import enum

from ticketops.core.database import Base
from ticketops.core.types import GUID, generate_uuid


class UserRole(str, enum.Enum):
    """User roles"""
    DISPATCHER = "Dispatcher"
    L1_ENGINEER = "L1Engineer"
    L2_ENGINEER = "L2Engineer"
    SUPERVISOR = "Supervisor"
    ADMIN = "Admin"
    CLIENT_VIEWER = "ClientViewer"
    SITE_CLIENT = "SiteClient"


# Roles that run the ticket queue
MANAGER_ROLES = (UserRole.ADMIN, UserRole.DISPATCHER, UserRole.SUPERVISOR)
ENGINEER_ROLES = (UserRole.L1_ENGINEER, UserRole.L2_ENGINEER)
CLIENT_ROLES = (UserRole.CLIENT_VIEWER, UserRole.SITE_CLIENT)


class User(Base):
    """Helpdesk user (staff or client)"""
    __tablename__ = "users"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, index=True, nullable=False)
    username = Column(String(100), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=False)
    hashed_password = Column(String(255), nullable=False)

    role = Column(SQLEnum(UserRole), default=UserRole.L1_ENGINEER, nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)

    # Profile
    mobile_number = Column(String(20), nullable=True)
    designation = Column(String(100), nullable=True)

    # Home site and the sites this user may work on
    site_id = Column(GUID, nullable=True, index=True)
    assigned_sites = Column(JSON, default=list, nullable=False)

    preferences = Column(JSON, default=dict, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login = Column(DateTime, nullable=True)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_manager(self) -> bool:
        return self.role in MANAGER_ROLES

    @property
    def is_engineer(self) -> bool:
        return self.role in ENGINEER_ROLES

    @property
    def is_client(self) -> bool:
        return self.role in CLIENT_ROLES

    def __repr__(self):
        return f"<User {self.username} ({self.role.value if self.role else '-'})>"
