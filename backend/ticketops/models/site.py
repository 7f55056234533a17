from sqlalchemy import Column, String, Boolean, DateTime, Float, Text
from datetime import datetime

from ticketops.core.database import Base
from ticketops.core.types import GUID, generate_uuid


class Site(Base):
    """A monitored location (junction, building, head office)"""
    __tablename__ = "sites"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    site_name = Column(String(255), nullable=False)
    site_code = Column(String(50), unique=True, index=True, nullable=False)

    city = Column(String(100), nullable=True, index=True)
    zone = Column(String(100), nullable=True)
    ward = Column(String(100), nullable=True)
    address = Column(Text, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    contact_person = Column(String(255), nullable=True)
    contact_phone = Column(String(20), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    # Central store that holds spare stock for every site
    is_head_office = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Site {self.site_code}>"
