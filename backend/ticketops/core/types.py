"""Custom SQLAlchemy column types and identifier helpers"""
from datetime import datetime
from typing import Optional
import uuid

from sqlalchemy import TypeDecorator, String


def generate_uuid() -> str:
    """Generate a UUID string"""
    return str(uuid.uuid4())


def is_valid_uuid(value: Optional[str]) -> bool:
    if not value:
        return False
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True


def document_number(prefix: str, sequence: int, when: Optional[datetime] = None) -> str:
    """
    Build a human readable document number.

    Format: ``PREFIX-YYYYMMDD-NNNN`` where NNNN is the 1-based sequence of
    documents with the same prefix created on that day.
    """
    when = when or datetime.utcnow()
    return f"{prefix}-{when.strftime('%Y%m%d')}-{sequence:04d}"


class GUID(TypeDecorator):
    """Stores UUIDs as VARCHAR(36) on every backend, returns them as str"""
    impl = String(36)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        return dialect.type_descriptor(String(36))

    def process_bind_param(self, value, dialect):
        return str(value) if value is not None else None

    def process_result_value(self, value, dialect):
        return str(value) if value is not None else None
