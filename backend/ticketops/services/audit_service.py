from typing import Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from ticketops.models.audit_log import AuditLog


def log_admin_action(
    db: AsyncSession,
    admin_id: str,
    action: str,
    target_type: str,
    target_id: Optional[str] = None,
    details: Optional[dict] = None,
    request: Optional[Request] = None
) -> AuditLog:
    """Add an audit row to the session; committed with the change it describes"""
    log = AuditLog(
        admin_id=str(admin_id),
        action=action,
        target_type=target_type,
        target_id=str(target_id) if target_id else None,
        details=details,
        ip_address=request.client.host if request and request.client else None,
        user_agent=request.headers.get("user-agent") if request else None
    )
    db.add(log)
    return log
