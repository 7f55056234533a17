"""
Admin API endpoints. All endpoints require the Admin role.
"""
from fastapi import APIRouter

from ticketops.api.v1.endpoints.admin import audit_logs, notification_logs

admin_router = APIRouter(prefix="/admin", tags=["Admin"])

admin_router.include_router(audit_logs.router, prefix="/audit-logs", tags=["Admin Audit Logs"])
admin_router.include_router(notification_logs.router, prefix="/notification-logs", tags=["Admin Notification Logs"])
