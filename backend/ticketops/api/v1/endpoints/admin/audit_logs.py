"""
Admin audit log endpoints.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_, or_
from datetime import date, datetime, timedelta
from typing import Optional, List
import math

from ticketops.core.database import get_db
from ticketops.models.audit_log import AuditLog
from ticketops.models.user import User
from ticketops.modules.auth.dependencies import get_current_admin
from ticketops.schemas.audit_log import AuditLogResponse
from ticketops.schemas.common import Page

router = APIRouter()


@router.get("", response_model=Page[AuditLogResponse])
async def list_audit_logs(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    action: Optional[str] = None,
    target_type: Optional[str] = None,
    admin_id: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    search: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """List audit logs with filtering and pagination"""
    conditions = []
    if action:
        conditions.append(AuditLog.action == action)
    if target_type:
        conditions.append(AuditLog.target_type == target_type)
    if admin_id:
        conditions.append(AuditLog.admin_id == admin_id)
    if start_date:
        conditions.append(AuditLog.created_at >= datetime.combine(start_date, datetime.min.time()))
    if end_date:
        conditions.append(AuditLog.created_at < datetime.combine(end_date + timedelta(days=1), datetime.min.time()))
    if search:
        search_term = f"%{search}%"
        conditions.append(or_(
            AuditLog.action.ilike(search_term),
            AuditLog.target_type.ilike(search_term),
            AuditLog.target_id.ilike(search_term),
        ))

    count_query = select(func.count(AuditLog.id))
    query = select(AuditLog, User.full_name).outerjoin(User, AuditLog.admin_id == User.id)
    if conditions:
        count_query = count_query.where(and_(*conditions))
        query = query.where(and_(*conditions))
    total = (await db.scalar(count_query)) or 0

    offset = (page - 1) * page_size
    rows = (await db.execute(
        query.order_by(AuditLog.created_at.desc()).offset(offset).limit(page_size)
    )).all()

    total_pages = math.ceil(total / page_size) if total > 0 else 1
    return {
        "items": [
            AuditLogResponse(
                id=log.id,
                admin_id=log.admin_id,
                admin_name=admin_name,
                action=log.action,
                target_type=log.target_type,
                target_id=log.target_id,
                details=log.details,
                ip_address=log.ip_address,
                created_at=log.created_at,
            )
            for log, admin_name in rows
        ],
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_previous": page > 1,
    }


@router.get("/actions", response_model=List[str])
async def get_available_actions(
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """Distinct action names for filtering"""
    result = await db.execute(select(AuditLog.action).distinct().order_by(AuditLog.action))
    return [row[0] for row in result.all() if row[0]]
