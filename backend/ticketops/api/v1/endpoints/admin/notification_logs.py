"""
Outbound e-mail log for admins.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_
from datetime import date, datetime, timedelta
from typing import Optional

from ticketops.core.database import get_db
from ticketops.models.notification import NotificationLog, NotificationCategory, DeliveryStatus
from ticketops.models.user import User
from ticketops.modules.auth.dependencies import get_current_admin
from ticketops.schemas.common import Page
from ticketops.schemas.notification import NotificationLogResponse
from ticketops.utils.pagination import paginate

router = APIRouter()


@router.get("", response_model=Page[NotificationLogResponse])
async def list_notification_logs(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    category: Optional[NotificationCategory] = None,
    status: Optional[DeliveryStatus] = None,
    recipient: Optional[str] = None,
    ticket_id: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    conditions = []
    if category:
        conditions.append(NotificationLog.category == category)
    if status:
        conditions.append(NotificationLog.status == status)
    if recipient:
        conditions.append(NotificationLog.recipient.ilike(f"%{recipient}%"))
    if ticket_id:
        conditions.append(NotificationLog.related_ticket_id == ticket_id)
    if start_date:
        conditions.append(NotificationLog.sent_at >= datetime.combine(start_date, datetime.min.time()))
    if end_date:
        conditions.append(NotificationLog.sent_at < datetime.combine(end_date + timedelta(days=1), datetime.min.time()))

    query = select(NotificationLog)
    if conditions:
        query = query.where(and_(*conditions))
    return await paginate(db, query.order_by(NotificationLog.sent_at.desc()), page, page_size)


@router.get("/stats")
async def notification_log_stats(
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """Delivery counts per status and per category"""
    by_status = (await db.execute(
        select(NotificationLog.status, func.count(NotificationLog.id)).group_by(NotificationLog.status)
    )).all()
    by_category = (await db.execute(
        select(NotificationLog.category, func.count(NotificationLog.id)).group_by(NotificationLog.category)
    )).all()
    return {
        "by_status": {s.value: c for s, c in by_status},
        "by_category": {cat.value: c for cat, c in by_category},
    }
