from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ticketops.core.database import get_db
from ticketops.models.user import User
from ticketops.modules.auth.dependencies import get_current_user, get_current_admin
from ticketops.schemas.common import CountResponse
from ticketops.schemas.notification import NotificationCreate, NotificationResponse, NotificationList
from ticketops.services import notification_service
from ticketops.utils.pagination import page_bounds

router = APIRouter()


@router.get("", response_model=NotificationList)
async def list_notifications(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    unread_only: bool = False,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Own notifications and active broadcasts, newest first"""
    page, page_size = page_bounds(page, page_size)
    notifications = await notification_service.visible_notifications(db, current_user)
    unread = [n for n in notifications if not n.is_read_by(current_user.id)]
    selected = unread if unread_only else notifications

    total = len(selected)
    start = (page - 1) * page_size
    return {
        "items": [notification_service.serialize(n, current_user.id) for n in selected[start:start + page_size]],
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": (total + page_size - 1) // page_size if total else 1,
        "unread_count": len(unread),
    }


@router.get("/unread-count", response_model=CountResponse)
async def unread_count(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return {"count": await notification_service.unread_count(db, current_user)}


@router.put("/read-all")
async def mark_all_read(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    marked = await notification_service.mark_all_read(db, current_user)
    await db.commit()
    return {"message": f"{marked} notification(s) marked as read", "count": marked}


@router.put("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    notification = await notification_service.mark_read(db, current_user, notification_id)
    await db.commit()
    await db.refresh(notification)
    return notification_service.serialize(notification, current_user.id)


@router.post("", response_model=NotificationResponse, status_code=201)
async def create_notification(
    payload: NotificationCreate,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """Send to one user, or to everyone when ``user_id`` is omitted"""
    notification = notification_service.notify(
        db, payload.user_id, payload.title, payload.message,
        type=payload.type, link=payload.link,
        created_by=current_admin.id, expires_at=payload.expires_at,
    )
    await db.commit()
    await db.refresh(notification)
    return notification_service.serialize(notification, current_admin.id)


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    await notification_service.delete_notification(db, current_user, notification_id)
    await db.commit()
    return {"message": "Notification deleted"}
