"""In-app notifications: per-user rows and broadcasts (user_id NULL)"""
from datetime import datetime
from typing import Optional, List

from sqlalchemy import select, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession

from ticketops.core.exceptions import ResourceNotFoundError, AuthorizationError
from ticketops.models.notification import Notification, NotificationType
from ticketops.models.user import User


def notify(
    db: AsyncSession,
    user_id: Optional[str],
    title: str,
    message: str,
    type: NotificationType = NotificationType.INFO,
    link: Optional[str] = None,
    created_by: Optional[str] = None,
    expires_at: Optional[datetime] = None,
) -> Notification:
    """Queue a notification on the session; the caller commits"""
    notification = Notification(
        user_id=str(user_id) if user_id else None,
        title=title,
        message=message,
        type=type,
        link=link,
        created_by=str(created_by) if created_by else None,
        expires_at=expires_at,
        read_by=[],
    )
    db.add(notification)
    return notification


async def visible_notifications(db: AsyncSession, user: User) -> List[Notification]:
    """Own notifications plus unexpired broadcasts, newest first"""
    now = datetime.utcnow()
    result = await db.execute(
        select(Notification)
        .where(or_(
            Notification.user_id == user.id,
            and_(
                Notification.user_id.is_(None),
                or_(Notification.expires_at.is_(None), Notification.expires_at > now),
            ),
        ))
        .order_by(Notification.created_at.desc())
    )
    return list(result.scalars().all())


async def unread_count(db: AsyncSession, user: User) -> int:
    notifications = await visible_notifications(db, user)
    return sum(1 for n in notifications if not n.is_read_by(user.id))


def serialize(notification: Notification, user_id: str) -> dict:
    return {
        "id": notification.id,
        "user_id": notification.user_id,
        "title": notification.title,
        "message": notification.message,
        "type": notification.type,
        "link": notification.link,
        "is_read": notification.is_read_by(user_id),
        "is_broadcast": notification.is_broadcast,
        "created_at": notification.created_at,
        "expires_at": notification.expires_at,
    }


async def _get_visible(db: AsyncSession, user: User, notification_id: str) -> Notification:
    notification = await db.get(Notification, notification_id)
    if not notification or (notification.user_id and notification.user_id != user.id):
        raise ResourceNotFoundError("Notification", notification_id)
    return notification


async def mark_read(db: AsyncSession, user: User, notification_id: str) -> Notification:
    notification = await _get_visible(db, user, notification_id)
    notification.mark_read_by(user.id)
    return notification


async def mark_all_read(db: AsyncSession, user: User) -> int:
    marked = 0
    for notification in await visible_notifications(db, user):
        if not notification.is_read_by(user.id):
            notification.mark_read_by(user.id)
            marked += 1
    return marked


async def delete_notification(db: AsyncSession, user: User, notification_id: str) -> None:
    notification = await db.get(Notification, notification_id)
    if not notification:
        raise ResourceNotFoundError("Notification", notification_id)
    if not user.is_admin and notification.user_id != user.id:
        raise AuthorizationError("Not authorized to delete this notification")
    await db.delete(notification)
