"""
SLA monitor
===========

Two periodic jobs, scheduled by Celery beat (see ``ticketops.tasks.sla_tasks``):

- ``send_breach_warnings``: during business hours, warn assignees about open
  tickets whose restore deadline falls within the warning window.
- ``check_sla_breaches``: flag open tickets past their restore deadline and
  alert the assignee and every active admin.

Each ticket is processed and committed on its own, so one failure does not
stop the run.
"""
from datetime import datetime, timedelta
from typing import Optional, List
from zoneinfo import ZoneInfo

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from ticketops.core.config import settings
from ticketops.core.logging_config import logger
from ticketops.models.ticket import Ticket, TicketStatus
from ticketops.models.notification import NotificationType
from ticketops.models.user import User, UserRole
from ticketops.services import notification_service
from ticketops.services.email_service import email_service

EXCLUDED_STATUSES = (
    TicketStatus.CLOSED,
    TicketStatus.RESOLVED,
    TicketStatus.CANCELLED,
    TicketStatus.VERIFIED,
)


def is_business_hours(now: Optional[datetime] = None) -> bool:
    now = now or datetime.utcnow()
    local = now.replace(tzinfo=ZoneInfo("UTC")).astimezone(ZoneInfo(settings.TIMEZONE))
    return settings.SLA_BUSINESS_HOURS_START <= local.hour < settings.SLA_BUSINESS_HOURS_END


async def _ids(db: AsyncSession, *conditions) -> List[str]:
    result = await db.execute(
        select(Ticket.id)
        .where(and_(Ticket.status.notin_(EXCLUDED_STATUSES), *conditions))
        .order_by(Ticket.sla_restore_due.asc())
    )
    return [row[0] for row in result.all()]


async def send_breach_warnings(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """Returns the number of tickets warned about"""
    now = now or datetime.utcnow()
    if not is_business_hours(now):
        logger.info("[SLA] Outside business hours, skipping breach warnings")
        return 0

    window_end = now + timedelta(hours=settings.SLA_WARNING_WINDOW_HOURS)
    ticket_ids = await _ids(
        db,
        Ticket.assigned_to.isnot(None),
        Ticket.sla_restore_due > now,
        Ticket.sla_restore_due <= window_end,
        Ticket.is_breach_warning_sent.is_(False),
    )

    warned = 0
    for ticket_id in ticket_ids:
        try:
            ticket = await db.get(Ticket, ticket_id)
            assignee = await db.get(User, ticket.assigned_to)
            if assignee is None or not assignee.is_active:
                continue

            minutes_left = int((ticket.sla_restore_due - now).total_seconds() // 60)
            sent = await email_service.send_breach_warning(ticket, assignee, minutes_left, db=db)
            if not sent:
                # Flag stays clear so the next run retries
                await db.commit()
                logger.warning(f"[SLA] Breach warning e-mail for {ticket.ticket_number} not sent")
                continue
            notification_service.notify(
                db, assignee.id, f"SLA warning: {ticket.ticket_number}",
                f"Restore SLA for '{ticket.title}' breaches in {minutes_left} minutes",
                type=NotificationType.WARNING, link=f"/tickets/{ticket.id}",
            )
            ticket.is_breach_warning_sent = True
            await db.commit()
            warned += 1
        except Exception as e:
            await db.rollback()
            logger.error(f"[SLA] Breach warning failed for ticket {ticket_id}: {e}")

    if warned:
        logger.info(f"[SLA] Sent {warned} breach warning(s)")
    return warned


async def check_sla_breaches(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """Returns the number of tickets newly flagged as breached"""
    now = now or datetime.utcnow()
    ticket_ids = await _ids(
        db,
        Ticket.sla_restore_due.isnot(None),
        Ticket.sla_restore_due < now,
        Ticket.is_sla_breach_notification_sent.is_(False),
    )
    if not ticket_ids:
        return 0

    admin_ids = [row[0] for row in (await db.execute(
        select(User.id).where(and_(User.role == UserRole.ADMIN, User.is_active.is_(True)))
    )).all()]

    flagged = 0
    for ticket_id in ticket_ids:
        try:
            ticket = await db.get(Ticket, ticket_id)
            ticket.is_sla_restore_breached = True

            recipients = {}
            for admin_id in admin_ids:
                recipients[admin_id] = await db.get(User, admin_id)
            if ticket.assigned_to:
                assignee = await db.get(User, ticket.assigned_to)
                if assignee is not None and assignee.is_active:
                    recipients[assignee.id] = assignee

            for recipient in recipients.values():
                await email_service.send_sla_breach(ticket, recipient, db=db)
                notification_service.notify(
                    db, recipient.id, f"SLA breached: {ticket.ticket_number}",
                    f"Restore SLA for '{ticket.title}' ({ticket.priority.value}) has been breached",
                    type=NotificationType.ERROR, link=f"/tickets/{ticket.id}",
                )

            ticket.is_sla_breach_notification_sent = True
            await db.commit()
            flagged += 1
            logger.log_ticket_event(ticket.ticket_number, "sla_breach", ticket.status.value, ticket.status.value)
        except Exception as e:
            await db.rollback()
            logger.error(f"[SLA] Breach check failed for ticket {ticket_id}: {e}")

    return flagged
