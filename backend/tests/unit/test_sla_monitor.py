"""
Unit Tests for the SLA monitor
Tests for: business hours, breach warnings, breach flagging
"""
import pytest
from datetime import datetime, timedelta
from unittest.mock import patch, AsyncMock
from sqlalchemy import select

from ticketops.models.notification import Notification, NotificationLog, DeliveryStatus
from ticketops.models.ticket import Ticket, TicketStatus, TicketPriority, TicketCategory
from ticketops.services import sla_monitor
from ticketops.services.email_service import email_service

# 11:30 and 19:30 in Asia/Kolkata
IN_HOURS = datetime(2025, 3, 10, 6, 0)
AFTER_HOURS = datetime(2025, 3, 10, 14, 0)


def _ticket(creator, number, restore_due, assigned_to=None, status=TicketStatus.IN_PROGRESS, **extra):
    return Ticket(
        ticket_number=number,
        category=TicketCategory.NETWORK,
        title=f"Link down {number}",
        priority=TicketPriority.P2,
        status=status,
        created_by=creator.id,
        assigned_to=assigned_to,
        sla_restore_due=restore_due,
        created_at=restore_due - timedelta(hours=8),
        **extra,
    )


class TestBusinessHours:

    def test_inside_hours(self):
        assert sla_monitor.is_business_hours(IN_HOURS) is True

    def test_after_hours(self):
        assert sla_monitor.is_business_hours(AFTER_HOURS) is False

    def test_boundary_uses_local_time(self):
        # 03:30 UTC is 09:00 IST
        assert sla_monitor.is_business_hours(datetime(2025, 3, 10, 3, 30)) is True
        assert sla_monitor.is_business_hours(datetime(2025, 3, 10, 3, 29)) is False


class TestBreachWarnings:

    @pytest.mark.asyncio
    async def test_warns_once_inside_window(self, db_session, dispatcher_user, engineer_user):
        due_soon = _ticket(dispatcher_user, "TKT-1", IN_HOURS + timedelta(hours=2), engineer_user.id)
        due_later = _ticket(dispatcher_user, "TKT-2", IN_HOURS + timedelta(hours=6), engineer_user.id)
        db_session.add_all([due_soon, due_later])
        await db_session.commit()

        with patch.object(email_service, "send_breach_warning", AsyncMock(return_value=True)) as send:
            assert await sla_monitor.send_breach_warnings(db_session, now=IN_HOURS) == 1
            assert await sla_monitor.send_breach_warnings(db_session, now=IN_HOURS) == 0
        assert send.await_count == 1

        await db_session.refresh(due_soon)
        assert due_soon.is_breach_warning_sent is True

        notes = (await db_session.execute(
            select(Notification).where(Notification.user_id == engineer_user.id)
        )).scalars().all()
        assert [n.title for n in notes] == ["SLA warning: TKT-1"]

    @pytest.mark.asyncio
    async def test_skips_outside_business_hours(self, db_session, dispatcher_user, engineer_user):
        db_session.add(_ticket(dispatcher_user, "TKT-1", AFTER_HOURS + timedelta(hours=1), engineer_user.id))
        await db_session.commit()

        assert await sla_monitor.send_breach_warnings(db_session, now=AFTER_HOURS) == 0

    @pytest.mark.asyncio
    async def test_ignores_unassigned_and_finished(self, db_session, dispatcher_user, engineer_user):
        db_session.add_all([
            _ticket(dispatcher_user, "TKT-1", IN_HOURS + timedelta(hours=1)),
            _ticket(dispatcher_user, "TKT-2", IN_HOURS + timedelta(hours=1), engineer_user.id,
                    status=TicketStatus.RESOLVED),
        ])
        await db_session.commit()

        assert await sla_monitor.send_breach_warnings(db_session, now=IN_HOURS) == 0

    @pytest.mark.asyncio
    async def test_failed_email_leaves_ticket_for_retry(self, db_session, dispatcher_user, engineer_user):
        ticket = _ticket(dispatcher_user, "TKT-1", IN_HOURS + timedelta(hours=1), engineer_user.id)
        db_session.add(ticket)
        await db_session.commit()

        # SMTP is not configured in tests, so the send fails
        assert await sla_monitor.send_breach_warnings(db_session, now=IN_HOURS) == 0

        await db_session.refresh(ticket)
        assert ticket.is_breach_warning_sent is False

        logs = (await db_session.execute(select(NotificationLog))).scalars().all()
        assert len(logs) == 1
        assert logs[0].status == DeliveryStatus.FAILED
        assert logs[0].recipient == engineer_user.email

        with patch.object(email_service, "send_breach_warning", AsyncMock(return_value=True)):
            assert await sla_monitor.send_breach_warnings(db_session, now=IN_HOURS) == 1

        await db_session.refresh(ticket)
        assert ticket.is_breach_warning_sent is True


class TestBreachCheck:

    @pytest.mark.asyncio
    async def test_flags_overdue_and_alerts_admins(self, db_session, admin_user, dispatcher_user, engineer_user):
        now = datetime(2025, 3, 10, 12, 0)
        overdue = _ticket(dispatcher_user, "TKT-1", now - timedelta(minutes=5), engineer_user.id)
        on_time = _ticket(dispatcher_user, "TKT-2", now + timedelta(minutes=5), engineer_user.id)
        db_session.add_all([overdue, on_time])
        await db_session.commit()

        assert await sla_monitor.check_sla_breaches(db_session, now=now) == 1
        assert await sla_monitor.check_sla_breaches(db_session, now=now) == 0

        await db_session.refresh(overdue)
        await db_session.refresh(on_time)
        assert overdue.is_sla_restore_breached is True
        assert overdue.is_sla_breach_notification_sent is True
        assert on_time.is_sla_restore_breached is False

        recipients = {n.user_id for n in (await db_session.execute(select(Notification))).scalars().all()}
        assert recipients == {admin_user.id, engineer_user.id}

    @pytest.mark.asyncio
    async def test_closed_tickets_are_not_flagged(self, db_session, admin_user, dispatcher_user):
        now = datetime(2025, 3, 10, 12, 0)
        db_session.add(_ticket(dispatcher_user, "TKT-1", now - timedelta(hours=1), status=TicketStatus.CLOSED))
        await db_session.commit()

        assert await sla_monitor.check_sla_breaches(db_session, now=now) == 0
