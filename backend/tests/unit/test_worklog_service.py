"""
Unit Tests for daily work logs
"""
import pytest
from datetime import date, datetime
from sqlalchemy import select, func

from ticketops.core.exceptions import ValidationError, ResourceNotFoundError
from ticketops.models.worklog import DailyWorkLog, WorkLogEntry, WorkLogCategory
from ticketops.services import worklog_service


class TestLocalToday:

    def test_late_utc_evening_is_next_day_in_kolkata(self):
        assert worklog_service.local_today(datetime(2025, 3, 10, 20, 0)) == date(2025, 3, 11)

    def test_morning_utc_is_same_day(self):
        assert worklog_service.local_today(datetime(2025, 3, 10, 5, 0)) == date(2025, 3, 10)


class TestLogActivity:

    @pytest.mark.asyncio
    async def test_one_log_per_day_with_counters(self, db_session, engineer_user):
        await worklog_service.log_activity(db_session, engineer_user.id, WorkLogCategory.TICKET_CREATED, "Created")
        await worklog_service.log_activity(db_session, engineer_user.id, WorkLogCategory.TICKET_RESOLVED, "Resolved")
        await worklog_service.log_activity(db_session, engineer_user.id, WorkLogCategory.LOGIN, "Logged in")
        await db_session.commit()

        logs = (await db_session.execute(select(DailyWorkLog))).scalars().all()
        assert len(logs) == 1
        assert logs[0].stats["tickets_created"] == 1
        assert logs[0].stats["tickets_resolved"] == 1
        assert sum(logs[0].stats.values()) == 2

        entries = await worklog_service.get_entries(db_session, logs[0].id)
        assert len(entries) == 3
        assert {e.source for e in entries} == {"auto"}


class TestManualEntries:

    @pytest.mark.asyncio
    async def test_add_and_delete_manual_entry(self, db_session, engineer_user):
        entry = await worklog_service.add_manual_entry(
            db_session, engineer_user.id, WorkLogCategory.SITE_VISIT, "Visited MG Road"
        )
        await db_session.commit()
        work_log = await db_session.get(DailyWorkLog, entry.work_log_id)
        assert work_log.stats["manual_entries"] == 1

        await worklog_service.delete_manual_entry(db_session, engineer_user.id, entry.id)
        await db_session.commit()

        assert work_log.stats["manual_entries"] == 0
        assert (await db_session.scalar(select(func.count(WorkLogEntry.id)))) == 0

    @pytest.mark.asyncio
    async def test_automatic_category_rejected(self, db_session, engineer_user):
        with pytest.raises(ValidationError):
            await worklog_service.add_manual_entry(
                db_session, engineer_user.id, WorkLogCategory.TICKET_CREATED, "Sneaky"
            )

    @pytest.mark.asyncio
    async def test_cannot_delete_automatic_entry(self, db_session, engineer_user):
        entry = await worklog_service.log_activity(
            db_session, engineer_user.id, WorkLogCategory.TICKET_CREATED, "Created"
        )
        await db_session.commit()

        with pytest.raises(ValidationError):
            await worklog_service.delete_manual_entry(db_session, engineer_user.id, entry.id)

    @pytest.mark.asyncio
    async def test_cannot_delete_someone_elses_entry(self, db_session, engineer_user, dispatcher_user):
        entry = await worklog_service.add_manual_entry(
            db_session, engineer_user.id, WorkLogCategory.TRAINING, "Fiber splicing"
        )
        await db_session.commit()

        with pytest.raises(ResourceNotFoundError):
            await worklog_service.delete_manual_entry(db_session, dispatcher_user.id, entry.id)
