"""
Daily work log bookkeeping.

``log_activity`` is called from every mutating endpoint. It never raises:
a failure to journal an activity must not fail the request that did the work.
"""
from datetime import date, datetime
from typing import Optional, List
from zoneinfo import ZoneInfo

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from ticketops.core.config import settings
from ticketops.core.exceptions import ResourceNotFoundError, ValidationError
from ticketops.core.logging_config import logger
from ticketops.models.worklog import (
    DailyWorkLog, WorkLogEntry, WorkLogCategory, CATEGORY_STAT_MAP,
    MANUAL_CATEGORIES, empty_stats,
)


def local_today(now: Optional[datetime] = None) -> date:
    """Today's date in the configured business time zone"""
    now = now or datetime.utcnow()
    return now.replace(tzinfo=ZoneInfo("UTC")).astimezone(ZoneInfo(settings.TIMEZONE)).date()


async def get_or_create_daily_log(db: AsyncSession, user_id: str, log_date: date) -> DailyWorkLog:
    result = await db.execute(
        select(DailyWorkLog).where(and_(
            DailyWorkLog.user_id == str(user_id),
            DailyWorkLog.log_date == log_date,
        ))
    )
    work_log = result.scalar_one_or_none()
    if work_log is None:
        work_log = DailyWorkLog(user_id=str(user_id), log_date=log_date, stats=empty_stats())
        db.add(work_log)
        await db.flush()
    return work_log


def _bump(work_log: DailyWorkLog, stat_key: Optional[str]) -> None:
    if not stat_key:
        return
    stats = dict(work_log.stats or empty_stats())
    stats[stat_key] = stats.get(stat_key, 0) + 1
    work_log.stats = stats


async def log_activity(
    db: AsyncSession,
    user_id: str,
    category: WorkLogCategory,
    description: str,
    ref_type: Optional[str] = None,
    ref_id: Optional[str] = None,
    details: Optional[dict] = None,
) -> Optional[WorkLogEntry]:
    """Record an automatic entry in the user's log for today"""
    try:
        work_log = await get_or_create_daily_log(db, user_id, local_today())
        entry = WorkLogEntry(
            work_log_id=work_log.id,
            category=category,
            description=description,
            source="auto",
            ref_type=ref_type,
            ref_id=str(ref_id) if ref_id else None,
            details=details or {},
        )
        db.add(entry)
        _bump(work_log, CATEGORY_STAT_MAP.get(category))
        return entry
    except Exception as e:
        logger.error(f"[WorkLog] Failed to log {category.value} for user {user_id}: {e}")
        return None


async def get_entries(db: AsyncSession, work_log_id: str) -> List[WorkLogEntry]:
    result = await db.execute(
        select(WorkLogEntry)
        .where(WorkLogEntry.work_log_id == work_log_id)
        .order_by(WorkLogEntry.timestamp.desc())
    )
    return list(result.scalars().all())


async def add_manual_entry(
    db: AsyncSession,
    user_id: str,
    category: WorkLogCategory,
    description: str,
    ref_type: Optional[str] = None,
    ref_id: Optional[str] = None,
    details: Optional[dict] = None,
) -> WorkLogEntry:
    if category not in MANUAL_CATEGORIES:
        raise ValidationError(
            f"Category {category.value} is recorded automatically and cannot be added manually",
            field="category",
        )

    work_log = await get_or_create_daily_log(db, user_id, local_today())
    entry = WorkLogEntry(
        work_log_id=work_log.id,
        category=category,
        description=description,
        source="manual",
        ref_type=ref_type,
        ref_id=ref_id,
        details=details or {},
    )
    db.add(entry)
    _bump(work_log, "manual_entries")
    await db.flush()
    return entry


async def update_today_summary(db: AsyncSession, user_id: str, summary: str) -> DailyWorkLog:
    work_log = await get_or_create_daily_log(db, user_id, local_today())
    work_log.summary = summary
    return work_log


async def delete_manual_entry(db: AsyncSession, user_id: str, entry_id: str) -> None:
    result = await db.execute(
        select(WorkLogEntry, DailyWorkLog)
        .join(DailyWorkLog, WorkLogEntry.work_log_id == DailyWorkLog.id)
        .where(and_(WorkLogEntry.id == entry_id, DailyWorkLog.user_id == str(user_id)))
    )
    row = result.first()
    if not row:
        raise ResourceNotFoundError("Work log entry", entry_id)

    entry, work_log = row
    if entry.source != "manual":
        raise ValidationError("Automatic entries cannot be deleted")

    stats = dict(work_log.stats or empty_stats())
    stats["manual_entries"] = max(0, stats.get("manual_entries", 0) - 1)
    work_log.stats = stats
    await db.delete(entry)
