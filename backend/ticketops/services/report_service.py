"""Reporting queries and CSV export"""
import csv
import io
from datetime import datetime, date, timedelta
from typing import Optional

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from ticketops.models.asset import Asset, AssetStatus
from ticketops.models.rma import RMARequest
from ticketops.models.ticket import Ticket, TicketStatus
from ticketops.models.user import User
from ticketops.models.worklog import DailyWorkLog, WorkLogEntry

RESOLVED_STATUSES = (TicketStatus.RESOLVED, TicketStatus.VERIFIED, TicketStatus.CLOSED)

CSV_COLUMNS = (
    "ticket_number", "title", "category", "priority", "status", "site_id",
    "asset_id", "assigned_to", "created_at", "resolved_on", "closed_on",
    "is_sla_restore_breached",
)


def _range_conditions(column, start: Optional[date], end: Optional[date]) -> list:
    conditions = []
    if start:
        conditions.append(column >= datetime.combine(start, datetime.min.time()))
    if end:
        conditions.append(column < datetime.combine(end + timedelta(days=1), datetime.min.time()))
    return conditions


def _ticket_conditions(start, end, site_id) -> list:
    conditions = _range_conditions(Ticket.created_at, start, end)
    if site_id:
        conditions.append(Ticket.site_id == site_id)
    return conditions


async def _group_count(db: AsyncSession, column, conditions, count_column) -> dict:
    stmt = select(column, func.count(count_column)).group_by(column)
    if conditions:
        stmt = stmt.where(and_(*conditions))
    rows = (await db.execute(stmt)).all()
    return {getattr(key, "value", key) or "Unspecified": count for key, count in rows}


async def ticket_stats(db: AsyncSession, start: Optional[date] = None, end: Optional[date] = None,
                       site_id: Optional[str] = None) -> dict:
    conditions = _ticket_conditions(start, end, site_id)

    resolved_rows = (await db.execute(
        select(Ticket.created_at, Ticket.resolved_on).where(and_(
            *conditions,
            Ticket.status.in_(RESOLVED_STATUSES),
            Ticket.resolved_on.isnot(None),
        ))
    )).all()
    hours = [(resolved - created).total_seconds() / 3600 for created, resolved in resolved_rows]

    by_status = await _group_count(db, Ticket.status, conditions, Ticket.id)
    return {
        "total": sum(by_status.values()),
        "by_status": by_status,
        "by_priority": await _group_count(db, Ticket.priority, conditions, Ticket.id),
        "by_category": await _group_count(db, Ticket.category, conditions, Ticket.id),
        "resolution_time_hours": {
            "count": len(hours),
            "average": round(sum(hours) / len(hours), 2) if hours else None,
            "min": round(min(hours), 2) if hours else None,
            "max": round(max(hours), 2) if hours else None,
        },
    }


async def sla_performance(db: AsyncSession, start: Optional[date] = None, end: Optional[date] = None,
                          site_id: Optional[str] = None) -> dict:
    conditions = _ticket_conditions(start, end, site_id)
    conditions.append(Ticket.sla_restore_due.isnot(None))

    total = (await db.scalar(select(func.count(Ticket.id)).where(and_(*conditions)))) or 0
    breached = (await db.scalar(
        select(func.count(Ticket.id)).where(and_(*conditions, Ticket.is_sla_restore_breached.is_(True)))
    )) or 0
    met = total - breached
    return {
        "total": total,
        "breached": breached,
        "met": met,
        "compliance_percent": round(met / total * 100, 1) if total else 100.0,
    }


async def asset_stats(db: AsyncSession, site_id: Optional[str] = None) -> dict:
    conditions = [Asset.is_active.is_(True), Asset.status != AssetStatus.SPARE]
    if site_id:
        conditions.append(Asset.site_id == site_id)
    by_status = await _group_count(db, Asset.status, conditions, Asset.id)
    return {
        "total": sum(by_status.values()),
        "by_status": by_status,
        "by_device_type": await _group_count(db, Asset.device_type, conditions, Asset.id),
    }


async def rma_stats(db: AsyncSession, start: Optional[date] = None, end: Optional[date] = None) -> dict:
    conditions = _range_conditions(RMARequest.created_at, start, end)
    by_status = await _group_count(db, RMARequest.status, conditions, RMARequest.id)
    return {
        "total": sum(by_status.values()),
        "by_status": by_status,
        "by_replacement_source": await _group_count(db, RMARequest.replacement_source, conditions, RMARequest.id),
    }


async def worklog_stats(db: AsyncSession, start: Optional[date] = None, end: Optional[date] = None) -> list:
    conditions = []
    if start:
        conditions.append(DailyWorkLog.log_date >= start)
    if end:
        conditions.append(DailyWorkLog.log_date <= end)

    stmt = (
        select(User.id, User.full_name, User.role, func.count(func.distinct(DailyWorkLog.id)), func.count(WorkLogEntry.id))
        .join(DailyWorkLog, DailyWorkLog.user_id == User.id)
        .outerjoin(WorkLogEntry, WorkLogEntry.work_log_id == DailyWorkLog.id)
        .group_by(User.id, User.full_name, User.role)
        .order_by(func.count(WorkLogEntry.id).desc())
    )
    if conditions:
        stmt = stmt.where(and_(*conditions))
    return [
        {"user_id": uid, "full_name": name, "role": role.value, "days_logged": days, "entries": entries}
        for uid, name, role, days, entries in (await db.execute(stmt)).all()
    ]


async def export_tickets_csv(db: AsyncSession, start: Optional[date] = None, end: Optional[date] = None,
                             site_id: Optional[str] = None) -> str:
    conditions = _ticket_conditions(start, end, site_id)
    stmt = select(Ticket).order_by(Ticket.created_at.asc())
    if conditions:
        stmt = stmt.where(and_(*conditions))

    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(CSV_COLUMNS)
    for ticket in (await db.execute(stmt)).scalars().all():
        row = []
        for column in CSV_COLUMNS:
            value = getattr(ticket, column)
            if isinstance(value, datetime):
                value = value.isoformat(sep=" ", timespec="seconds")
            row.append(getattr(value, "value", value) if value is not None else "")
        writer.writerow(row)
    return buffer.getvalue()


ASSET_CSV_COLUMNS = (
    "asset_code", "asset_type", "device_type", "make", "model", "serial_number",
    "mac", "ip_address", "site_id", "location_name", "criticality", "status",
    "installation_date", "warranty_end_date",
)


async def export_assets_csv(db: AsyncSession, site_id: Optional[str] = None,
                            status: Optional[AssetStatus] = None) -> str:
    """Active assets; device credentials are never exported"""
    conditions = [Asset.is_active.is_(True)]
    if site_id:
        conditions.append(Asset.site_id == site_id)
    if status:
        conditions.append(Asset.status == status)
    stmt = select(Asset).where(and_(*conditions)).order_by(Asset.asset_code)

    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(ASSET_CSV_COLUMNS)
    for asset in (await db.execute(stmt)).scalars().all():
        row = []
        for column in ASSET_CSV_COLUMNS:
            value = getattr(asset, column)
            if isinstance(value, datetime):
                value = value.date().isoformat()
            row.append(getattr(value, "value", value) if value is not None else "")
        writer.writerow(row)
    return buffer.getvalue()
