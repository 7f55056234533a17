from fastapi import APIRouter, Depends, Query, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_
from datetime import date
from typing import Optional, List

from ticketops.core.database import get_db
from ticketops.models.user import User, UserRole, CLIENT_ROLES
from ticketops.models.worklog import DailyWorkLog, WorkLogEntry
from ticketops.modules.auth.dependencies import get_current_user, allow_access
from ticketops.schemas.common import Page
from ticketops.schemas.worklog import (
    WorkLogEntryCreate, SummaryUpdate, WorkLogEntryResponse, DailyWorkLogResponse,
    TeamMemberSummary,
)
from ticketops.services import worklog_service
from ticketops.utils.pagination import paginate

router = APIRouter()

team_viewer = allow_access(roles=[UserRole.ADMIN, UserRole.SUPERVISOR])


async def _with_entries(db: AsyncSession, work_log: DailyWorkLog) -> dict:
    data = DailyWorkLogResponse.model_validate(work_log).model_dump()
    data["entries"] = await worklog_service.get_entries(db, work_log.id)
    return data


def _log_query(user_id: str, start_date: Optional[date], end_date: Optional[date]):
    conditions = [DailyWorkLog.user_id == user_id]
    if start_date:
        conditions.append(DailyWorkLog.log_date >= start_date)
    if end_date:
        conditions.append(DailyWorkLog.log_date <= end_date)
    return select(DailyWorkLog).where(and_(*conditions)).order_by(DailyWorkLog.log_date.desc())


@router.get("/my", response_model=Page[DailyWorkLogResponse])
async def my_logs(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """The caller's daily logs, newest day first (entries omitted)"""
    return await paginate(db, _log_query(current_user.id, start_date, end_date), page, page_size)


@router.get("/my/today", response_model=DailyWorkLogResponse)
async def my_today(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    work_log = await worklog_service.get_or_create_daily_log(
        db, current_user.id, worklog_service.local_today()
    )
    await db.commit()
    return await _with_entries(db, work_log)


@router.get("/my/{log_date}", response_model=DailyWorkLogResponse)
async def my_log_for_date(
    log_date: date,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    work_log = await db.scalar(
        select(DailyWorkLog).where(and_(
            DailyWorkLog.user_id == current_user.id,
            DailyWorkLog.log_date == log_date,
        ))
    )
    if not work_log:
        raise HTTPException(status_code=404, detail="No work log for this date")
    return await _with_entries(db, work_log)


@router.post("/entries", response_model=WorkLogEntryResponse, status_code=201)
async def add_entry(
    payload: WorkLogEntryCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    entry = await worklog_service.add_manual_entry(
        db, current_user.id, payload.category, payload.description,
        ref_type=payload.ref_type, ref_id=payload.ref_id, details=payload.details,
    )
    await db.commit()
    await db.refresh(entry)
    return entry


@router.delete("/entries/{entry_id}")
async def delete_entry(
    entry_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    await worklog_service.delete_manual_entry(db, current_user.id, entry_id)
    await db.commit()
    return {"message": "Entry deleted"}


@router.put("/my/today/summary", response_model=DailyWorkLogResponse)
async def update_summary(
    payload: SummaryUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    work_log = await worklog_service.update_today_summary(db, current_user.id, payload.summary)
    await db.commit()
    await db.refresh(work_log)
    return await _with_entries(db, work_log)


@router.get("/users/{user_id}", response_model=Page[DailyWorkLogResponse])
async def user_logs(
    user_id: str,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(team_viewer)
):
    if not await db.get(User, user_id):
        raise HTTPException(status_code=404, detail="User not found")
    return await paginate(db, _log_query(user_id, start_date, end_date), page, page_size)


@router.get("/users/{user_id}/{log_date}", response_model=DailyWorkLogResponse)
async def user_log_for_date(
    user_id: str,
    log_date: date,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(team_viewer)
):
    work_log = await db.scalar(
        select(DailyWorkLog).where(and_(
            DailyWorkLog.user_id == user_id,
            DailyWorkLog.log_date == log_date,
        ))
    )
    if not work_log:
        raise HTTPException(status_code=404, detail="No work log for this date")
    return await _with_entries(db, work_log)


@router.get("/team", response_model=List[TeamMemberSummary])
async def team_summary(
    log_date: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(team_viewer)
):
    """One row per active staff member for the day, including those with no log"""
    log_date = log_date or worklog_service.local_today()

    entry_counts = (
        select(WorkLogEntry.work_log_id, func.count(WorkLogEntry.id).label("entry_count"))
        .group_by(WorkLogEntry.work_log_id)
        .subquery()
    )
    result = await db.execute(
        select(User, DailyWorkLog, entry_counts.c.entry_count)
        .outerjoin(DailyWorkLog, and_(DailyWorkLog.user_id == User.id, DailyWorkLog.log_date == log_date))
        .outerjoin(entry_counts, entry_counts.c.work_log_id == DailyWorkLog.id)
        .where(and_(User.is_active.is_(True), User.role.notin_(CLIENT_ROLES)))
        .order_by(User.full_name)
    )
    return [
        {
            "user_id": user.id,
            "full_name": user.full_name,
            "role": user.role.value,
            "entry_count": entry_count or 0,
            "stats": work_log.stats if work_log else {},
            "summary": work_log.summary if work_log else None,
        }
        for user, work_log, entry_count in result.all()
    ]
