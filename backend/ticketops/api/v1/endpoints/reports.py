from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import date
from typing import Optional

from ticketops.core.database import get_db
from ticketops.models.user import User, MANAGER_ROLES
from ticketops.models.user_right import Right
from ticketops.modules.auth.dependencies import allow_access
from ticketops.services import report_service

router = APIRouter()

report_viewer = allow_access(roles=MANAGER_ROLES, rights=[Right.VIEW_REPORTS])


@router.get("/tickets")
async def ticket_report(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    site_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(report_viewer)
):
    """Counts by status/priority/category and resolution times"""
    return await report_service.ticket_stats(db, start_date, end_date, site_id)


@router.get("/sla")
async def sla_report(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    site_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(report_viewer)
):
    return await report_service.sla_performance(db, start_date, end_date, site_id)


@router.get("/assets")
async def asset_report(
    site_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(report_viewer)
):
    return await report_service.asset_stats(db, site_id)


@router.get("/rma")
async def rma_report(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(report_viewer)
):
    return await report_service.rma_stats(db, start_date, end_date)


@router.get("/worklogs")
async def worklog_report(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(report_viewer)
):
    return await report_service.worklog_stats(db, start_date, end_date)


@router.get("/tickets/export")
async def export_tickets(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    site_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(report_viewer)
):
    content = await report_service.export_tickets_csv(db, start_date, end_date, site_id)
    filename = f"tickets_{start_date or 'all'}_{end_date or 'now'}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )
