from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_, and_
from typing import Optional, List

from ticketops.core.database import get_db
from ticketops.models.rma import RMARequest, RMAStatus
from ticketops.models.user import User, MANAGER_ROLES, ENGINEER_ROLES
from ticketops.modules.auth.dependencies import get_current_user, allow_access
from ticketops.schemas.common import Page
from ticketops.schemas.rma import RMACreate, RMAUpdate, RMAResponse
from ticketops.services import rma_service
from ticketops.services.stock_service import visible_site_ids
from ticketops.utils.pagination import paginate

router = APIRouter()

rma_staff = allow_access(roles=[*MANAGER_ROLES, *ENGINEER_ROLES])


@router.get("", response_model=Page[RMAResponse])
async def list_rmas(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[RMAStatus] = None,
    site_id: Optional[str] = None,
    search: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    conditions = []
    if status:
        conditions.append(RMARequest.status == status)
    if site_id:
        conditions.append(RMARequest.site_id == site_id)
    if search:
        term = f"%{search}%"
        conditions.append(or_(
            RMARequest.rma_number.ilike(term),
            RMARequest.request_reason.ilike(term),
        ))
    allowed = visible_site_ids(current_user)
    if allowed is not None:
        conditions.append(RMARequest.site_id.in_(allowed))

    query = select(RMARequest)
    if conditions:
        query = query.where(and_(*conditions))
    return await paginate(db, query.order_by(RMARequest.created_at.desc()), page, page_size)


@router.post("", response_model=RMAResponse, status_code=201)
async def create_rma(
    payload: RMACreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(rma_staff)
):
    rma = await rma_service.create_rma(db, payload, current_user)
    await db.commit()
    await db.refresh(rma)
    return rma


@router.get("/ticket/{ticket_id}", response_model=Optional[RMAResponse])
async def get_rma_for_ticket(
    ticket_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Latest RMA raised for the ticket, or null"""
    return await rma_service.get_by_ticket(db, ticket_id)


@router.get("/asset/{asset_id}/history", response_model=List[RMAResponse])
async def asset_rma_history(
    asset_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await rma_service.history_for_asset(db, asset_id)


@router.get("/{rma_id}", response_model=RMAResponse)
async def get_rma(
    rma_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await rma_service.get_rma(db, rma_id)


@router.put("/{rma_id}", response_model=RMAResponse)
async def update_rma(
    rma_id: str,
    payload: RMAUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(rma_staff)
):
    rma = await rma_service.get_rma(db, rma_id)
    await rma_service.update_rma(db, rma, payload, current_user)
    await db.commit()
    await db.refresh(rma)
    return rma
