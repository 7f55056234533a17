"""Static enumerations used to fill filters and forms"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import List

from ticketops.core.database import get_db
from ticketops.models.asset import AssetStatus, DeviceType
from ticketops.models.rma import RMAStatus, ReplacementSource
from ticketops.models.stock import TransferStatus, RequisitionType, RequisitionStatus
from ticketops.models.ticket import TicketStatus, TicketPriority, TicketCategory, TicketSource
from ticketops.models.user import User, UserRole
from ticketops.models.user_right import ALL_RIGHTS
from ticketops.models.worklog import WorkLogCategory, MANUAL_CATEGORIES
from ticketops.modules.auth.dependencies import get_current_user

router = APIRouter()

STATIC_LOOKUPS = {
    "ticket-statuses": [s.value for s in TicketStatus],
    "priorities": [p.value for p in TicketPriority],
    "categories": [c.value for c in TicketCategory],
    "sources": [s.value for s in TicketSource],
    "asset-statuses": [s.value for s in AssetStatus],
    "roles": [r.value for r in UserRole],
    "rights": ALL_RIGHTS,
    "rma-statuses": [s.value for s in RMAStatus],
    "replacement-sources": [s.value for s in ReplacementSource],
    "transfer-statuses": [s.value for s in TransferStatus],
    "requisition-types": [t.value for t in RequisitionType],
    "requisition-statuses": [s.value for s in RequisitionStatus],
    "worklog-categories": [c.value for c in WorkLogCategory],
    "manual-worklog-categories": [c.value for c in MANUAL_CATEGORIES],
}


async def _asset_types(db: AsyncSession) -> List[str]:
    result = await db.execute(
        select(DeviceType.asset_type)
        .where(DeviceType.is_active.is_(True))
        .distinct()
        .order_by(DeviceType.asset_type)
    )
    return result.scalars().all()


@router.get("")
async def all_lookups(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return {**STATIC_LOOKUPS, "asset-types": await _asset_types(db)}


@router.get("/{kind}", response_model=List[str])
async def lookup(
    kind: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    if kind == "asset-types":
        return await _asset_types(db)
    if kind not in STATIC_LOOKUPS:
        raise HTTPException(status_code=404, detail=f"Unknown lookup: {kind}")
    return STATIC_LOOKUPS[kind]
