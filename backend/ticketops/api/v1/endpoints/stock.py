"""
Spare stock endpoints: inventory, stock additions, transfers between
sites, requisitions and the movement log.
"""
from fastapi import APIRouter, Depends, Query, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_, and_
from datetime import date, datetime, timedelta
from typing import Optional, List

from ticketops.core.database import get_db
from ticketops.models.asset import Asset, AssetStatus
from ticketops.models.stock import (
    StockTransfer, TransferStatus, Requisition, RequisitionStatus, RequisitionType,
    StockMovementLog, MovementType,
)
from ticketops.models.user import User, UserRole
from ticketops.models.user_right import Right
from ticketops.modules.auth.dependencies import get_current_user, allow_access, user_has_right
from ticketops.schemas.asset import AssetResponse, AssetDropdownItem
from ticketops.schemas.common import Page
from ticketops.schemas.stock import (
    StockAdd, StockItemUpdate, InventoryGroup, TransferCreate, DispatchRequest,
    TransferResponse, RequisitionCreate, FulfillRequest, RequisitionResponse,
    MovementLogResponse,
)
from ticketops.schemas.ticket import ReasonRequest
from ticketops.services import stock_service
from ticketops.utils.pagination import paginate

router = APIRouter()

STOCK_MANAGER_ROLES = (UserRole.ADMIN, UserRole.SUPERVISOR)

stock_approver = allow_access(roles=STOCK_MANAGER_ROLES)
staff_only = allow_access(roles=[r for r in UserRole if r not in (UserRole.CLIENT_VIEWER, UserRole.SITE_CLIENT)])


async def _require_stock_manager(db: AsyncSession, user: User, site_id: Optional[str]) -> None:
    """Admin/Supervisor, or MANAGE_SITE_STOCK for ``site_id``"""
    if user.role in STOCK_MANAGER_ROLES:
        return
    if await user_has_right(db, user, Right.MANAGE_SITE_STOCK, site_id):
        return
    raise HTTPException(status_code=403, detail="Not authorized to manage stock at this site")


def _dropdown(assets: List[Asset]) -> List[dict]:
    return [AssetDropdownItem.model_validate(a).model_dump() for a in assets]


# ==================== Inventory ====================

@router.get("/inventory", response_model=List[InventoryGroup])
async def inventory(
    site_id: Optional[str] = None,
    asset_type: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Spare counts grouped by site and asset type"""
    return await stock_service.get_inventory(db, current_user, site_id=site_id, asset_type=asset_type)


@router.get("/availability/{ticket_id}")
async def availability_for_ticket(
    ticket_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(staff_only)
):
    availability = await stock_service.get_availability_for_ticket(db, ticket_id)
    availability["site_stock"] = _dropdown(availability["site_stock"])
    availability["head_office_stock"] = _dropdown(availability["head_office_stock"])
    return availability


@router.get("/spares", response_model=Page[AssetDropdownItem])
async def list_spares(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    site_id: Optional[str] = None,
    asset_type: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    conditions = [Asset.is_active.is_(True), Asset.status == AssetStatus.SPARE]
    if site_id:
        conditions.append(Asset.site_id == site_id)
    if asset_type:
        conditions.append(Asset.asset_type == asset_type)
    allowed = stock_service.visible_site_ids(current_user)
    if allowed is not None:
        conditions.append(Asset.site_id.in_(allowed))

    query = select(Asset).where(and_(*conditions)).order_by(Asset.asset_code)
    return await paginate(db, query, page, page_size)


@router.post("/add", response_model=List[AssetDropdownItem], status_code=201)
async def add_stock(
    payload: StockAdd,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    await _require_stock_manager(db, current_user, payload.site_id)
    created = await stock_service.add_stock(db, payload, current_user)
    await db.commit()
    return _dropdown(created)


@router.put("/items/{asset_id}", response_model=AssetResponse)
async def update_stock_item(
    asset_id: str,
    payload: StockItemUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    asset = await stock_service.get_spare(db, asset_id)
    await _require_stock_manager(db, current_user, asset.site_id)
    await stock_service.update_spare(db, asset, payload, current_user)
    await db.commit()
    await db.refresh(asset)

    data = AssetResponse.model_validate(asset).model_dump()
    data["user_name"] = data["password"] = None
    return data


@router.delete("/items/{asset_id}")
async def delete_stock_item(
    asset_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    asset = await stock_service.get_spare(db, asset_id)
    await _require_stock_manager(db, current_user, asset.site_id)
    await stock_service.remove_spare(db, asset, current_user)
    await db.commit()
    return {"message": "Stock item removed"}


# ==================== Transfers ====================

@router.get("/transfers", response_model=Page[TransferResponse])
async def list_transfers(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[TransferStatus] = None,
    site_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(staff_only)
):
    conditions = []
    if status:
        conditions.append(StockTransfer.status == status)
    if site_id:
        conditions.append(or_(
            StockTransfer.source_site_id == site_id,
            StockTransfer.destination_site_id == site_id,
        ))

    query = select(StockTransfer)
    if conditions:
        query = query.where(and_(*conditions))
    return await paginate(db, query.order_by(StockTransfer.created_at.desc()), page, page_size)


@router.get("/transfers/dispatched/{site_id}", response_model=List[TransferResponse])
async def dispatched_for_site(
    site_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(staff_only)
):
    """Transfers on their way to ``site_id``"""
    result = await db.execute(
        select(StockTransfer)
        .where(and_(
            StockTransfer.destination_site_id == site_id,
            StockTransfer.status.in_([TransferStatus.IN_TRANSIT, TransferStatus.DISPATCHED]),
        ))
        .order_by(StockTransfer.dispatched_at.desc())
    )
    return result.scalars().all()


@router.get("/transfers/{transfer_id}", response_model=TransferResponse)
async def get_transfer(
    transfer_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(staff_only)
):
    return await stock_service.get_transfer(db, transfer_id)


@router.post("/transfers", response_model=TransferResponse, status_code=201)
async def initiate_transfer(
    payload: TransferCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    await _require_stock_manager(db, current_user, payload.source_site_id)
    transfer = await stock_service.initiate_transfer(db, payload, current_user)
    await db.commit()
    await db.refresh(transfer)
    return transfer


@router.post("/transfers/{transfer_id}/approve", response_model=TransferResponse)
async def approve_transfer(
    transfer_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(stock_approver)
):
    transfer = await stock_service.get_transfer(db, transfer_id)
    await stock_service.approve_transfer(db, transfer, current_user)
    await db.commit()
    await db.refresh(transfer)
    return transfer


@router.post("/transfers/{transfer_id}/dispatch", response_model=TransferResponse)
async def dispatch_transfer(
    transfer_id: str,
    payload: DispatchRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(allow_access(roles=[UserRole.ADMIN]))
):
    transfer = await stock_service.get_transfer(db, transfer_id)
    await stock_service.dispatch_transfer(db, transfer, current_user, payload.shipping_details)
    await db.commit()
    await db.refresh(transfer)
    return transfer


@router.post("/transfers/{transfer_id}/receive", response_model=TransferResponse)
async def receive_transfer(
    transfer_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    transfer = await stock_service.get_transfer(db, transfer_id)
    await _require_stock_manager(db, current_user, transfer.destination_site_id)
    await stock_service.receive_transfer(db, transfer, current_user)
    await db.commit()
    await db.refresh(transfer)
    return transfer


@router.post("/transfers/{transfer_id}/reject", response_model=TransferResponse)
async def reject_transfer(
    transfer_id: str,
    payload: ReasonRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(stock_approver)
):
    transfer = await stock_service.get_transfer(db, transfer_id)
    await stock_service.close_transfer(db, transfer, current_user, TransferStatus.REJECTED, payload.reason)
    await db.commit()
    await db.refresh(transfer)
    return transfer


@router.post("/transfers/{transfer_id}/cancel", response_model=TransferResponse)
async def cancel_transfer(
    transfer_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    transfer = await stock_service.get_transfer(db, transfer_id)
    if transfer.initiated_by != current_user.id and current_user.role not in STOCK_MANAGER_ROLES:
        raise HTTPException(status_code=403, detail="Only the initiator can cancel this transfer")
    await stock_service.close_transfer(db, transfer, current_user, TransferStatus.CANCELLED)
    await db.commit()
    await db.refresh(transfer)
    return transfer


# ==================== Requisitions ====================

@router.get("/requisitions", response_model=Page[RequisitionResponse])
async def list_requisitions(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[RequisitionStatus] = None,
    requisition_type: Optional[RequisitionType] = None,
    site_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(staff_only)
):
    conditions = []
    if status:
        conditions.append(Requisition.status == status)
    if requisition_type:
        conditions.append(Requisition.requisition_type == requisition_type)
    if site_id:
        conditions.append(Requisition.requesting_site_id == site_id)

    query = select(Requisition)
    if conditions:
        query = query.where(and_(*conditions))
    return await paginate(db, query.order_by(Requisition.created_at.desc()), page, page_size)


@router.get("/requisitions/{requisition_id}", response_model=RequisitionResponse)
async def get_requisition(
    requisition_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(staff_only)
):
    return await stock_service.get_requisition(db, requisition_id)


@router.post("/requisitions", response_model=RequisitionResponse, status_code=201)
async def create_requisition(
    payload: RequisitionCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(staff_only)
):
    requisition = await stock_service.create_requisition(db, payload, current_user)
    await db.commit()
    await db.refresh(requisition)
    return requisition


@router.post("/requisitions/{requisition_id}/approve", response_model=RequisitionResponse)
async def approve_requisition(
    requisition_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(stock_approver)
):
    requisition = await stock_service.get_requisition(db, requisition_id)
    await stock_service.approve_requisition(db, requisition, current_user)
    await db.commit()
    await db.refresh(requisition)
    return requisition


@router.post("/requisitions/{requisition_id}/fulfill", response_model=RequisitionResponse)
async def fulfill_requisition(
    requisition_id: str,
    payload: FulfillRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(stock_approver)
):
    requisition = await stock_service.get_requisition(db, requisition_id)
    await stock_service.fulfill_requisition(db, requisition, payload.asset_ids, current_user)
    await db.commit()
    await db.refresh(requisition)
    return requisition


@router.post("/requisitions/{requisition_id}/reject", response_model=RequisitionResponse)
async def reject_requisition(
    requisition_id: str,
    payload: Optional[ReasonRequest] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(stock_approver)
):
    requisition = await stock_service.get_requisition(db, requisition_id)
    await stock_service.reject_requisition(db, requisition, current_user, payload.reason if payload else None)
    await db.commit()
    await db.refresh(requisition)
    return requisition


@router.post("/requisitions/{requisition_id}/cancel", response_model=RequisitionResponse)
async def cancel_requisition(
    requisition_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    requisition = await stock_service.get_requisition(db, requisition_id)
    await stock_service.cancel_requisition(db, requisition, current_user)
    await db.commit()
    await db.refresh(requisition)
    return requisition


# ==================== Movement log ====================

@router.get("/movements", response_model=Page[MovementLogResponse])
async def list_movements(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    asset_id: Optional[str] = None,
    movement_type: Optional[MovementType] = None,
    site_id: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(staff_only)
):
    conditions = []
    if asset_id:
        conditions.append(StockMovementLog.asset_id == asset_id)
    if movement_type:
        conditions.append(StockMovementLog.movement_type == movement_type)
    if site_id:
        conditions.append(or_(
            StockMovementLog.from_site_id == site_id,
            StockMovementLog.to_site_id == site_id,
        ))
    if start_date:
        conditions.append(StockMovementLog.created_at >= datetime.combine(start_date, datetime.min.time()))
    if end_date:
        conditions.append(StockMovementLog.created_at < datetime.combine(end_date + timedelta(days=1), datetime.min.time()))

    query = select(StockMovementLog)
    if conditions:
        query = query.where(and_(*conditions))
    return await paginate(db, query.order_by(StockMovementLog.created_at.desc()), page, page_size)


@router.get("/movements/stats")
async def movement_stats(
    site_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(staff_only)
):
    return await stock_service.movement_stats(db, site_id)
