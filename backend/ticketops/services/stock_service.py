"""
Spare stock: inventory, additions, inter-site transfers, requisitions and
the movement log that records every change.
"""
from datetime import datetime
from typing import Optional, List

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from ticketops.core.config import settings
from ticketops.core.exceptions import (
    ResourceNotFoundError, ValidationError, ConflictError, InvalidTransitionError,
    AuthorizationError,
)
from ticketops.models.asset import Asset, AssetStatus
from ticketops.models.site import Site
from ticketops.models.ticket import Ticket
from ticketops.models.stock import (
    StockTransfer, TransferStatus, Requisition, RequisitionStatus,
    REQUISITION_PREFIXES, StockMovementLog, MovementType,
)
from ticketops.models.user import User
from ticketops.models.worklog import WorkLogCategory
from ticketops.services import worklog_service
from ticketops.utils.numbering import next_document_number

TRANSFER_PREFIX = "TRF"


def record_movement(
    db: AsyncSession,
    asset: Asset,
    movement_type: MovementType,
    performed_by: Optional[str],
    from_site_id: Optional[str] = None,
    to_site_id: Optional[str] = None,
    from_status: Optional[str] = None,
    to_status: Optional[str] = None,
    reference_type: Optional[str] = None,
    reference_id: Optional[str] = None,
    notes: Optional[str] = None,
) -> StockMovementLog:
    log = StockMovementLog(
        asset_id=asset.id,
        movement_type=movement_type,
        from_site_id=from_site_id,
        to_site_id=to_site_id,
        from_status=from_status,
        to_status=to_status,
        reference_type=reference_type,
        reference_id=reference_id,
        notes=notes,
        performed_by=str(performed_by) if performed_by else None,
    )
    db.add(log)
    return log


async def get_head_office(db: AsyncSession) -> Optional[Site]:
    result = await db.execute(
        select(Site).where(and_(
            Site.is_active.is_(True),
            (Site.is_head_office.is_(True)) | (Site.site_code == settings.HEAD_OFFICE_SITE_CODE),
        )).order_by(Site.is_head_office.desc())
    )
    return result.scalars().first()


def visible_site_ids(user: User) -> Optional[List[str]]:
    """None means every site"""
    if user.is_admin or not user.assigned_sites:
        return None
    return [str(s) for s in user.assigned_sites]


# ==================== Inventory ====================

async def get_inventory(
    db: AsyncSession,
    user: User,
    site_id: Optional[str] = None,
    asset_type: Optional[str] = None,
) -> List[dict]:
    """Spare assets grouped by (site, asset type)"""
    conditions = [Asset.is_active.is_(True), Asset.status == AssetStatus.SPARE]
    if site_id:
        conditions.append(Asset.site_id == site_id)
    if asset_type:
        conditions.append(Asset.asset_type == asset_type)
    allowed = visible_site_ids(user)
    if allowed is not None:
        conditions.append(Asset.site_id.in_(allowed))

    result = await db.execute(
        select(Asset.site_id, Site.site_name, Asset.asset_type, func.count(Asset.id))
        .outerjoin(Site, Site.id == Asset.site_id)
        .where(and_(*conditions))
        .group_by(Asset.site_id, Site.site_name, Asset.asset_type)
        .order_by(Site.site_name, Asset.asset_type)
    )
    return [
        {"site_id": sid, "site_name": name, "asset_type": atype, "count": count}
        for sid, name, atype, count in result.all()
    ]


async def get_availability_for_ticket(db: AsyncSession, ticket_id: str) -> dict:
    """Spares matching the ticket asset's type at the ticket's site and at head office"""
    ticket = await db.get(Ticket, ticket_id)
    if not ticket:
        raise ResourceNotFoundError("Ticket", ticket_id)
    if not ticket.asset_id:
        raise ValidationError("Ticket has no asset")
    asset = await db.get(Asset, ticket.asset_id)
    if not asset:
        raise ResourceNotFoundError("Asset", ticket.asset_id)

    async def spares(site_id: Optional[str]) -> List[Asset]:
        if not site_id:
            return []
        result = await db.execute(
            select(Asset).where(and_(
                Asset.is_active.is_(True),
                Asset.status == AssetStatus.SPARE,
                Asset.asset_type == asset.asset_type,
                Asset.site_id == site_id,
                Asset.id != asset.id,
            )).order_by(Asset.asset_code)
        )
        return list(result.scalars().all())

    head_office = await get_head_office(db)
    site_spares = await spares(ticket.site_id)
    ho_spares = [] if head_office is None or head_office.id == ticket.site_id else await spares(head_office.id)

    return {
        "asset_type": asset.asset_type,
        "device_type": asset.device_type,
        "site_id": ticket.site_id,
        "head_office_site_id": head_office.id if head_office else None,
        "site_stock": site_spares,
        "head_office_stock": ho_spares,
    }


async def add_stock(db: AsyncSession, data, user: User) -> List[Asset]:
    site = await db.get(Site, data.site_id)
    if not site or not site.is_active:
        raise ResourceNotFoundError("Site", data.site_id)

    codes = [item.asset_code for item in data.items]
    if len(set(codes)) != len(codes):
        raise ValidationError("Duplicate asset codes in request", field="asset_code")
    existing = (await db.execute(select(Asset.asset_code).where(Asset.asset_code.in_(codes)))).scalars().all()
    if existing:
        raise ConflictError(f"Asset code already exists: {', '.join(sorted(existing))}", field="asset_code")

    created = []
    for item in data.items:
        asset = Asset(
            asset_code=item.asset_code,
            asset_type=data.asset_type,
            device_type=data.device_type,
            make=data.make,
            model=data.model,
            serial_number=item.serial_number,
            mac=item.mac,
            remark=item.remark,
            site_id=site.id,
            status=AssetStatus.SPARE,
            location_name="Store",
        )
        db.add(asset)
        created.append(asset)
    await db.flush()

    for asset in created:
        record_movement(
            db, asset, MovementType.ADDED, user.id,
            to_site_id=site.id, to_status=AssetStatus.SPARE.value,
        )
    await worklog_service.log_activity(
        db, user.id, WorkLogCategory.STOCK_ADDED,
        f"Added {len(created)} x {data.asset_type} to {site.site_name}",
        ref_type="Site", ref_id=site.id,
    )
    return created


async def get_spare(db: AsyncSession, asset_id: str) -> Asset:
    asset = await db.get(Asset, asset_id)
    if not asset or not asset.is_active:
        raise ResourceNotFoundError("Asset", asset_id)
    if asset.status not in (AssetStatus.SPARE, AssetStatus.DAMAGED):
        raise ValidationError("Asset is not in stock")
    return asset


async def update_spare(db: AsyncSession, asset: Asset, data, user: User) -> Asset:
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    old_status = asset.status
    for field, value in changes.items():
        setattr(asset, field, value)
    if "status" in changes and changes["status"] != old_status:
        record_movement(
            db, asset, MovementType.STATUS_CHANGED, user.id,
            from_site_id=asset.site_id, to_site_id=asset.site_id,
            from_status=old_status.value, to_status=asset.status.value,
        )
    return asset


async def remove_spare(db: AsyncSession, asset: Asset, user: User) -> None:
    asset.is_active = False
    record_movement(
        db, asset, MovementType.REMOVED, user.id,
        from_site_id=asset.site_id, from_status=asset.status.value,
    )
    await worklog_service.log_activity(
        db, user.id, WorkLogCategory.STOCK_DELETED,
        f"Removed spare {asset.asset_code}", ref_type="Asset", ref_id=asset.id,
    )


# ==================== Transfers ====================

async def get_transfer(db: AsyncSession, transfer_id: str) -> StockTransfer:
    transfer = await db.get(StockTransfer, transfer_id)
    if not transfer:
        raise ResourceNotFoundError("Transfer", transfer_id)
    return transfer


async def _transfer_assets(db: AsyncSession, transfer: StockTransfer) -> List[Asset]:
    result = await db.execute(select(Asset).where(Asset.id.in_(transfer.asset_ids or [])))
    return list(result.scalars().all())


def _require_status(transfer: StockTransfer, action: str, *allowed: TransferStatus) -> None:
    if transfer.status not in allowed:
        raise InvalidTransitionError(action, transfer.status.value, [s.value for s in allowed])


async def initiate_transfer(db: AsyncSession, data, user: User) -> StockTransfer:
    if data.source_site_id == data.destination_site_id:
        raise ValidationError("Source and destination sites must differ")
    for site_id in (data.source_site_id, data.destination_site_id):
        site = await db.get(Site, site_id)
        if not site or not site.is_active:
            raise ResourceNotFoundError("Site", site_id)

    asset_ids = list(dict.fromkeys(data.asset_ids))
    result = await db.execute(select(Asset).where(and_(
        Asset.id.in_(asset_ids),
        Asset.is_active.is_(True),
        Asset.status == AssetStatus.SPARE,
        Asset.site_id == data.source_site_id,
    )))
    assets = list(result.scalars().all())
    if len(assets) != len(asset_ids):
        raise ValidationError("Some assets are not available for transfer")

    transfer = StockTransfer(
        transfer_number=await next_document_number(db, StockTransfer.transfer_number, TRANSFER_PREFIX),
        source_site_id=data.source_site_id,
        destination_site_id=data.destination_site_id,
        asset_ids=asset_ids,
        notes=data.notes,
        initiated_by=user.id,
        status=TransferStatus.PENDING,
    )
    db.add(transfer)

    for asset in assets:
        asset.status = AssetStatus.RESERVED
        record_movement(
            db, asset, MovementType.STATUS_CHANGED, user.id,
            from_site_id=transfer.source_site_id, to_site_id=transfer.source_site_id,
            from_status=AssetStatus.SPARE.value, to_status=AssetStatus.RESERVED.value,
            reference_type="StockTransfer", reference_id=transfer.transfer_number,
        )

    await worklog_service.log_activity(
        db, user.id, WorkLogCategory.STOCK_TRANSFERRED,
        f"Initiated transfer {transfer.transfer_number} ({len(assets)} item(s))",
        ref_type="StockTransfer", ref_id=transfer.transfer_number,
    )
    await db.flush()
    return transfer


async def approve_transfer(db: AsyncSession, transfer: StockTransfer, user: User) -> StockTransfer:
    _require_status(transfer, "approve", TransferStatus.PENDING)
    transfer.status = TransferStatus.APPROVED
    transfer.approved_by = user.id
    transfer.approved_at = datetime.utcnow()
    return transfer


async def dispatch_transfer(db: AsyncSession, transfer: StockTransfer, user: User, shipping_details: dict) -> StockTransfer:
    _require_status(transfer, "dispatch", TransferStatus.PENDING, TransferStatus.APPROVED)
    transfer.status = TransferStatus.IN_TRANSIT
    transfer.dispatched_by = user.id
    transfer.dispatched_at = datetime.utcnow()
    transfer.shipping_details = dict(shipping_details or {})

    for asset in await _transfer_assets(db, transfer):
        from_status = asset.status.value
        asset.status = AssetStatus.IN_TRANSIT
        record_movement(
            db, asset, MovementType.TRANSFERRED, user.id,
            from_site_id=transfer.source_site_id, to_site_id=transfer.destination_site_id,
            from_status=from_status, to_status=AssetStatus.IN_TRANSIT.value,
            reference_type="StockTransfer", reference_id=transfer.transfer_number,
        )
    await worklog_service.log_activity(
        db, user.id, WorkLogCategory.STOCK_TRANSFERRED,
        f"Dispatched transfer {transfer.transfer_number}",
        ref_type="StockTransfer", ref_id=transfer.transfer_number,
    )
    return transfer


async def receive_transfer(db: AsyncSession, transfer: StockTransfer, user: User) -> StockTransfer:
    _require_status(transfer, "receive", TransferStatus.IN_TRANSIT, TransferStatus.DISPATCHED)
    transfer.status = TransferStatus.COMPLETED
    transfer.received_by = user.id
    transfer.received_at = datetime.utcnow()

    for asset in await _transfer_assets(db, transfer):
        from_status = asset.status.value
        asset.status = AssetStatus.SPARE
        asset.site_id = transfer.destination_site_id
        record_movement(
            db, asset, MovementType.RECEIVED, user.id,
            from_site_id=transfer.source_site_id, to_site_id=transfer.destination_site_id,
            from_status=from_status, to_status=AssetStatus.SPARE.value,
            reference_type="StockTransfer", reference_id=transfer.transfer_number,
        )
    await worklog_service.log_activity(
        db, user.id, WorkLogCategory.STOCK_TRANSFERRED,
        f"Received transfer {transfer.transfer_number}",
        ref_type="StockTransfer", ref_id=transfer.transfer_number,
    )
    return transfer


async def close_transfer(
    db: AsyncSession,
    transfer: StockTransfer,
    user: User,
    status: TransferStatus,
    reason: Optional[str] = None,
) -> StockTransfer:
    """Reject or cancel; reserved assets return to Spare at the source"""
    action = "reject" if status == TransferStatus.REJECTED else "cancel"
    _require_status(transfer, action, TransferStatus.PENDING, TransferStatus.APPROVED)
    transfer.status = status
    transfer.rejection_reason = reason

    for asset in await _transfer_assets(db, transfer):
        if asset.status == AssetStatus.RESERVED:
            asset.status = AssetStatus.SPARE
            asset.site_id = transfer.source_site_id
            record_movement(
                db, asset, MovementType.STATUS_CHANGED, user.id,
                from_site_id=transfer.source_site_id, to_site_id=transfer.source_site_id,
                from_status=AssetStatus.RESERVED.value, to_status=AssetStatus.SPARE.value,
                reference_type="StockTransfer", reference_id=transfer.transfer_number,
                notes=reason,
            )
    return transfer


# ==================== Requisitions ====================

async def get_requisition(db: AsyncSession, requisition_id: str) -> Requisition:
    requisition = await db.get(Requisition, requisition_id)
    if not requisition:
        raise ResourceNotFoundError("Requisition", requisition_id)
    return requisition


async def create_requisition(db: AsyncSession, data, user: User) -> Requisition:
    site = await db.get(Site, data.requesting_site_id)
    if not site or not site.is_active:
        raise ResourceNotFoundError("Site", data.requesting_site_id)

    prefix = REQUISITION_PREFIXES[data.requisition_type]
    requisition = Requisition(
        requisition_number=await next_document_number(db, Requisition.requisition_number, prefix),
        requisition_type=data.requisition_type,
        requesting_site_id=data.requesting_site_id,
        source_site_id=data.source_site_id,
        ticket_id=data.ticket_id,
        rma_id=data.rma_id,
        asset_type=data.asset_type,
        device_type=data.device_type,
        quantity=data.quantity,
        reason=data.reason,
        requested_by=user.id,
        status=RequisitionStatus.PENDING,
    )
    db.add(requisition)
    await worklog_service.log_activity(
        db, user.id, WorkLogCategory.REQUISITION_CREATED,
        f"Raised requisition {requisition.requisition_number} for {data.quantity} x {data.asset_type}",
        ref_type="Requisition", ref_id=requisition.requisition_number,
    )
    await db.flush()
    return requisition


def _require_requisition_status(requisition: Requisition, action: str, *allowed: RequisitionStatus) -> None:
    if requisition.status not in allowed:
        raise InvalidTransitionError(action, requisition.status.value, [s.value for s in allowed])


async def approve_requisition(db: AsyncSession, requisition: Requisition, user: User) -> Requisition:
    _require_requisition_status(requisition, "approve", RequisitionStatus.PENDING)
    requisition.status = RequisitionStatus.APPROVED
    requisition.approved_by = user.id
    requisition.approved_at = datetime.utcnow()
    return requisition


async def fulfill_requisition(db: AsyncSession, requisition: Requisition, asset_ids: List[str], user: User) -> Requisition:
    _require_requisition_status(
        requisition, "fulfill",
        RequisitionStatus.PENDING, RequisitionStatus.APPROVED, RequisitionStatus.IN_TRANSIT,
    )
    asset_ids = list(dict.fromkeys(asset_ids))
    found = (await db.execute(
        select(func.count(Asset.id)).where(and_(Asset.id.in_(asset_ids), Asset.is_active.is_(True)))
    )).scalar() or 0
    if found != len(asset_ids):
        raise ValidationError("Some assets were not found", field="asset_ids")

    requisition.fulfilled_asset_ids = asset_ids
    requisition.status = RequisitionStatus.FULFILLED
    requisition.fulfilled_by = user.id
    requisition.fulfilled_at = datetime.utcnow()
    return requisition


async def reject_requisition(db: AsyncSession, requisition: Requisition, user: User, reason: Optional[str]) -> Requisition:
    if not reason or not reason.strip():
        raise ValidationError("Rejection reason is required", field="reason")
    _require_requisition_status(requisition, "reject", RequisitionStatus.PENDING, RequisitionStatus.APPROVED)
    requisition.status = RequisitionStatus.REJECTED
    requisition.rejection_reason = reason
    return requisition


async def cancel_requisition(db: AsyncSession, requisition: Requisition, user: User) -> Requisition:
    if requisition.requested_by != user.id and not user.is_admin:
        raise AuthorizationError("Only the requester can cancel a requisition")
    _require_requisition_status(requisition, "cancel", RequisitionStatus.PENDING, RequisitionStatus.APPROVED)
    requisition.status = RequisitionStatus.CANCELLED
    return requisition


async def movement_stats(db: AsyncSession, site_id: Optional[str] = None) -> dict:
    stmt = select(StockMovementLog.movement_type, func.count(StockMovementLog.id)).group_by(StockMovementLog.movement_type)
    if site_id:
        stmt = stmt.where((StockMovementLog.from_site_id == site_id) | (StockMovementLog.to_site_id == site_id))
    rows = (await db.execute(stmt)).all()
    by_type = {movement.value: count for movement, count in rows}
    return {"total": sum(by_type.values()), "by_type": by_type}
