"""RMA (return merchandise authorisation) records and their timeline"""
from datetime import datetime
from typing import Optional, List

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from ticketops.core.exceptions import ResourceNotFoundError, ValidationError, ConflictError
from ticketops.models.asset import Asset
from ticketops.models.rma import (
    RMARequest, RMAStatus, ReplacementSource, ReplacementTrackStatus, CLOSED_RMA_STATUSES,
)
from ticketops.models.ticket import Ticket, ActivityType
from ticketops.models.user import User
from ticketops.models.worklog import WorkLogCategory
from ticketops.services import worklog_service
from ticketops.services.ticket_service import add_activity
from ticketops.utils.numbering import next_document_number

RMA_PREFIX = "RMA"

SNAPSHOT_FIELDS = (
    "asset_code", "asset_type", "device_type", "serial_number", "mac",
    "ip_address", "make", "model", "location_name",
)

TRACKED_FIELDS = (
    ("status", "Status"),
    ("repair_track_status", "Repair track"),
    ("replacement_track_status", "Replacement track"),
    ("installation_status", "Installation"),
)


def snapshot_asset(asset: Asset) -> dict:
    snapshot = {field: getattr(asset, field) for field in SNAPSHOT_FIELDS}
    snapshot["status"] = asset.status.value if asset.status else None
    snapshot["site_id"] = asset.site_id
    return snapshot


async def get_rma(db: AsyncSession, rma_id: str) -> RMARequest:
    rma = await db.get(RMARequest, rma_id)
    if not rma:
        raise ResourceNotFoundError("RMA", rma_id)
    return rma


async def active_rma_for_ticket(db: AsyncSession, ticket_id: str) -> Optional[RMARequest]:
    result = await db.execute(
        select(RMARequest).where(and_(
            RMARequest.ticket_id == ticket_id,
            RMARequest.status.notin_(CLOSED_RMA_STATUSES),
        ))
    )
    return result.scalars().first()


async def create_rma(db: AsyncSession, data, user: User) -> RMARequest:
    ticket = await db.get(Ticket, data.ticket_id)
    if not ticket:
        raise ResourceNotFoundError("Ticket", data.ticket_id)
    if not ticket.asset_id:
        raise ValidationError("Ticket has no asset to return", field="ticket_id")
    if await active_rma_for_ticket(db, ticket.id):
        raise ConflictError("An active RMA already exists for this ticket", field="ticket_id")

    asset = await db.get(Asset, ticket.asset_id)
    if not asset:
        raise ResourceNotFoundError("Asset", ticket.asset_id)

    replacement_track = (
        ReplacementTrackStatus.NOT_REQUIRED
        if data.replacement_source == ReplacementSource.REPAIR_ONLY
        else ReplacementTrackStatus.PENDING
    )
    rma = RMARequest(
        rma_number=await next_document_number(db, RMARequest.rma_number, RMA_PREFIX),
        ticket_id=ticket.id,
        site_id=ticket.site_id or asset.site_id,
        original_asset_id=asset.id,
        original_details_snapshot=snapshot_asset(asset),
        replacement_source=data.replacement_source,
        replacement_details=dict(data.replacement_details or {}),
        replacement_track_status=replacement_track,
        request_reason=data.request_reason,
        requested_by=user.id,
        timeline=[],
    )
    rma.add_timeline_entry(RMAStatus.REQUESTED.value, user.id, data.request_reason)
    db.add(rma)

    add_activity(db, ticket, user.id, ActivityType.RMA, f"RMA {rma.rma_number} requested: {data.request_reason}")
    await worklog_service.log_activity(
        db, user.id, WorkLogCategory.RMA_CREATED,
        f"Requested RMA {rma.rma_number} for {asset.asset_code}",
        ref_type="RMA", ref_id=rma.rma_number,
    )
    await db.flush()
    return rma


async def update_rma(db: AsyncSession, rma: RMARequest, data, user: User) -> RMARequest:
    """Apply status/track/detail changes; each status change is journaled"""
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    remarks = changes.pop("remarks", None)
    now = datetime.utcnow()
    summary = []

    for field, label in TRACKED_FIELDS:
        if field not in changes:
            continue
        new_value = changes[field]
        old_value = getattr(rma, field)
        old_text = getattr(old_value, "value", old_value)
        new_text = getattr(new_value, "value", new_value)
        if old_text == new_text:
            continue
        setattr(rma, field, new_value)
        rma.add_timeline_entry(f"{label}: {new_text}", user.id, remarks)
        summary.append(f"{label} {old_text} -> {new_text}")

    if changes.get("status") == RMAStatus.APPROVED and rma.approved_by is None:
        rma.approved_by = user.id
        rma.approved_on = now
    if changes.get("installation_status") == "Installed" and rma.installed_by is None:
        rma.installed_by = user.id
        rma.installed_on = now

    for field in ("shipping_details", "replacement_details"):
        if field in changes:
            setattr(rma, field, {**(getattr(rma, field) or {}), **changes[field]})
            summary.append(f"{field.replace('_', ' ')} updated")

    if not summary:
        return rma

    ticket = await db.get(Ticket, rma.ticket_id)
    if ticket:
        content = f"RMA {rma.rma_number}: {'; '.join(summary)}"
        if remarks:
            content = f"{content}. {remarks}"
        add_activity(db, ticket, user.id, ActivityType.RMA, content)
    await worklog_service.log_activity(
        db, user.id, WorkLogCategory.RMA_STATUS_CHANGED,
        f"Updated RMA {rma.rma_number}: {'; '.join(summary)}",
        ref_type="RMA", ref_id=rma.rma_number,
    )
    return rma


async def get_by_ticket(db: AsyncSession, ticket_id: str) -> Optional[RMARequest]:
    result = await db.execute(
        select(RMARequest)
        .where(RMARequest.ticket_id == ticket_id)
        .order_by(RMARequest.created_at.desc())
    )
    return result.scalars().first()


async def history_for_asset(db: AsyncSession, asset_id: str) -> List[RMARequest]:
    result = await db.execute(
        select(RMARequest)
        .where(RMARequest.original_asset_id == asset_id)
        .order_by(RMARequest.created_at.desc())
    )
    return list(result.scalars().all())
