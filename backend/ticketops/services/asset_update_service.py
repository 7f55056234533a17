"""
Asset update links.

After a replacement is installed, an engineer gets a short-lived link to
submit the new device details. Nothing touches the asset until an admin
approves the submission.
"""
from datetime import datetime, timedelta
from typing import Optional, List

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from ticketops.core.config import settings
from ticketops.core.exceptions import (
    ResourceNotFoundError, ValidationError, TokenExpiredError, InvalidTransitionError,
)
from ticketops.core.security import generate_access_link_token
from ticketops.models.asset import Asset, AssetStatus
from ticketops.models.asset_update_request import (
    AssetUpdateRequest, AssetUpdateStatus, UPDATABLE_ASSET_FIELDS,
)
from ticketops.models.rma import RMARequest
from ticketops.models.ticket import Ticket, ActivityType
from ticketops.models.user import User
from ticketops.models.worklog import WorkLogCategory
from ticketops.services import worklog_service
from ticketops.services.ticket_service import add_activity

DATE_FIELDS = ("installation_date", "warranty_end_date")
DEFAULT_REJECTION_REASON = "No reason provided"


def _serialize_value(value):
    return value.isoformat() if isinstance(value, datetime) else value


def asset_summary(asset: Asset) -> dict:
    summary = {
        "id": asset.id,
        "asset_code": asset.asset_code,
        "asset_type": asset.asset_type,
        "device_type": asset.device_type,
        "location_name": asset.location_name,
        "site_id": asset.site_id,
    }
    for field in UPDATABLE_ASSET_FIELDS:
        if field != "password":
            summary[field] = _serialize_value(getattr(asset, field))
    return summary


async def _ticket_for(db: AsyncSession, request: AssetUpdateRequest) -> Optional[Ticket]:
    ticket_id = request.ticket_id
    if not ticket_id and request.rma_id:
        rma = await db.get(RMARequest, request.rma_id)
        ticket_id = rma.ticket_id if rma else None
    return await db.get(Ticket, ticket_id) if ticket_id else None


async def initiate(db: AsyncSession, data, user: User) -> AssetUpdateRequest:
    """Return the still-valid link for this asset/RMA, or create a new one"""
    asset = await db.get(Asset, data.asset_id)
    if not asset:
        raise ResourceNotFoundError("Asset", data.asset_id)

    ticket_id = data.ticket_id
    if data.rma_id:
        rma = await db.get(RMARequest, data.rma_id)
        if not rma:
            raise ResourceNotFoundError("RMA", data.rma_id)
        ticket_id = ticket_id or rma.ticket_id

    now = datetime.utcnow()
    conditions = [
        AssetUpdateRequest.asset_id == asset.id,
        AssetUpdateRequest.status == AssetUpdateStatus.PENDING,
        AssetUpdateRequest.is_submitted.is_(False),
        AssetUpdateRequest.expires_at > now,
    ]
    if data.rma_id:
        conditions.append(AssetUpdateRequest.rma_id == data.rma_id)
    existing = (await db.execute(select(AssetUpdateRequest).where(and_(*conditions)))).scalars().first()
    if existing:
        return existing

    request = AssetUpdateRequest(
        token=generate_access_link_token(),
        rma_id=data.rma_id,
        ticket_id=ticket_id,
        asset_id=asset.id,
        requested_by=user.id,
        status=AssetUpdateStatus.PENDING,
        expires_at=now + timedelta(minutes=settings.ASSET_UPDATE_TOKEN_TTL_MINUTES),
        original_values={f: _serialize_value(getattr(asset, f)) for f in UPDATABLE_ASSET_FIELDS},
        proposed_changes={},
    )
    db.add(request)
    await db.flush()

    ticket = await _ticket_for(db, request)
    if ticket:
        add_activity(
            db, ticket, user.id, ActivityType.RMA,
            f"Asset update link issued for {asset.asset_code} "
            f"(valid {settings.ASSET_UPDATE_TOKEN_TTL_MINUTES} minutes)",
            is_internal=True,
        )
    return request


async def _by_token(db: AsyncSession, token: str) -> AssetUpdateRequest:
    result = await db.execute(select(AssetUpdateRequest).where(AssetUpdateRequest.token == token))
    request = result.scalar_one_or_none()
    if not request:
        raise ResourceNotFoundError("Asset update request", token)
    return request


async def get_valid_request(db: AsyncSession, token: str, now: Optional[datetime] = None) -> AssetUpdateRequest:
    """
    Resolve a link token.

    Raises 404 for an unknown token and 403 (``expired``) once the link is
    used, reviewed or past its expiry; a lapsed pending link is marked Expired.
    The Expired flag is committed before raising so it survives the request.
    """
    request = await _by_token(db, token)
    if not request.is_access_valid(now):
        if request.status == AssetUpdateStatus.PENDING and not request.is_submitted:
            request.status = AssetUpdateStatus.EXPIRED
            await db.commit()
        raise TokenExpiredError("This update link has expired or was already used")
    return request


async def validate(db: AsyncSession, token: str) -> dict:
    request = await get_valid_request(db, token)
    asset = await db.get(Asset, request.asset_id)
    if not asset:
        raise ResourceNotFoundError("Asset", request.asset_id)
    return {
        "asset": asset_summary(asset),
        "seconds_remaining": request.seconds_remaining(),
        "expires_at": request.expires_at,
    }


def parse_date(field: str, value) -> datetime:
    """ISO date or datetime; offsets are folded to naive UTC"""
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"{field} must be an ISO date (YYYY-MM-DD)", field=field)
    if parsed.tzinfo is not None:
        parsed = (parsed - parsed.utcoffset()).replace(tzinfo=None)
    return parsed


def clean_changes(changes: dict) -> dict:
    """Keep only updatable fields with a value; dates are stored as ISO strings"""
    cleaned = {}
    for field, value in (changes or {}).items():
        if field not in UPDATABLE_ASSET_FIELDS:
            continue
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        if isinstance(value, str):
            value = value.strip()
        if field in DATE_FIELDS:
            value = parse_date(field, value).isoformat()
        cleaned[field] = value
    return cleaned


async def submit(db: AsyncSession, token: str, changes: dict) -> AssetUpdateRequest:
    request = await get_valid_request(db, token)
    cleaned = clean_changes(changes)
    if not cleaned:
        raise ValidationError("No valid changes submitted")

    request.proposed_changes = cleaned
    request.is_submitted = True
    request.submitted_at = datetime.utcnow()
    return request


def _require_pending(request: AssetUpdateRequest, action: str) -> None:
    if request.status != AssetUpdateStatus.PENDING:
        raise InvalidTransitionError(action, request.status.value, [AssetUpdateStatus.PENDING.value])


async def get_request(db: AsyncSession, request_id: str) -> AssetUpdateRequest:
    request = await db.get(AssetUpdateRequest, request_id)
    if not request:
        raise ResourceNotFoundError("Asset update request", request_id)
    return request


async def approve(db: AsyncSession, request: AssetUpdateRequest, user: User) -> AssetUpdateRequest:
    _require_pending(request, "approve")
    if not request.is_submitted:
        raise ValidationError("Nothing has been submitted for this request yet")

    asset = await db.get(Asset, request.asset_id)
    if not asset:
        raise ResourceNotFoundError("Asset", request.asset_id)

    for field, value in (request.proposed_changes or {}).items():
        if field not in UPDATABLE_ASSET_FIELDS:
            continue
        if field in DATE_FIELDS and isinstance(value, str):
            value = parse_date(field, value)
        setattr(asset, field, value)
    asset.status = AssetStatus.OPERATIONAL

    now = datetime.utcnow()
    request.status = AssetUpdateStatus.APPROVED
    request.reviewed_by = user.id
    request.reviewed_at = now

    if request.rma_id:
        rma = await db.get(RMARequest, request.rma_id)
        if rma:
            rma.installation_status = "Installed"
            rma.installed_by = rma.installed_by or user.id
            rma.installed_on = rma.installed_on or now
            rma.add_timeline_entry("Installation: Installed", user.id, "Asset details updated from field submission")

    ticket = await _ticket_for(db, request)
    if ticket:
        add_activity(
            db, ticket, user.id, ActivityType.RMA,
            f"Asset {asset.asset_code} updated: {', '.join(sorted(request.proposed_changes or {}))}",
        )
    await worklog_service.log_activity(
        db, user.id, WorkLogCategory.ASSET_UPDATED,
        f"Approved field update for {asset.asset_code}", ref_type="Asset", ref_id=asset.id,
    )
    return request


async def reject(db: AsyncSession, request: AssetUpdateRequest, user: User, reason: Optional[str] = None) -> AssetUpdateRequest:
    _require_pending(request, "reject")
    request.status = AssetUpdateStatus.REJECTED
    request.rejection_reason = (reason or "").strip() or DEFAULT_REJECTION_REASON
    request.reviewed_by = user.id
    request.reviewed_at = datetime.utcnow()
    return request


async def list_pending(db: AsyncSession) -> List[AssetUpdateRequest]:
    result = await db.execute(
        select(AssetUpdateRequest)
        .where(and_(
            AssetUpdateRequest.status == AssetUpdateStatus.PENDING,
            AssetUpdateRequest.is_submitted.is_(True),
        ))
        .order_by(AssetUpdateRequest.submitted_at.desc())
    )
    return list(result.scalars().all())


async def list_for_rma(db: AsyncSession, rma_id: str) -> List[AssetUpdateRequest]:
    result = await db.execute(
        select(AssetUpdateRequest)
        .where(AssetUpdateRequest.rma_id == rma_id)
        .order_by(AssetUpdateRequest.created_at.desc())
    )
    return list(result.scalars().all())
