"""
Asset register. Device credentials (``user_name``/``password``) are blanked
unless the caller is an Admin or holds VIEW_CREDENTIALS for the asset's site.
"""
from fastapi import APIRouter, Depends, Query, HTTPException
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_, and_
from typing import Optional, List

from ticketops.core.database import get_db
from ticketops.models.asset import Asset, AssetStatus
from ticketops.models.user import User, UserRole
from ticketops.models.user_right import Right, UserRight
from ticketops.models.worklog import WorkLogCategory
from ticketops.modules.auth.dependencies import get_current_user, allow_access, load_user_rights
from ticketops.schemas.asset import (
    AssetCreate, AssetUpdate, AssetStatusUpdate, AssetResponse, AssetDropdownItem,
)
from ticketops.schemas.common import Page
from ticketops.services import worklog_service
from ticketops.services.report_service import export_assets_csv
from ticketops.services.stock_service import visible_site_ids
from ticketops.utils.pagination import paginate

router = APIRouter()

manage_assets = allow_access(roles=[UserRole.ADMIN, UserRole.SUPERVISOR], rights=[Right.MANAGE_ASSETS])


def _can_see_credentials(user: User, rights: Optional[UserRight], asset: Asset) -> bool:
    if user.is_admin:
        return True
    return bool(rights and rights.has_right(Right.VIEW_CREDENTIALS, asset.site_id))


def _serialize(asset: Asset, user: User, rights: Optional[UserRight]) -> dict:
    data = AssetResponse.model_validate(asset).model_dump()
    if not _can_see_credentials(user, rights, asset):
        data["user_name"] = None
        data["password"] = None
    return data


async def _get_asset_or_404(db: AsyncSession, asset_id: str) -> Asset:
    asset = await db.get(Asset, asset_id)
    if not asset or not asset.is_active:
        raise HTTPException(status_code=404, detail="Asset not found")
    return asset


async def _code_taken(db: AsyncSession, asset_code: str, exclude_id: str = None) -> bool:
    stmt = select(func.count(Asset.id)).where(Asset.asset_code == asset_code)
    if exclude_id:
        stmt = stmt.where(Asset.id != exclude_id)
    return bool(await db.scalar(stmt))


@router.get("", response_model=Page[AssetResponse])
async def list_assets(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    site_id: Optional[str] = None,
    status: Optional[AssetStatus] = None,
    asset_type: Optional[str] = None,
    device_type: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """List assets with filtering and pagination"""
    conditions = [Asset.is_active.is_(True)]
    if search:
        term = f"%{search}%"
        conditions.append(or_(
            Asset.asset_code.ilike(term),
            Asset.serial_number.ilike(term),
            Asset.ip_address.ilike(term),
            Asset.location_name.ilike(term),
        ))
    if site_id:
        conditions.append(Asset.site_id == site_id)
    if status:
        conditions.append(Asset.status == status)
    if asset_type:
        conditions.append(Asset.asset_type == asset_type)
    if device_type:
        conditions.append(Asset.device_type == device_type)
    allowed = visible_site_ids(current_user)
    if allowed is not None:
        conditions.append(Asset.site_id.in_(allowed))

    query = select(Asset).where(and_(*conditions)).order_by(Asset.asset_code)
    result = await paginate(db, query, page, page_size)

    rights = await load_user_rights(db, current_user)
    result["items"] = [_serialize(a, current_user, rights) for a in result["items"]]
    return result


@router.get("/dropdown", response_model=List[AssetDropdownItem])
async def assets_dropdown(
    site_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    conditions = [Asset.is_active.is_(True)]
    if site_id:
        conditions.append(Asset.site_id == site_id)
    result = await db.execute(select(Asset).where(and_(*conditions)).order_by(Asset.asset_code))
    return result.scalars().all()


@router.get("/locations", response_model=List[str])
async def location_names(
    site_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    conditions = [Asset.is_active.is_(True), Asset.location_name.isnot(None)]
    if site_id:
        conditions.append(Asset.site_id == site_id)
    result = await db.execute(
        select(Asset.location_name).where(and_(*conditions)).distinct().order_by(Asset.location_name)
    )
    return [name for name in result.scalars().all() if name]


@router.get("/asset-types", response_model=List[str])
async def asset_types_for_site(
    site_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    conditions = [Asset.is_active.is_(True)]
    if site_id:
        conditions.append(Asset.site_id == site_id)
    result = await db.execute(
        select(Asset.asset_type).where(and_(*conditions)).distinct().order_by(Asset.asset_type)
    )
    return result.scalars().all()


@router.get("/device-types", response_model=List[str])
async def device_types_for_site(
    site_id: Optional[str] = None,
    asset_type: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    conditions = [Asset.is_active.is_(True), Asset.device_type.isnot(None)]
    if site_id:
        conditions.append(Asset.site_id == site_id)
    if asset_type:
        conditions.append(Asset.asset_type == asset_type)
    result = await db.execute(
        select(Asset.device_type).where(and_(*conditions)).distinct().order_by(Asset.device_type)
    )
    return [d for d in result.scalars().all() if d]


@router.get("/export")
async def export_assets(
    site_id: Optional[str] = None,
    status: Optional[AssetStatus] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(manage_assets)
):
    content = await export_assets_csv(db, site_id=site_id, status=status)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=assets.csv"}
    )


@router.get("/{asset_id}", response_model=AssetResponse)
async def get_asset(
    asset_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    asset = await _get_asset_or_404(db, asset_id)
    rights = await load_user_rights(db, current_user)
    return _serialize(asset, current_user, rights)


@router.post("", response_model=AssetResponse, status_code=201)
async def create_asset(
    payload: AssetCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(manage_assets)
):
    if await _code_taken(db, payload.asset_code):
        raise HTTPException(status_code=409, detail="Asset code already exists")

    asset = Asset(**payload.model_dump())
    db.add(asset)
    await db.flush()
    await worklog_service.log_activity(
        db, current_user.id, WorkLogCategory.ASSET_CREATED,
        f"Created asset {asset.asset_code}", ref_type="Asset", ref_id=asset.id,
    )
    await db.commit()
    await db.refresh(asset)

    rights = await load_user_rights(db, current_user)
    return _serialize(asset, current_user, rights)


@router.put("/{asset_id}", response_model=AssetResponse)
async def update_asset(
    asset_id: str,
    payload: AssetUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(manage_assets)
):
    asset = await _get_asset_or_404(db, asset_id)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("asset_code") and await _code_taken(db, changes["asset_code"], exclude_id=asset.id):
        raise HTTPException(status_code=409, detail="Asset code already exists")

    for field, value in changes.items():
        if value is None and field in ("asset_code", "asset_type", "criticality", "status"):
            continue
        setattr(asset, field, value)

    await worklog_service.log_activity(
        db, current_user.id, WorkLogCategory.ASSET_UPDATED,
        f"Updated asset {asset.asset_code}", ref_type="Asset", ref_id=asset.id,
        details={"fields": sorted(changes)},
    )
    await db.commit()
    await db.refresh(asset)

    rights = await load_user_rights(db, current_user)
    return _serialize(asset, current_user, rights)


@router.patch("/{asset_id}/status", response_model=AssetResponse)
async def update_asset_status(
    asset_id: str,
    payload: AssetStatusUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Engineers may report a device status change from the field"""
    if current_user.is_client:
        raise HTTPException(status_code=403, detail="Not authorized to change asset status")

    asset = await _get_asset_or_404(db, asset_id)
    previous = asset.status
    asset.status = payload.status
    if payload.remark:
        asset.remark = payload.remark

    await worklog_service.log_activity(
        db, current_user.id, WorkLogCategory.ASSET_UPDATED,
        f"Asset {asset.asset_code}: {previous.value} -> {payload.status.value}",
        ref_type="Asset", ref_id=asset.id,
    )
    await db.commit()
    await db.refresh(asset)

    rights = await load_user_rights(db, current_user)
    return _serialize(asset, current_user, rights)


@router.delete("/{asset_id}")
async def delete_asset(
    asset_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(manage_assets)
):
    asset = await _get_asset_or_404(db, asset_id)
    asset.is_active = False
    await worklog_service.log_activity(
        db, current_user.id, WorkLogCategory.ASSET_DELETED,
        f"Deactivated asset {asset.asset_code}", ref_type="Asset", ref_id=asset.id,
    )
    await db.commit()
    return {"message": "Asset deleted successfully"}
