from fastapi import APIRouter, Depends, Query, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_, and_
from typing import Optional, List

from ticketops.core.database import get_db
from ticketops.models.site import Site
from ticketops.models.user import User
from ticketops.models.worklog import WorkLogCategory
from ticketops.modules.auth.dependencies import get_current_user, get_current_admin
from ticketops.schemas.common import Page
from ticketops.schemas.site import SiteCreate, SiteUpdate, SiteResponse, SiteDropdownItem
from ticketops.services import worklog_service
from ticketops.services.stock_service import visible_site_ids
from ticketops.utils.pagination import paginate

router = APIRouter()


def _scope(user: User) -> list:
    allowed = visible_site_ids(user)
    return [Site.id.in_(allowed)] if allowed is not None else []


async def _get_site_or_404(db: AsyncSession, site_id: str) -> Site:
    site = await db.get(Site, site_id)
    if not site:
        raise HTTPException(status_code=404, detail="Site not found")
    return site


async def _code_taken(db: AsyncSession, site_code: str, exclude_id: str = None) -> bool:
    stmt = select(func.count(Site.id)).where(func.upper(Site.site_code) == site_code.upper())
    if exclude_id:
        stmt = stmt.where(Site.id != exclude_id)
    return bool(await db.scalar(stmt))


@router.get("", response_model=Page[SiteResponse])
async def list_sites(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    city: Optional[str] = None,
    zone: Optional[str] = None,
    is_active: Optional[bool] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    conditions = _scope(current_user)
    if search:
        term = f"%{search}%"
        conditions.append(or_(
            Site.site_name.ilike(term),
            Site.site_code.ilike(term),
            Site.address.ilike(term),
        ))
    if city:
        conditions.append(Site.city == city)
    if zone:
        conditions.append(Site.zone == zone)
    if is_active is not None:
        conditions.append(Site.is_active == is_active)

    query = select(Site)
    if conditions:
        query = query.where(and_(*conditions))
    return await paginate(db, query.order_by(Site.site_name), page, page_size)


@router.get("/dropdown", response_model=List[SiteDropdownItem])
async def sites_dropdown(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    conditions = [Site.is_active.is_(True)] + _scope(current_user)
    result = await db.execute(select(Site).where(and_(*conditions)).order_by(Site.site_name))
    return result.scalars().all()


@router.get("/cities", response_model=List[str])
async def list_cities(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    result = await db.execute(
        select(Site.city)
        .where(and_(Site.city.isnot(None), Site.is_active.is_(True)))
        .distinct()
        .order_by(Site.city)
    )
    return [c for c in result.scalars().all() if c]


@router.get("/{site_id}", response_model=SiteResponse)
async def get_site(
    site_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    site = await _get_site_or_404(db, site_id)
    allowed = visible_site_ids(current_user)
    if allowed is not None and site.id not in allowed:
        raise HTTPException(status_code=403, detail="Not authorized to view this site")
    return site


@router.post("", response_model=SiteResponse, status_code=201)
async def create_site(
    payload: SiteCreate,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    if await _code_taken(db, payload.site_code):
        raise HTTPException(status_code=409, detail="Site code already exists")

    site = Site(**payload.model_dump())
    db.add(site)
    await db.flush()
    await worklog_service.log_activity(
        db, current_admin.id, WorkLogCategory.SITE_CREATED,
        f"Created site {site.site_code}", ref_type="Site", ref_id=site.id,
    )
    await db.commit()
    return site


@router.put("/{site_id}", response_model=SiteResponse)
async def update_site(
    site_id: str,
    payload: SiteUpdate,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    site = await _get_site_or_404(db, site_id)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("site_code") and await _code_taken(db, changes["site_code"], exclude_id=site.id):
        raise HTTPException(status_code=409, detail="Site code already exists")

    for field, value in changes.items():
        if value is None and field in ("site_name", "site_code", "is_active", "is_head_office"):
            continue
        setattr(site, field, value)

    await worklog_service.log_activity(
        db, current_admin.id, WorkLogCategory.SITE_UPDATED,
        f"Updated site {site.site_code}", ref_type="Site", ref_id=site.id,
    )
    await db.commit()
    return site


@router.delete("/{site_id}")
async def delete_site(
    site_id: str,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    site = await _get_site_or_404(db, site_id)
    site.is_active = False
    await worklog_service.log_activity(
        db, current_admin.id, WorkLogCategory.SITE_DELETED,
        f"Deactivated site {site.site_code}", ref_type="Site", ref_id=site.id,
    )
    await db.commit()
    return {"message": "Site deactivated successfully"}
