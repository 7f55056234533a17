from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_
from typing import Optional, List, Dict

from ticketops.core.database import get_db
from ticketops.models.asset import DeviceType
from ticketops.models.user import User
from ticketops.modules.auth.dependencies import get_current_user, get_current_admin
from ticketops.schemas.asset import DeviceTypeCreate, DeviceTypeUpdate, DeviceTypeResponse

router = APIRouter()


@router.get("", response_model=List[DeviceTypeResponse])
async def list_device_types(
    asset_type: Optional[str] = None,
    include_inactive: bool = False,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    conditions = []
    if asset_type:
        conditions.append(DeviceType.asset_type == asset_type)
    if not include_inactive:
        conditions.append(DeviceType.is_active.is_(True))

    query = select(DeviceType)
    if conditions:
        query = query.where(and_(*conditions))
    result = await db.execute(query.order_by(DeviceType.asset_type, DeviceType.device_type))
    return result.scalars().all()


@router.get("/grouped", response_model=Dict[str, List[str]])
async def grouped_device_types(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """``{asset_type: [device_type, ...]}`` over active entries"""
    result = await db.execute(
        select(DeviceType.asset_type, DeviceType.device_type)
        .where(DeviceType.is_active.is_(True))
        .order_by(DeviceType.asset_type, DeviceType.device_type)
    )
    grouped: Dict[str, List[str]] = {}
    for asset_type, device_type in result.all():
        grouped.setdefault(asset_type, []).append(device_type)
    return grouped


@router.post("", response_model=DeviceTypeResponse, status_code=201)
async def create_device_type(
    payload: DeviceTypeCreate,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    exists = await db.scalar(
        select(func.count(DeviceType.id)).where(and_(
            DeviceType.asset_type == payload.asset_type,
            DeviceType.device_type == payload.device_type,
        ))
    )
    if exists:
        raise HTTPException(status_code=409, detail="Device type already exists for this asset type")

    device_type = DeviceType(**payload.model_dump())
    db.add(device_type)
    await db.commit()
    await db.refresh(device_type)
    return device_type


@router.put("/{device_type_id}", response_model=DeviceTypeResponse)
async def update_device_type(
    device_type_id: str,
    payload: DeviceTypeUpdate,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    device_type = await db.get(DeviceType, device_type_id)
    if not device_type:
        raise HTTPException(status_code=404, detail="Device type not found")

    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(device_type, field, value)
    await db.commit()
    await db.refresh(device_type)
    return device_type


@router.delete("/{device_type_id}")
async def delete_device_type(
    device_type_id: str,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    device_type = await db.get(DeviceType, device_type_id)
    if not device_type:
        raise HTTPException(status_code=404, detail="Device type not found")
    await db.delete(device_type)
    await db.commit()
    return {"message": "Device type deleted"}
