from fastapi import APIRouter, Depends, Body, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict

from ticketops.core.database import get_db
from ticketops.models.user import User
from ticketops.modules.auth.dependencies import get_current_user, get_current_admin
from ticketops.schemas.setting import SettingValue
from ticketops.services import settings_service
from ticketops.services.audit_service import log_admin_action

router = APIRouter()


@router.get("", response_model=Dict[str, Dict[str, str]])
async def get_settings(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """All settings as ``{category: {key: value}}``"""
    return await settings_service.get_grouped(db)


@router.get("/{category}", response_model=Dict[str, str])
async def get_category(
    category: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    grouped = await settings_service.get_grouped(db, category)
    return grouped.get(category, {})


@router.put("", response_model=Dict[str, Dict[str, str]])
async def update_settings(
    request: Request,
    payload: Dict[str, Any] = Body(...),
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    count = await settings_service.update_grouped(db, payload, current_admin.id)
    log_admin_action(db, current_admin.id, "settings_updated", "setting", None,
                     {"categories": sorted(payload), "count": count}, request)
    await db.commit()
    return await settings_service.get_grouped(db)


@router.patch("/{category}/{key}")
async def update_setting(
    category: str,
    key: str,
    payload: SettingValue,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    setting = await settings_service.upsert(db, category, key, payload.value, current_admin.id)
    log_admin_action(db, current_admin.id, "setting_updated", "setting", f"{category}.{key}",
                     {"value": setting.value}, request)
    await db.commit()
    return {"category": category, "key": key, "value": setting.value}
