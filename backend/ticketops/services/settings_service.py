"""Key-value system settings grouped by category"""
import json
from typing import Any, Dict, Optional

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from ticketops.models.setting import Setting, DEFAULT_CATEGORY

DEFAULT_SETTINGS: Dict[str, Dict[str, str]] = {
    "General": {
        "company_name": "TicketOps",
        "support_email": "",
        "support_phone": "",
        "date_format": "DD/MM/YYYY",
    },
    "Notifications": {
        "email_enabled": "true",
        "notify_on_assignment": "true",
        "notify_on_escalation": "true",
        "notify_on_sla_breach": "true",
    },
    "SLA": {
        "business_hours_start": "09:00",
        "business_hours_end": "18:00",
        "warning_window_hours": "4",
    },
    "Tickets": {
        "auto_close_resolved_days": "7",
        "require_verification": "true",
    },
}


def stringify(value: Any) -> str:
    """Settings are stored as text: JSON for lists/dicts, lower-case booleans"""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, dict)):
        return json.dumps(value)
    if value is None:
        return ""
    return str(value)


async def seed_defaults(db: AsyncSession) -> int:
    """Insert default settings when the table is empty; returns rows added"""
    existing = await db.scalar(select(func.count(Setting.id)))
    if existing:
        return 0
    added = 0
    for category, values in DEFAULT_SETTINGS.items():
        for key, value in values.items():
            db.add(Setting(category=category, key=key, value=value))
            added += 1
    await db.flush()
    return added


async def get_grouped(db: AsyncSession, category: Optional[str] = None) -> Dict[str, Dict[str, str]]:
    if await seed_defaults(db):
        await db.commit()

    stmt = select(Setting).order_by(Setting.category, Setting.key)
    if category:
        stmt = stmt.where(Setting.category == category)
    grouped: Dict[str, Dict[str, str]] = {}
    for setting in (await db.execute(stmt)).scalars().all():
        grouped.setdefault(setting.category or DEFAULT_CATEGORY, {})[setting.key] = setting.value
    return grouped


async def upsert(
    db: AsyncSession,
    category: str,
    key: str,
    value: Any,
    updated_by: Optional[str] = None,
) -> Setting:
    result = await db.execute(
        select(Setting).where(and_(Setting.category == category, Setting.key == key))
    )
    setting = result.scalar_one_or_none()
    if setting is None:
        setting = Setting(category=category, key=key)
        db.add(setting)
    setting.value = stringify(value)
    setting.updated_by = str(updated_by) if updated_by else None
    return setting


async def update_grouped(db: AsyncSession, payload: Dict[str, Any], updated_by: Optional[str] = None) -> int:
    """Upsert ``{category: {key: value}}``; non-dict categories are ignored"""
    count = 0
    for category, values in (payload or {}).items():
        if not isinstance(values, dict):
            continue
        for key, value in values.items():
            await upsert(db, category, key, value, updated_by)
            count += 1
    return count
