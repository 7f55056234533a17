from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import List

from ticketops.core.database import get_db
from ticketops.models.user import User
from ticketops.models.user_right import UserRight, ALL_RIGHTS
from ticketops.modules.auth.dependencies import get_current_admin, get_current_user
from ticketops.schemas.user_right import UserRightsUpdate, UserRightsResponse
from ticketops.services.audit_service import log_admin_action

router = APIRouter()


def _to_response(user: User, rights: UserRight = None) -> dict:
    return {
        "user_id": user.id,
        "full_name": user.full_name,
        "role": user.role.value,
        "global_rights": list(rights.global_rights or []) if rights else [],
        "site_rights": list(rights.site_rights or []) if rights else [],
    }


def _check_rights(names: List[str]):
    unknown = sorted(set(names) - set(ALL_RIGHTS))
    if unknown:
        raise HTTPException(status_code=400, detail=f"Unknown rights: {', '.join(unknown)}")


@router.get("/available", response_model=List[str])
async def available_rights(current_user: User = Depends(get_current_user)):
    return ALL_RIGHTS


@router.get("", response_model=List[UserRightsResponse])
async def list_user_rights(
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """Every active user with the rights they hold (empty when none granted)"""
    users = (await db.execute(
        select(User).where(User.is_active.is_(True)).order_by(User.full_name)
    )).scalars().all()
    rights = (await db.execute(select(UserRight))).scalars().all()
    by_user = {r.user_id: r for r in rights}
    return [_to_response(u, by_user.get(u.id)) for u in users]


@router.get("/me", response_model=UserRightsResponse)
async def my_rights(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    rights = await db.scalar(select(UserRight).where(UserRight.user_id == current_user.id))
    return _to_response(current_user, rights)


@router.get("/{user_id}", response_model=UserRightsResponse)
async def get_user_rights(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    rights = await db.scalar(select(UserRight).where(UserRight.user_id == user_id))
    return _to_response(user, rights)


@router.put("/{user_id}", response_model=UserRightsResponse)
async def update_user_rights(
    user_id: str,
    payload: UserRightsUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """Replace the user's rights wholesale"""
    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    _check_rights(payload.global_rights)
    for entry in payload.site_rights:
        _check_rights(entry.rights)

    rights = await db.scalar(select(UserRight).where(UserRight.user_id == user_id))
    if rights is None:
        rights = UserRight(user_id=user_id)
        db.add(rights)

    rights.global_rights = sorted(set(payload.global_rights))
    rights.site_rights = [
        {"site_id": e.site_id, "rights": sorted(set(e.rights))}
        for e in payload.site_rights
        if e.rights
    ]
    rights.updated_by = current_admin.id

    log_admin_action(db, current_admin.id, "rights_updated", "user", user_id, {
        "global_rights": rights.global_rights,
        "site_rights": rights.site_rights,
    }, request)
    await db.commit()
    return _to_response(user, rights)
