"""
User management. Listing is open to managers; changes are Admin only and
recorded in the audit log.
"""
from fastapi import APIRouter, Depends, Query, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_, and_
from typing import Optional, List

from ticketops.core.database import get_db
from ticketops.core.security import get_password_hash, generate_temp_password
from ticketops.models.user import User, UserRole, ENGINEER_ROLES
from ticketops.models.worklog import WorkLogCategory
from ticketops.modules.auth.dependencies import get_current_user, get_current_admin, get_current_manager
from ticketops.schemas.auth import UserResponse
from ticketops.schemas.common import Page
from ticketops.schemas.user import UserCreate, UserUpdate, AdminPasswordReset, UserDropdownItem
from ticketops.services import worklog_service
from ticketops.services.audit_service import log_admin_action
from ticketops.services.email_service import email_service
from ticketops.utils.pagination import paginate

router = APIRouter()


async def _get_user_or_404(db: AsyncSession, user_id: str) -> User:
    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


async def _ensure_unique(db: AsyncSession, email: Optional[str], username: Optional[str], exclude_id: str = None):
    if email:
        stmt = select(func.count(User.id)).where(func.lower(User.email) == email.lower())
        if exclude_id:
            stmt = stmt.where(User.id != exclude_id)
        if await db.scalar(stmt):
            raise HTTPException(status_code=409, detail="User with this email already exists")
    if username:
        stmt = select(func.count(User.id)).where(User.username == username)
        if exclude_id:
            stmt = stmt.where(User.id != exclude_id)
        if await db.scalar(stmt):
            raise HTTPException(status_code=409, detail="Username already taken")


@router.get("", response_model=Page[UserResponse])
async def list_users(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    role: Optional[UserRole] = None,
    is_active: Optional[bool] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_manager)
):
    """List users with filtering and pagination"""
    conditions = []
    if search:
        term = f"%{search}%"
        conditions.append(or_(
            User.full_name.ilike(term),
            User.email.ilike(term),
            User.username.ilike(term),
        ))
    if role:
        conditions.append(User.role == role)
    if is_active is not None:
        conditions.append(User.is_active == is_active)

    query = select(User)
    if conditions:
        query = query.where(and_(*conditions))
    return await paginate(db, query.order_by(User.full_name.asc()), page, page_size)


@router.get("/dropdown", response_model=List[UserDropdownItem])
async def users_dropdown(
    role: Optional[UserRole] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    query = select(User).where(User.is_active.is_(True))
    if role:
        query = query.where(User.role == role)
    result = await db.execute(query.order_by(User.full_name))
    return result.scalars().all()


@router.get("/engineers", response_model=List[UserDropdownItem])
async def list_engineers(
    site_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Active L1/L2 engineers, optionally those covering one site"""
    result = await db.execute(
        select(User)
        .where(and_(User.is_active.is_(True), User.role.in_(ENGINEER_ROLES)))
        .order_by(User.full_name)
    )
    engineers = result.scalars().all()
    if site_id:
        engineers = [
            e for e in engineers
            if e.site_id == site_id or site_id in (e.assigned_sites or []) or not e.assigned_sites
        ]
    return engineers


@router.get("/contacts", response_model=List[UserDropdownItem])
async def list_contacts(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    result = await db.execute(
        select(User)
        .where(and_(User.is_active.is_(True), User.mobile_number.isnot(None), User.mobile_number != ""))
        .order_by(User.full_name)
    )
    return result.scalars().all()


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_manager)
):
    return await _get_user_or_404(db, user_id)


@router.post("", response_model=UserResponse, status_code=201)
async def create_user(
    request: Request,
    payload: UserCreate,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    await _ensure_unique(db, payload.email, payload.username)

    user = User(
        full_name=payload.full_name,
        email=payload.email.lower(),
        username=payload.username,
        hashed_password=get_password_hash(payload.password),
        role=payload.role,
        mobile_number=payload.mobile_number,
        designation=payload.designation,
        site_id=payload.site_id,
        assigned_sites=list(payload.assigned_sites),
        preferences={},
    )
    db.add(user)
    await db.flush()

    log_admin_action(db, current_admin.id, "user_created", "user", user.id,
                     {"email": user.email, "role": user.role.value}, request)
    await worklog_service.log_activity(
        db, current_admin.id, WorkLogCategory.USER_CREATED,
        f"Created user {user.username} ({user.role.value})", ref_type="User", ref_id=user.id,
    )
    await db.commit()
    return user


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    request: Request,
    payload: UserUpdate,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    user = await _get_user_or_404(db, user_id)
    changes = payload.model_dump(exclude_unset=True)
    await _ensure_unique(db, changes.get("email"), changes.get("username"), exclude_id=user.id)

    if user.id == current_admin.id and changes.get("is_active") is False:
        raise HTTPException(status_code=400, detail="Cannot deactivate your own account")

    if changes.get("email"):
        changes["email"] = changes["email"].lower()
    for field, value in changes.items():
        if value is None and field in ("full_name", "email", "username", "role", "is_active", "assigned_sites"):
            continue
        setattr(user, field, value)

    log_admin_action(db, current_admin.id, "user_updated", "user", user.id,
                     {k: getattr(v, "value", v) for k, v in changes.items()}, request)
    await worklog_service.log_activity(
        db, current_admin.id, WorkLogCategory.USER_UPDATED,
        f"Updated user {user.username}", ref_type="User", ref_id=user.id,
    )
    await db.commit()
    return user


async def _set_active(db: AsyncSession, request: Request, user_id: str, admin: User, active: bool) -> User:
    user = await _get_user_or_404(db, user_id)
    if user.id == admin.id and not active:
        raise HTTPException(status_code=400, detail="Cannot deactivate your own account")
    user.is_active = active
    action = "user_activated" if active else "user_deactivated"
    log_admin_action(db, admin.id, action, "user", user.id, None, request)
    await worklog_service.log_activity(
        db, admin.id, WorkLogCategory.USER_UPDATED if active else WorkLogCategory.USER_DELETED,
        f"{'Activated' if active else 'Deactivated'} user {user.username}", ref_type="User", ref_id=user.id,
    )
    await db.commit()
    return user


@router.put("/{user_id}/activate", response_model=UserResponse)
async def activate_user(
    user_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    return await _set_active(db, request, user_id, current_admin, True)


@router.put("/{user_id}/deactivate", response_model=UserResponse)
async def deactivate_user(
    user_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    return await _set_active(db, request, user_id, current_admin, False)


@router.delete("/{user_id}")
async def delete_user(
    user_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """Users are deactivated, never removed, so their history stays intact"""
    await _set_active(db, request, user_id, current_admin, False)
    return {"message": "User deactivated successfully"}


@router.put("/{user_id}/reset-password")
async def reset_password(
    user_id: str,
    request: Request,
    payload: AdminPasswordReset,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    user = await _get_user_or_404(db, user_id)
    generated = payload.new_password is None
    new_password = payload.new_password or generate_temp_password()

    user.hashed_password = get_password_hash(new_password)
    user.preferences = {**(user.preferences or {}), "must_change_password": True}

    email_sent = False
    if generated:
        email_sent = await email_service.send_account_credentials(
            user.email, user.full_name, user.username, new_password, db=db, reset=True,
        )
    log_admin_action(db, current_admin.id, "password_reset", "user", user.id, {"generated": generated}, request)
    await db.commit()

    response = {"message": "Password reset successfully", "email_sent": email_sent}
    if generated:
        response["temp_password"] = new_password
    return response
