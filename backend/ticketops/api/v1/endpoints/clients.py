"""Client (SiteClient) account management for admins"""
from fastapi import APIRouter, Depends, Query, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_, and_
from typing import Optional

from ticketops.core.database import get_db
from ticketops.models.user import User, UserRole
from ticketops.modules.auth.dependencies import get_current_admin
from ticketops.schemas.auth import UserResponse
from ticketops.schemas.client_registration import ClientCreate, ClientUpdate, ClientCredentials
from ticketops.schemas.common import Page
from ticketops.services import client_registration_service
from ticketops.services.audit_service import log_admin_action
from ticketops.utils.pagination import paginate

router = APIRouter()


async def _get_client_or_404(db: AsyncSession, user_id: str) -> User:
    user = await db.get(User, user_id)
    if not user or user.role != UserRole.SITE_CLIENT:
        raise HTTPException(status_code=404, detail="Client not found")
    return user


@router.get("", response_model=Page[UserResponse])
async def list_clients(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    conditions = [User.role == UserRole.SITE_CLIENT]
    if search:
        term = f"%{search}%"
        conditions.append(or_(User.full_name.ilike(term), User.email.ilike(term), User.username.ilike(term)))
    if is_active is not None:
        conditions.append(User.is_active == is_active)

    query = select(User).where(and_(*conditions)).order_by(User.full_name)
    return await paginate(db, query, page, page_size)


@router.post("", response_model=ClientCredentials, status_code=201)
async def create_client(
    payload: ClientCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    user, temp_password, email_sent = await client_registration_service.create_client(db, payload)
    log_admin_action(db, current_admin.id, "client_created", "user", user.id, {"email": user.email}, request)
    await db.commit()
    return {
        "user_id": user.id,
        "username": user.username,
        "temp_password": temp_password,
        "email_sent": email_sent,
    }


@router.put("/{user_id}", response_model=UserResponse)
async def update_client(
    user_id: str,
    payload: ClientUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    user = await _get_client_or_404(db, user_id)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)

    if "email" in changes:
        changes["email"] = changes["email"].lower()
        taken = await db.scalar(
            select(func.count(User.id)).where(and_(func.lower(User.email) == changes["email"], User.id != user.id))
        )
        if taken:
            raise HTTPException(status_code=409, detail="Email is already in use")
    if "site_id" in changes:
        user.assigned_sites = [changes["site_id"]]

    for field, value in changes.items():
        setattr(user, field, value)

    log_admin_action(db, current_admin.id, "client_updated", "user", user.id, changes, request)
    await db.commit()
    await db.refresh(user)
    return user


@router.delete("/{user_id}")
async def delete_client(
    user_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    user = await _get_client_or_404(db, user_id)
    user.is_active = False
    log_admin_action(db, current_admin.id, "client_deactivated", "user", user.id, None, request)
    await db.commit()
    return {"message": "Client deactivated successfully"}


@router.post("/{user_id}/reset-password", response_model=ClientCredentials)
async def reset_client_password(
    user_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    user = await _get_client_or_404(db, user_id)
    temp_password, email_sent = await client_registration_service.reset_client_password(db, user)
    log_admin_action(db, current_admin.id, "password_reset", "user", user.id, {"client": True}, request)
    await db.commit()
    return {
        "user_id": user.id,
        "username": user.username,
        "temp_password": temp_password,
        "email_sent": email_sent,
    }
