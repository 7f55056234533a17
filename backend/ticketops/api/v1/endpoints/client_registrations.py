from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from typing import Optional

from ticketops.core.database import get_db
from ticketops.core.rate_limiter import limiter, PUBLIC_FORM_LIMIT
from ticketops.models.client_registration import ClientRegistration, RegistrationStatus
from ticketops.models.user import User
from ticketops.modules.auth.dependencies import get_current_admin
from ticketops.schemas.client_registration import (
    RegistrationSubmit, RegistrationReject, RegistrationResponse, ApprovalResult,
)
from ticketops.schemas.common import Page, CountResponse
from ticketops.services import client_registration_service
from ticketops.services.audit_service import log_admin_action
from ticketops.utils.pagination import paginate

router = APIRouter()


@router.post("", status_code=201)
@limiter.limit(PUBLIC_FORM_LIMIT)
async def submit_registration(
    request: Request,
    payload: RegistrationSubmit,
    db: AsyncSession = Depends(get_db)
):
    """Public sign-up form; admins are alerted by e-mail"""
    registration = await client_registration_service.submit_registration(db, payload)
    await db.commit()
    return {
        "message": "Registration submitted. You will receive your login details once approved.",
        "id": registration.id,
    }


@router.get("", response_model=Page[RegistrationResponse])
async def list_registrations(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[RegistrationStatus] = None,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    query = select(ClientRegistration)
    if status:
        query = query.where(ClientRegistration.status == status)
    return await paginate(db, query.order_by(ClientRegistration.created_at.desc()), page, page_size)


@router.get("/pending-count", response_model=CountResponse)
async def pending_count(
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    count = await db.scalar(
        select(func.count(ClientRegistration.id))
        .where(ClientRegistration.status == RegistrationStatus.PENDING)
    )
    return {"count": count or 0}


@router.get("/{registration_id}", response_model=RegistrationResponse)
async def get_registration(
    registration_id: str,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    return await client_registration_service.get_registration(db, registration_id)


@router.post("/{registration_id}/approve", response_model=ApprovalResult)
async def approve_registration(
    registration_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    registration = await client_registration_service.get_registration(db, registration_id)
    user, temp_password, email_sent = await client_registration_service.approve_registration(
        db, registration, current_admin
    )
    log_admin_action(db, current_admin.id, "client_registration_approved", "client_registration",
                     registration.id, {"user_id": user.id, "email": user.email}, request)
    await db.commit()
    await db.refresh(registration)

    return {
        "registration": registration,
        "user_id": user.id,
        "username": user.username,
        "temp_password": temp_password,
        "email_sent": email_sent,
    }


@router.post("/{registration_id}/reject", response_model=RegistrationResponse)
async def reject_registration(
    registration_id: str,
    payload: RegistrationReject,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    registration = await client_registration_service.get_registration(db, registration_id)
    await client_registration_service.reject_registration(db, registration, current_admin, payload.reason)
    log_admin_action(db, current_admin.id, "client_registration_rejected", "client_registration",
                     registration.id, {"reason": registration.rejection_reason}, request)
    await db.commit()
    await db.refresh(registration)
    return registration
