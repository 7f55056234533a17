"""
Asset update links.

The ``/token/{token}`` routes are public: the link itself is the credential,
so they are rate limited per client instead of authenticated.
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from ticketops.core.database import get_db
from ticketops.core.rate_limiter import limiter, PUBLIC_LINK_LIMIT
from ticketops.models.user import User, UserRole, MANAGER_ROLES, ENGINEER_ROLES
from ticketops.modules.auth.dependencies import allow_access
from ticketops.schemas.asset_update import (
    AssetUpdateInitiate, AssetUpdateSubmit, AssetUpdateReject,
    AssetUpdateRequestResponse, AssetUpdateLinkInfo,
)
from ticketops.services import asset_update_service

router = APIRouter()

reviewer = allow_access(roles=[UserRole.ADMIN, UserRole.SUPERVISOR])
staff = allow_access(roles=[*MANAGER_ROLES, *ENGINEER_ROLES])


@router.post("", response_model=AssetUpdateRequestResponse, status_code=201)
async def initiate_update(
    payload: AssetUpdateInitiate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(staff)
):
    """Issue (or re-issue the still-valid) update link for an asset"""
    update_request = await asset_update_service.initiate(db, payload, current_user)
    await db.commit()
    await db.refresh(update_request)
    return update_request


@router.get("/token/{token}", response_model=AssetUpdateLinkInfo)
@limiter.limit(PUBLIC_LINK_LIMIT)
async def validate_token(
    request: Request,
    token: str,
    db: AsyncSession = Depends(get_db)
):
    return await asset_update_service.validate(db, token)


@router.post("/token/{token}/submit")
@limiter.limit(PUBLIC_LINK_LIMIT)
async def submit_changes(
    request: Request,
    token: str,
    payload: AssetUpdateSubmit,
    db: AsyncSession = Depends(get_db)
):
    update_request = await asset_update_service.submit(db, token, payload.changes)
    await db.commit()
    return {
        "message": "Changes submitted for review",
        "submitted_fields": sorted(update_request.proposed_changes),
    }


@router.get("/pending", response_model=List[AssetUpdateRequestResponse])
async def list_pending(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(reviewer)
):
    return await asset_update_service.list_pending(db)


@router.get("/rma/{rma_id}", response_model=List[AssetUpdateRequestResponse])
async def list_for_rma(
    rma_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(staff)
):
    return await asset_update_service.list_for_rma(db, rma_id)


@router.get("/{request_id}", response_model=AssetUpdateRequestResponse)
async def get_update_request(
    request_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(staff)
):
    return await asset_update_service.get_request(db, request_id)


@router.post("/{request_id}/approve", response_model=AssetUpdateRequestResponse)
async def approve_update(
    request_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(reviewer)
):
    update_request = await asset_update_service.get_request(db, request_id)
    await asset_update_service.approve(db, update_request, current_user)
    await db.commit()
    await db.refresh(update_request)
    return update_request


@router.post("/{request_id}/reject", response_model=AssetUpdateRequestResponse)
async def reject_update(
    request_id: str,
    payload: AssetUpdateReject,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(reviewer)
):
    update_request = await asset_update_service.get_request(db, request_id)
    await asset_update_service.reject(db, update_request, current_user, payload.reason)
    await db.commit()
    await db.refresh(update_request)
    return update_request
