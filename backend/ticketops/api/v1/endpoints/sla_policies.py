from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_
from typing import List

from ticketops.core.database import get_db
from ticketops.models.ticket import SLAPolicy, TicketPriority
from ticketops.models.user import User
from ticketops.modules.auth.dependencies import get_current_user, get_current_admin
from ticketops.schemas.ticket import SLAPolicyCreate, SLAPolicyUpdate, SLAPolicyResponse

router = APIRouter()


async def _active_exists(db: AsyncSession, priority: TicketPriority, exclude_id: str = None) -> bool:
    stmt = select(func.count(SLAPolicy.id)).where(and_(
        SLAPolicy.priority == priority,
        SLAPolicy.is_active.is_(True),
    ))
    if exclude_id:
        stmt = stmt.where(SLAPolicy.id != exclude_id)
    return bool(await db.scalar(stmt))


@router.get("", response_model=List[SLAPolicyResponse])
async def list_policies(
    include_inactive: bool = False,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    query = select(SLAPolicy)
    if not include_inactive:
        query = query.where(SLAPolicy.is_active.is_(True))
    result = await db.execute(query.order_by(SLAPolicy.priority))
    return result.scalars().all()


@router.get("/{policy_id}", response_model=SLAPolicyResponse)
async def get_policy(
    policy_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    policy = await db.get(SLAPolicy, policy_id)
    if not policy:
        raise HTTPException(status_code=404, detail="SLA policy not found")
    return policy


@router.post("", response_model=SLAPolicyResponse, status_code=201)
async def create_policy(
    payload: SLAPolicyCreate,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    if payload.is_active and await _active_exists(db, payload.priority):
        raise HTTPException(
            status_code=409,
            detail=f"An active SLA policy already exists for {payload.priority.value}"
        )
    policy = SLAPolicy(**payload.model_dump())
    db.add(policy)
    await db.commit()
    await db.refresh(policy)
    return policy


@router.put("/{policy_id}", response_model=SLAPolicyResponse)
async def update_policy(
    policy_id: str,
    payload: SLAPolicyUpdate,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    policy = await db.get(SLAPolicy, policy_id)
    if not policy:
        raise HTTPException(status_code=404, detail="SLA policy not found")

    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if changes.get("is_active") and not policy.is_active and await _active_exists(db, policy.priority, policy.id):
        raise HTTPException(
            status_code=409,
            detail=f"An active SLA policy already exists for {policy.priority.value}"
        )
    for field, value in changes.items():
        setattr(policy, field, value)
    await db.commit()
    await db.refresh(policy)
    return policy


@router.delete("/{policy_id}")
async def delete_policy(
    policy_id: str,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    policy = await db.get(SLAPolicy, policy_id)
    if not policy:
        raise HTTPException(status_code=404, detail="SLA policy not found")
    policy.is_active = False
    await db.commit()
    return {"message": "SLA policy deactivated"}
