"""
Ticket endpoints: CRUD, lifecycle actions, activities and dashboard stats.

Lifecycle rules live in ``ticket_service``; errors it raises are turned
into responses by the application's TicketOpsError handler.
"""
from fastapi import APIRouter, Depends, Query, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_, and_
from typing import Optional, List

from ticketops.core.database import get_db
from ticketops.models.asset import Asset
from ticketops.models.ticket import (
    Ticket, TicketActivity, TicketStatus, TicketPriority, TicketCategory, ActivityType,
)
from ticketops.models.user import User, MANAGER_ROLES, ENGINEER_ROLES
from ticketops.models.user_right import Right
from ticketops.modules.auth.dependencies import get_current_user, allow_access
from ticketops.schemas.common import Page
from ticketops.schemas.ticket import (
    TicketCreate, TicketUpdate, TicketResponse, TicketDetail, AssignRequest,
    RemarksRequest, HoldRequest, ResolveRequest, ReasonRequest, ActivityCreate,
    ActivityResponse, DashboardStats,
)
from ticketops.services import ticket_service
from ticketops.utils.pagination import paginate

router = APIRouter()

SORTABLE_FIELDS = {
    "created_at": Ticket.created_at,
    "updated_at": Ticket.updated_at,
    "priority": Ticket.priority,
    "status": Ticket.status,
    "ticket_number": Ticket.ticket_number,
    "sla_restore_due": Ticket.sla_restore_due,
}

create_access = allow_access(roles=[*MANAGER_ROLES, *ENGINEER_ROLES], rights=[Right.CREATE_TICKET])
edit_access = allow_access(roles=MANAGER_ROLES, rights=[Right.EDIT_TICKET])


async def _get_visible_ticket(db: AsyncSession, ticket_id: str, user: User) -> Ticket:
    ticket = await ticket_service.get_ticket(db, ticket_id)
    if not ticket_service.can_view(user, ticket):
        raise HTTPException(status_code=403, detail="Not authorized to view this ticket")
    return ticket


async def _detail(db: AsyncSession, ticket: Ticket) -> dict:
    data = TicketResponse.model_validate(ticket).model_dump()
    data["asset"] = await db.get(Asset, ticket.asset_id) if ticket.asset_id else None
    data["assignee"] = await db.get(User, ticket.assigned_to) if ticket.assigned_to else None
    data["creator"] = await db.get(User, ticket.created_by) if ticket.created_by else None
    return data


async def _activities(db: AsyncSession, ticket: Ticket, user: User, newest_first: bool = False) -> List[dict]:
    order = TicketActivity.created_at.desc() if newest_first else TicketActivity.created_at.asc()
    stmt = (
        select(TicketActivity, User.full_name)
        .outerjoin(User, User.id == TicketActivity.user_id)
        .where(TicketActivity.ticket_id == ticket.id)
        .order_by(order)
    )
    if user.is_client:
        stmt = stmt.where(TicketActivity.is_internal.is_(False))

    activities = []
    for activity, user_name in (await db.execute(stmt)).all():
        data = ActivityResponse.model_validate(activity).model_dump()
        data["user_name"] = user_name
        activities.append(data)
    return activities


@router.get("", response_model=Page[TicketResponse])
async def list_tickets(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None, description="Comma separated statuses"),
    priority: Optional[TicketPriority] = None,
    category: Optional[TicketCategory] = None,
    asset_id: Optional[str] = None,
    site_id: Optional[str] = None,
    assigned_to: Optional[str] = None,
    created_by: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: str = Query("created_at"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """List tickets visible to the caller with filtering and pagination"""
    conditions = ticket_service.scope_conditions(current_user)

    if status:
        try:
            statuses = [TicketStatus(s.strip()) for s in status.split(",") if s.strip()]
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid status filter: {status}")
        if statuses:
            conditions.append(Ticket.status.in_(statuses))
    if priority:
        conditions.append(Ticket.priority == priority)
    if category:
        conditions.append(Ticket.category == category)
    if asset_id:
        conditions.append(Ticket.asset_id == asset_id)
    if site_id:
        conditions.append(Ticket.site_id == site_id)
    if assigned_to:
        conditions.append(Ticket.assigned_to == assigned_to)
    if created_by:
        conditions.append(Ticket.created_by == created_by)
    if search:
        term = f"%{search}%"
        conditions.append(or_(
            Ticket.ticket_number.ilike(term),
            Ticket.title.ilike(term),
            Ticket.description.ilike(term),
        ))

    sort_column = SORTABLE_FIELDS.get(sort_by, Ticket.created_at)
    query = select(Ticket)
    if conditions:
        query = query.where(and_(*conditions))
    query = query.order_by(sort_column.asc() if sort_order == "asc" else sort_column.desc())

    return await paginate(db, query, page, page_size)


@router.get("/dashboard/stats", response_model=DashboardStats)
async def dashboard_stats(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await ticket_service.get_dashboard_stats(db, current_user)


@router.post("", response_model=TicketDetail, status_code=201)
async def create_ticket(
    payload: TicketCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(create_access)
):
    ticket = await ticket_service.create_ticket(db, payload, current_user)
    await db.commit()
    await db.refresh(ticket)
    return await _detail(db, ticket)


@router.get("/{ticket_id}", response_model=TicketDetail)
async def get_ticket(
    ticket_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    ticket = await _get_visible_ticket(db, ticket_id, current_user)
    return await _detail(db, ticket)


@router.put("/{ticket_id}", response_model=TicketDetail)
async def update_ticket(
    ticket_id: str,
    payload: TicketUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(edit_access)
):
    ticket = await ticket_service.get_ticket(db, ticket_id)
    await ticket_service.update_ticket(db, ticket, payload, current_user)
    await db.commit()
    await db.refresh(ticket)
    return await _detail(db, ticket)


@router.get("/{ticket_id}/actions", response_model=List[str])
async def available_actions(
    ticket_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Actions valid from the ticket's current status"""
    ticket = await _get_visible_ticket(db, ticket_id, current_user)
    return ticket_service.allowed_actions(ticket.status)


# ==================== Lifecycle actions ====================

async def _run_action(db: AsyncSession, ticket_id: str, action: str, user: User, **payload) -> dict:
    # Role and right checks live in perform_action; a right holder may act on
    # tickets outside their list scope
    ticket = await ticket_service.get_ticket(db, ticket_id)
    await ticket_service.perform_action(db, ticket, action, user, **payload)
    await db.commit()
    await db.refresh(ticket)
    return await _detail(db, ticket)


def _remarks(payload: Optional[RemarksRequest]) -> Optional[str]:
    return payload.remarks if payload else None


@router.post("/{ticket_id}/assign", response_model=TicketDetail)
async def assign_ticket(
    ticket_id: str,
    payload: AssignRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await _run_action(db, ticket_id, "assign", current_user,
                             assigned_to=payload.assigned_to, remarks=payload.remarks)


@router.post("/{ticket_id}/acknowledge", response_model=TicketDetail)
async def acknowledge_ticket(
    ticket_id: str,
    payload: Optional[RemarksRequest] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await _run_action(db, ticket_id, "acknowledge", current_user, remarks=_remarks(payload))


@router.post("/{ticket_id}/start", response_model=TicketDetail)
async def start_ticket(
    ticket_id: str,
    payload: Optional[RemarksRequest] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await _run_action(db, ticket_id, "start", current_user, remarks=_remarks(payload))


@router.post("/{ticket_id}/hold", response_model=TicketDetail)
async def hold_ticket(
    ticket_id: str,
    payload: HoldRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await _run_action(db, ticket_id, "hold", current_user, reason=payload.reason)


@router.post("/{ticket_id}/resolve", response_model=TicketDetail)
async def resolve_ticket(
    ticket_id: str,
    payload: ResolveRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await _run_action(db, ticket_id, "resolve", current_user,
                             root_cause=payload.root_cause,
                             resolution_summary=payload.resolution_summary)


@router.post("/{ticket_id}/verify", response_model=TicketDetail)
async def verify_ticket(
    ticket_id: str,
    payload: Optional[RemarksRequest] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await _run_action(db, ticket_id, "verify", current_user, remarks=_remarks(payload))


@router.post("/{ticket_id}/reject-resolution", response_model=TicketDetail)
async def reject_resolution(
    ticket_id: str,
    payload: ReasonRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await _run_action(db, ticket_id, "reject-resolution", current_user, reason=payload.reason)


@router.post("/{ticket_id}/acknowledge-rejection", response_model=TicketDetail)
async def acknowledge_rejection(
    ticket_id: str,
    payload: Optional[RemarksRequest] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await _run_action(db, ticket_id, "acknowledge-rejection", current_user, remarks=_remarks(payload))


@router.post("/{ticket_id}/escalate", response_model=TicketDetail)
async def escalate_ticket(
    ticket_id: str,
    payload: ReasonRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await _run_action(db, ticket_id, "escalate", current_user, reason=payload.reason)


@router.post("/{ticket_id}/accept-escalation", response_model=TicketDetail)
async def accept_escalation(
    ticket_id: str,
    payload: Optional[RemarksRequest] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await _run_action(db, ticket_id, "accept-escalation", current_user, remarks=_remarks(payload))


@router.post("/{ticket_id}/close", response_model=TicketDetail)
async def close_ticket(
    ticket_id: str,
    payload: Optional[RemarksRequest] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await _run_action(db, ticket_id, "close", current_user, remarks=_remarks(payload))


@router.post("/{ticket_id}/cancel", response_model=TicketDetail)
async def cancel_ticket(
    ticket_id: str,
    payload: Optional[RemarksRequest] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await _run_action(db, ticket_id, "cancel", current_user, remarks=_remarks(payload))


@router.post("/{ticket_id}/reopen", response_model=TicketDetail)
async def reopen_ticket(
    ticket_id: str,
    payload: Optional[RemarksRequest] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await _run_action(db, ticket_id, "reopen", current_user, remarks=_remarks(payload))


# ==================== Activities ====================

@router.get("/{ticket_id}/activities", response_model=List[ActivityResponse])
async def list_activities(
    ticket_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    ticket = await _get_visible_ticket(db, ticket_id, current_user)
    return await _activities(db, ticket, current_user)


@router.post("/{ticket_id}/activities", response_model=ActivityResponse, status_code=201)
async def add_activity(
    ticket_id: str,
    payload: ActivityCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Add a comment or note"""
    ticket = await _get_visible_ticket(db, ticket_id, current_user)
    if payload.activity_type not in (ActivityType.COMMENT, ActivityType.NOTE):
        raise HTTPException(status_code=400, detail="Only comments and notes can be added directly")
    if current_user.is_client and payload.is_internal:
        raise HTTPException(status_code=403, detail="Client users cannot add internal notes")

    activity = ticket_service.add_activity(
        db, ticket, current_user.id, payload.activity_type, payload.content,
        is_internal=payload.is_internal,
    )
    await db.commit()
    await db.refresh(activity)

    data = ActivityResponse.model_validate(activity).model_dump()
    data["user_name"] = current_user.full_name
    return data


@router.get("/{ticket_id}/audit-trail", response_model=List[ActivityResponse])
async def audit_trail(
    ticket_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(allow_access(roles=[*MANAGER_ROLES, *ENGINEER_ROLES]))
):
    """Every activity on the ticket, newest first"""
    ticket = await _get_visible_ticket(db, ticket_id, current_user)
    return await _activities(db, ticket, current_user, newest_first=True)
