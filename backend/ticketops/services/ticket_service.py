"""
Ticket lifecycle
================

Creation (numbering, priority scoring, SLA due dates), the status
transition table and the dashboard statistics.

Transitions:
    assign                 Open, Assigned, Escalated, ResolutionRejected -> Assigned
    acknowledge            Assigned -> Acknowledged
    start                  Acknowledged, OnHold, ResolutionRejected -> InProgress
    hold                   Acknowledged, InProgress -> OnHold
    resolve                InProgress -> Resolved
    verify                 Resolved -> Verified
    reject-resolution      Resolved -> ResolutionRejected
    acknowledge-rejection  ResolutionRejected -> InProgress
    escalate               Assigned, Acknowledged, InProgress, OnHold -> Escalated
    accept-escalation      Escalated -> Assigned
    close                  Resolved, Verified -> Closed
    cancel                 Open, Assigned, Acknowledged, OnHold -> Cancelled
    reopen                 Resolved, Verified, Closed, Cancelled -> Open
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Tuple, List

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from ticketops.core.config import settings
from ticketops.core.exceptions import (
    InvalidTransitionError, AuthorizationError, ResourceNotFoundError, ValidationError,
)
from ticketops.core.logging_config import logger
from ticketops.models.asset import Asset, AssetStatus
from ticketops.models.ticket import (
    Ticket, TicketActivity, SLAPolicy, TicketStatus, TicketPriority, ActivityType,
)
from ticketops.models.user import User, CLIENT_ROLES, ENGINEER_ROLES
from ticketops.models.user_right import Right
from ticketops.models.notification import NotificationType
from ticketops.models.worklog import WorkLogCategory
from ticketops.modules.auth.dependencies import load_user_rights
from ticketops.services import notification_service, worklog_service
from ticketops.services.email_service import email_service
from ticketops.utils.numbering import next_document_number

TICKET_PREFIX = "TKT"
DEFAULT_CRITICALITY = 2
MAX_ESCALATION_LEVEL = 3

# (minimum score, priority), checked top down
PRIORITY_THRESHOLDS = (
    (50, TicketPriority.P1),
    (25, TicketPriority.P2),
    (10, TicketPriority.P3),
)

OPEN_FOR_SLA = (
    TicketStatus.OPEN,
    TicketStatus.ASSIGNED,
    TicketStatus.ACKNOWLEDGED,
    TicketStatus.IN_PROGRESS,
    TicketStatus.ON_HOLD,
    TicketStatus.ESCALATED,
    TicketStatus.RESOLUTION_REJECTED,
)


def calculate_priority(impact: int, urgency: int, criticality: Optional[int]) -> Tuple[int, TicketPriority]:
    score = impact * urgency * (criticality or DEFAULT_CRITICALITY)
    for threshold, priority in PRIORITY_THRESHOLDS:
        if score >= threshold:
            return score, priority
    return score, TicketPriority.P4


async def get_active_sla_policy(db: AsyncSession, priority: TicketPriority) -> Optional[SLAPolicy]:
    result = await db.execute(
        select(SLAPolicy)
        .where(and_(SLAPolicy.priority == priority, SLAPolicy.is_active.is_(True)))
        .order_by(SLAPolicy.created_at.desc())
    )
    return result.scalars().first()


def apply_sla(ticket: Ticket, policy: Optional[SLAPolicy], start: datetime) -> None:
    if policy is None:
        ticket.sla_policy_id = None
        ticket.sla_response_due = None
        ticket.sla_restore_due = None
        return
    ticket.sla_policy_id = policy.id
    ticket.sla_response_due = start + timedelta(minutes=policy.response_time_minutes)
    ticket.sla_restore_due = start + timedelta(minutes=policy.restore_time_minutes)


def add_activity(
    db: AsyncSession,
    ticket: Ticket,
    user_id: Optional[str],
    activity_type: ActivityType,
    content: str,
    from_status: Optional[str] = None,
    to_status: Optional[str] = None,
    is_internal: bool = False,
) -> TicketActivity:
    activity = TicketActivity(
        ticket_id=ticket.id,
        user_id=str(user_id) if user_id else None,
        activity_type=activity_type,
        content=content,
        from_status=from_status,
        to_status=to_status,
        is_internal=is_internal,
    )
    db.add(activity)
    return activity


async def get_ticket(db: AsyncSession, ticket_id: str) -> Ticket:
    ticket = await db.get(Ticket, ticket_id)
    if not ticket:
        raise ResourceNotFoundError("Ticket", ticket_id)
    return ticket


def scope_conditions(user: User) -> list:
    """Row filters limiting what a user may see in ticket lists"""
    if user.role in ENGINEER_ROLES:
        return [Ticket.assigned_to == user.id]
    if user.role in CLIENT_ROLES:
        sites = [s for s in [user.site_id, *(user.assigned_sites or [])] if s]
        return [Ticket.site_id.in_(sites)]
    return []


def can_view(user: User, ticket: Ticket) -> bool:
    if user.role in ENGINEER_ROLES:
        return ticket.assigned_to == user.id or ticket.created_by == user.id
    if user.role in CLIENT_ROLES:
        return bool(ticket.site_id) and ticket.site_id in [user.site_id, *(user.assigned_sites or [])]
    return True


async def create_ticket(db: AsyncSession, data, user: User) -> Ticket:
    asset = None
    if data.asset_id:
        asset = await db.get(Asset, data.asset_id)
        if not asset or not asset.is_active:
            raise ResourceNotFoundError("Asset", data.asset_id)

    site_id = data.site_id or (asset.site_id if asset else None)
    score, computed = calculate_priority(data.impact, data.urgency, asset.criticality if asset else None)
    priority = data.priority or computed

    now = datetime.utcnow()
    ticket = Ticket(
        ticket_number=await next_document_number(db, Ticket.ticket_number, TICKET_PREFIX, now),
        asset_id=asset.id if asset else None,
        site_id=site_id,
        category=data.category,
        sub_category=data.sub_category,
        title=data.title,
        description=data.description,
        tags=list(data.tags or []),
        impact=data.impact,
        urgency=data.urgency,
        priority_score=score,
        priority=priority,
        status=TicketStatus.OPEN,
        source=data.source,
        source_reference=data.source_reference,
        created_by=user.id,
        created_at=now,
    )
    apply_sla(ticket, await get_active_sla_policy(db, priority), now)
    db.add(ticket)
    await db.flush()

    add_activity(
        db, ticket, user.id, ActivityType.STATUS_CHANGE,
        f"Ticket created with priority {priority.value}", to_status=TicketStatus.OPEN.value,
    )
    await worklog_service.log_activity(
        db, user.id, WorkLogCategory.TICKET_CREATED,
        f"Created ticket {ticket.ticket_number}: {ticket.title}",
        ref_type="Ticket", ref_id=ticket.id,
    )
    logger.log_ticket_event(ticket.ticket_number, "create", None, TicketStatus.OPEN.value, priority=priority.value)

    if data.assigned_to:
        await perform_action(db, ticket, "assign", user, assigned_to=data.assigned_to)
    return ticket


async def update_ticket(db: AsyncSession, ticket: Ticket, data, user: User) -> Ticket:
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    for field, value in changes.items():
        setattr(ticket, field, value)

    if "impact" in changes or "urgency" in changes:
        criticality = None
        if ticket.asset_id:
            asset = await db.get(Asset, ticket.asset_id)
            criticality = asset.criticality if asset else None
        score, computed = calculate_priority(ticket.impact, ticket.urgency, criticality)
        ticket.priority_score = score
        if not changes.get("priority"):
            ticket.priority = computed

    if {"priority", "impact", "urgency"} & set(changes):
        apply_sla(ticket, await get_active_sla_policy(db, ticket.priority), ticket.created_at)

    if changes:
        add_activity(
            db, ticket, user.id, ActivityType.NOTE,
            f"Updated {', '.join(sorted(changes))}", is_internal=True,
        )
        await worklog_service.log_activity(
            db, user.id, WorkLogCategory.TICKET_UPDATED,
            f"Updated ticket {ticket.ticket_number}", ref_type="Ticket", ref_id=ticket.id,
        )
    return ticket


# ==================== Transitions ====================

@dataclass(frozen=True)
class Transition:
    action: str
    from_statuses: Tuple[TicketStatus, ...]
    to_status: TicketStatus
    activity_type: ActivityType
    worklog_category: WorkLogCategory
    # Who besides managers (Admin/Dispatcher/Supervisor) may act
    assignee_allowed: bool = False
    rights: Tuple[Right, ...] = ()
    managers_allowed: bool = True


S = TicketStatus

TRANSITIONS = {t.action: t for t in (
    Transition("assign", (S.OPEN, S.ASSIGNED, S.ESCALATED, S.RESOLUTION_REJECTED), S.ASSIGNED,
               ActivityType.ASSIGNMENT, WorkLogCategory.TICKET_ASSIGNED, rights=(Right.EDIT_TICKET,)),
    Transition("acknowledge", (S.ASSIGNED,), S.ACKNOWLEDGED,
               ActivityType.STATUS_CHANGE, WorkLogCategory.TICKET_ACKNOWLEDGED, assignee_allowed=True),
    Transition("start", (S.ACKNOWLEDGED, S.ON_HOLD, S.RESOLUTION_REJECTED), S.IN_PROGRESS,
               ActivityType.STATUS_CHANGE, WorkLogCategory.TICKET_STARTED, assignee_allowed=True),
    Transition("hold", (S.ACKNOWLEDGED, S.IN_PROGRESS), S.ON_HOLD,
               ActivityType.STATUS_CHANGE, WorkLogCategory.TICKET_UPDATED, assignee_allowed=True),
    Transition("resolve", (S.IN_PROGRESS,), S.RESOLVED,
               ActivityType.RESOLUTION, WorkLogCategory.TICKET_RESOLVED, assignee_allowed=True),
    Transition("verify", (S.RESOLVED,), S.VERIFIED,
               ActivityType.STATUS_CHANGE, WorkLogCategory.TICKET_VERIFIED, rights=(Right.EDIT_TICKET,)),
    Transition("reject-resolution", (S.RESOLVED,), S.RESOLUTION_REJECTED,
               ActivityType.STATUS_CHANGE, WorkLogCategory.TICKET_UPDATED, rights=(Right.EDIT_TICKET,)),
    Transition("acknowledge-rejection", (S.RESOLUTION_REJECTED,), S.IN_PROGRESS,
               ActivityType.STATUS_CHANGE, WorkLogCategory.TICKET_UPDATED,
               assignee_allowed=True, managers_allowed=False),
    Transition("escalate", (S.ASSIGNED, S.ACKNOWLEDGED, S.IN_PROGRESS, S.ON_HOLD), S.ESCALATED,
               ActivityType.ESCALATION, WorkLogCategory.TICKET_ESCALATED, rights=(Right.EDIT_TICKET,)),
    Transition("accept-escalation", (S.ESCALATED,), S.ASSIGNED,
               ActivityType.ASSIGNMENT, WorkLogCategory.TICKET_ASSIGNED),
    Transition("close", (S.RESOLVED, S.VERIFIED), S.CLOSED,
               ActivityType.STATUS_CHANGE, WorkLogCategory.TICKET_CLOSED, rights=(Right.DELETE_TICKET,)),
    Transition("cancel", (S.OPEN, S.ASSIGNED, S.ACKNOWLEDGED, S.ON_HOLD), S.CANCELLED,
               ActivityType.STATUS_CHANGE, WorkLogCategory.TICKET_CLOSED, rights=(Right.DELETE_TICKET,)),
    Transition("reopen", (S.RESOLVED, S.VERIFIED, S.CLOSED, S.CANCELLED), S.OPEN,
               ActivityType.STATUS_CHANGE, WorkLogCategory.TICKET_REOPENED,
               rights=(Right.CREATE_TICKET, Right.EDIT_TICKET)),
)}

ESCALATION_RIGHTS = {
    1: Right.ESCALATION_L1,
    2: Right.ESCALATION_L2,
    3: Right.ESCALATION_L3,
}


def allowed_actions(status: TicketStatus) -> List[str]:
    return [name for name, t in TRANSITIONS.items() if status in t.from_statuses]


async def check_permission(db: AsyncSession, transition: Transition, ticket: Ticket, user: User) -> None:
    if transition.managers_allowed and user.is_manager:
        return
    if transition.assignee_allowed and ticket.assigned_to and ticket.assigned_to == user.id:
        return

    rights = transition.rights
    if transition.action == "accept-escalation":
        rights = (ESCALATION_RIGHTS.get(ticket.escalation_level, Right.ESCALATION_L3),)
    if rights:
        user_rights = await load_user_rights(db, user)
        if user_rights and any(user_rights.has_right(r, ticket.site_id) for r in rights):
            return

    raise AuthorizationError(f"Not authorized to {transition.action} this ticket")


async def _resolve_assignee(db: AsyncSession, user_id: str) -> User:
    assignee = await db.get(User, user_id) if user_id else None
    if not assignee or not assignee.is_active:
        raise ValidationError("Assignee not found or inactive", field="assigned_to")
    if assignee.is_client:
        raise ValidationError("Tickets cannot be assigned to client accounts", field="assigned_to")
    return assignee


async def perform_action(db: AsyncSession, ticket: Ticket, action: str, user: User, **payload) -> Ticket:
    """
    Run one lifecycle action.

    Raises InvalidTransitionError when the ticket's status is not a valid
    source for the action, AuthorizationError when the user may not act.
    """
    transition = TRANSITIONS.get(action)
    if transition is None:
        raise ValidationError(f"Unknown ticket action: {action}")

    if ticket.status not in transition.from_statuses:
        raise InvalidTransitionError(action, ticket.status.value, [s.value for s in transition.from_statuses])

    await check_permission(db, transition, ticket, user)

    now = datetime.utcnow()
    from_status = ticket.status.value
    remarks = payload.get("remarks")
    content = f"Status changed from {from_status} to {transition.to_status.value}"
    assignee = None

    if action == "assign":
        assignee = await _resolve_assignee(db, payload.get("assigned_to"))
        ticket.assigned_to = assignee.id
        ticket.assigned_on = now
        content = f"Assigned to {assignee.full_name}"

    elif action == "acknowledge":
        if ticket.acknowledged_on is None:
            ticket.acknowledged_on = now
            if ticket.sla_response_due and now > ticket.sla_response_due:
                ticket.is_sla_response_breached = True

    elif action == "hold":
        ticket.hold_reason = payload.get("reason")
        content = f"Put on hold: {ticket.hold_reason}"

    elif action == "start":
        ticket.hold_reason = None

    elif action == "resolve":
        ticket.resolved_on = now
        ticket.root_cause = payload.get("root_cause")
        ticket.resolution_summary = payload.get("resolution_summary")
        if ticket.sla_restore_due and now > ticket.sla_restore_due:
            ticket.is_sla_restore_breached = True
        content = f"Resolved: {ticket.resolution_summary}"

    elif action == "verify":
        ticket.verified_on = now
        ticket.verified_by = user.full_name

    elif action == "reject-resolution":
        ticket.rejection_reason = payload.get("reason")
        content = f"Resolution rejected: {ticket.rejection_reason}"

    elif action == "escalate":
        if ticket.escalation_level >= MAX_ESCALATION_LEVEL:
            raise ValidationError("Ticket is already at the highest escalation level")
        ticket.escalation_level = (ticket.escalation_level or 0) + 1
        ticket.escalated_by = user.id
        ticket.escalated_on = now
        ticket.escalation_reason = payload.get("reason")
        ticket.escalation_accepted_by = None
        ticket.escalation_accepted_on = None
        content = f"Escalated to level {ticket.escalation_level}: {ticket.escalation_reason}"

    elif action == "accept-escalation":
        ticket.escalation_accepted_by = user.id
        ticket.escalation_accepted_on = now
        ticket.assigned_to = user.id
        ticket.assigned_on = now
        assignee = user
        content = f"Escalation level {ticket.escalation_level} accepted by {user.full_name}"

    elif action == "close":
        ticket.closed_on = now

    elif action == "reopen":
        ticket.resolved_on = None
        ticket.verified_on = None
        ticket.verified_by = None
        ticket.closed_on = None
        ticket.is_breach_warning_sent = False
        ticket.is_sla_breach_notification_sent = False

    ticket.status = transition.to_status
    if remarks:
        content = f"{content}. {remarks}"

    add_activity(
        db, ticket, user.id, transition.activity_type, content,
        from_status=from_status, to_status=transition.to_status.value,
    )
    await worklog_service.log_activity(
        db, user.id, transition.worklog_category,
        f"{action.replace('-', ' ').capitalize()} {ticket.ticket_number}",
        ref_type="Ticket", ref_id=ticket.id, details={"from": from_status, "to": transition.to_status.value},
    )
    logger.log_ticket_event(ticket.ticket_number, action, from_status, transition.to_status.value, user_id=str(user.id))

    await _notify_assignee(db, ticket, action, user, from_status, assignee)
    return ticket


async def _notify_assignee(
    db: AsyncSession,
    ticket: Ticket,
    action: str,
    actor: User,
    from_status: str,
    assignee: Optional[User] = None,
) -> None:
    if assignee is None and ticket.assigned_to:
        assignee = await db.get(User, ticket.assigned_to)
    if assignee is None or assignee.id == actor.id:
        return

    link = f"/tickets/{ticket.id}"
    if action == "assign":
        notification_service.notify(
            db, assignee.id, f"Ticket {ticket.ticket_number} assigned",
            f"{ticket.title} ({ticket.priority.value}) was assigned to you by {actor.full_name}",
            type=NotificationType.TICKET, link=link, created_by=actor.id,
        )
        await email_service.send_ticket_assignment(ticket, assignee, db=db)
    elif action == "escalate":
        notification_service.notify(
            db, assignee.id, f"Ticket {ticket.ticket_number} escalated",
            f"Escalated to level {ticket.escalation_level}: {ticket.escalation_reason}",
            type=NotificationType.WARNING, link=link, created_by=actor.id,
        )
        await email_service.send_ticket_escalation(ticket, assignee, db=db)
    else:
        notification_service.notify(
            db, assignee.id, f"Ticket {ticket.ticket_number} is now {ticket.status.value}",
            f"{actor.full_name} changed the status from {from_status} to {ticket.status.value}",
            type=NotificationType.TICKET, link=link, created_by=actor.id,
        )
        await email_service.send_ticket_status_update(ticket, assignee, from_status, db=db)


# ==================== Dashboard ====================

async def get_dashboard_stats(db: AsyncSession, user: User, now: Optional[datetime] = None) -> dict:
    now = now or datetime.utcnow()
    scope = scope_conditions(user)

    async def count(*conditions) -> int:
        stmt = select(func.count(Ticket.id))
        where = [*scope, *conditions]
        if where:
            stmt = stmt.where(and_(*where))
        return (await db.scalar(stmt)) or 0

    async def breakdown(column) -> dict:
        stmt = select(column, func.count(Ticket.id)).group_by(column)
        if scope:
            stmt = stmt.where(and_(*scope))
        rows = (await db.execute(stmt)).all()
        return {key.value if hasattr(key, "value") else str(key): value for key, value in rows}

    not_finished = Ticket.status.notin_([S.CLOSED, S.CANCELLED, S.RESOLVED, S.VERIFIED])
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)

    closed_total = await count(Ticket.status == S.CLOSED)
    closed_met = await count(Ticket.status == S.CLOSED, Ticket.is_sla_restore_breached.is_(False))
    compliance = round(closed_met / closed_total * 100, 1) if closed_total else 100.0

    total_assets = (await db.scalar(select(func.count(Asset.id)).where(Asset.is_active.is_(True)))) or 0
    offline_assets = (await db.scalar(
        select(func.count(Asset.id)).where(and_(Asset.is_active.is_(True), Asset.status == AssetStatus.OFFLINE))
    )) or 0

    return {
        "open_tickets": await count(Ticket.status == S.OPEN),
        "in_progress_tickets": await count(Ticket.status.in_([S.ASSIGNED, S.ACKNOWLEDGED, S.IN_PROGRESS])),
        "sla_breached": await count(Ticket.is_sla_restore_breached.is_(True)),
        "sla_at_risk": await count(
            not_finished,
            Ticket.is_sla_restore_breached.is_(False),
            Ticket.sla_restore_due > now,
            Ticket.sla_restore_due <= now + timedelta(minutes=settings.SLA_AT_RISK_MINUTES),
        ),
        "sla_compliance_percent": compliance,
        "total_tickets": await count(),
        "resolved_today": await count(Ticket.resolved_on >= start_of_day),
        "total_assets": total_assets,
        "offline_assets": offline_assets,
        "by_priority": await breakdown(Ticket.priority),
        "by_status": await breakdown(Ticket.status),
        "by_category": await breakdown(Ticket.category),
    }
