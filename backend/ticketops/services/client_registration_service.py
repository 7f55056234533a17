"""
Client self-registration and client account management.

A registration is reviewed by an admin; approval creates a SiteClient user
with a generated username and temporary password and mails the credentials.
"""
import re
import secrets
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from ticketops.core.exceptions import (
    ResourceNotFoundError, ValidationError, ConflictError, InvalidTransitionError,
)
from ticketops.core.logging_config import logger
from ticketops.core.security import generate_temp_password, get_password_hash
from ticketops.models.client_registration import ClientRegistration, RegistrationStatus
from ticketops.models.user import User, UserRole
from ticketops.services.email_service import email_service

REQUIRED_FIELDS = (
    ("full_name", "Full name"),
    ("email", "Email"),
    ("phone", "Phone"),
    ("site_name", "Site name"),
)
USERNAME_BASE_LENGTH = 20
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def username_base(full_name: str) -> str:
    base = full_name.strip().lower()
    base = re.sub(r"\s+", ".", base)
    base = re.sub(r"[^a-z0-9.]", "", base)
    return base[:USERNAME_BASE_LENGTH]


def generate_username(full_name: str) -> str:
    """``john.smith.4821``: name, dots for spaces, four random digits"""
    suffix = "".join(secrets.choice("0123456789") for _ in range(4))
    return f"{username_base(full_name) or 'client'}.{suffix}"


async def unique_username(db: AsyncSession, full_name: str) -> str:
    for _ in range(10):
        candidate = generate_username(full_name)
        taken = await db.scalar(select(func.count(User.id)).where(User.username == candidate))
        if not taken:
            return candidate
    raise ConflictError("Could not generate a unique username", field="username")


async def _active_admins(db: AsyncSession):
    result = await db.execute(
        select(User).where(and_(User.role == UserRole.ADMIN, User.is_active.is_(True)))
    )
    return list(result.scalars().all())


async def submit_registration(db: AsyncSession, data) -> ClientRegistration:
    values = {k: (v.strip() if isinstance(v, str) else v) for k, v in data.model_dump().items()}
    missing = [label for field, label in REQUIRED_FIELDS if not values.get(field)]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    email = values["email"].lower()
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("Invalid email address", field="email")

    pending = await db.scalar(
        select(func.count(ClientRegistration.id)).where(and_(
            func.lower(ClientRegistration.email) == email,
            ClientRegistration.status == RegistrationStatus.PENDING,
        ))
    )
    if pending:
        raise ConflictError("A registration with this email is already pending review", field="email")

    existing_user = await db.scalar(select(func.count(User.id)).where(func.lower(User.email) == email))
    if existing_user:
        raise ConflictError("An account with this email already exists", field="email")

    registration = ClientRegistration(
        full_name=values["full_name"],
        email=email,
        phone=values["phone"],
        designation=values.get("designation"),
        site_name=values["site_name"],
        message=values.get("message"),
        status=RegistrationStatus.PENDING,
    )
    db.add(registration)
    await db.flush()

    sent = await email_service.send_registration_alert(registration, await _active_admins(db), db=db)
    logger.info(f"[Registration] New client registration {email}, {sent} admin alert(s) sent")
    return registration


async def get_registration(db: AsyncSession, registration_id: str) -> ClientRegistration:
    registration = await db.get(ClientRegistration, registration_id)
    if not registration:
        raise ResourceNotFoundError("Registration", registration_id)
    return registration


async def approve_registration(
    db: AsyncSession,
    registration: ClientRegistration,
    admin: User,
) -> Tuple[User, str, bool]:
    """Returns (new user, temporary password, whether the credentials mail went out)"""
    if registration.status != RegistrationStatus.PENDING:
        raise InvalidTransitionError("approve", registration.status.value, [RegistrationStatus.PENDING.value])

    taken = await db.scalar(select(func.count(User.id)).where(func.lower(User.email) == registration.email.lower()))
    if taken:
        raise ConflictError("An account with this email already exists", field="email")

    temp_password = generate_temp_password()
    user = User(
        email=registration.email.lower(),
        username=await unique_username(db, registration.full_name),
        full_name=registration.full_name,
        hashed_password=get_password_hash(temp_password),
        role=UserRole.SITE_CLIENT,
        mobile_number=registration.phone,
        designation=registration.designation,
        is_active=True,
        assigned_sites=[],
        preferences={"must_change_password": True},
    )
    db.add(user)
    await db.flush()

    registration.status = RegistrationStatus.APPROVED
    registration.approved_by = admin.id
    registration.approved_at = datetime.utcnow()
    registration.user_id = user.id

    email_sent = await email_service.send_account_credentials(
        user.email, user.full_name, user.username, temp_password, db=db,
    )
    return user, temp_password, email_sent


async def reject_registration(
    db: AsyncSession,
    registration: ClientRegistration,
    admin: User,
    reason: Optional[str],
) -> ClientRegistration:
    if not reason or not reason.strip():
        raise ValidationError("Rejection reason is required", field="reason")
    if registration.status != RegistrationStatus.PENDING:
        raise InvalidTransitionError("reject", registration.status.value, [RegistrationStatus.PENDING.value])

    registration.status = RegistrationStatus.REJECTED
    registration.rejection_reason = reason.strip()
    registration.approved_by = admin.id
    registration.approved_at = datetime.utcnow()
    return registration


# ==================== Client accounts ====================

async def create_client(db: AsyncSession, data) -> Tuple[User, str, bool]:
    email = data.email.lower()
    if await db.scalar(select(func.count(User.id)).where(func.lower(User.email) == email)):
        raise ConflictError("An account with this email already exists", field="email")

    if data.username:
        if await db.scalar(select(func.count(User.id)).where(User.username == data.username)):
            raise ConflictError("Username already taken", field="username")
        username = data.username
    else:
        username = await unique_username(db, data.full_name)

    temp_password = generate_temp_password()
    user = User(
        email=email,
        username=username,
        full_name=data.full_name,
        hashed_password=get_password_hash(temp_password),
        role=UserRole.SITE_CLIENT,
        mobile_number=data.mobile_number,
        designation=data.designation,
        site_id=data.site_id,
        assigned_sites=[data.site_id] if data.site_id else [],
        preferences={"must_change_password": True},
    )
    db.add(user)
    await db.flush()

    email_sent = await email_service.send_account_credentials(
        user.email, user.full_name, user.username, temp_password, db=db,
    )
    return user, temp_password, email_sent


async def reset_client_password(db: AsyncSession, user: User) -> Tuple[str, bool]:
    temp_password = generate_temp_password()
    user.hashed_password = get_password_hash(temp_password)
    user.preferences = {**(user.preferences or {}), "must_change_password": True}
    email_sent = await email_service.send_account_credentials(
        user.email, user.full_name, user.username, temp_password, db=db, reset=True,
    )
    return temp_password, email_sent
