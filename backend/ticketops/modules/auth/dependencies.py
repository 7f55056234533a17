from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Iterable, Optional

from ticketops.core.database import get_db
from ticketops.core.logging_config import set_user_id
from ticketops.core.security import decode_token
from ticketops.core.types import is_valid_uuid
from ticketops.models.user import User, UserRole, MANAGER_ROLES
from ticketops.models.user_right import UserRight

security = HTTPBearer()


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    """Get current authenticated user"""

    payload = decode_token(credentials.credentials)

    if payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type"
        )

    user_id = payload.get("sub")
    if not is_valid_uuid(user_id):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload"
        )

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authorized, user not found"
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive"
        )

    # Rate limiter keys and log lines use the user id from here on
    request.state.user_id = str(user.id)
    set_user_id(str(user.id))
    return user


async def get_current_admin(
    current_user: User = Depends(get_current_user)
) -> User:
    """Get current admin user"""
    if current_user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return current_user


async def get_current_manager(
    current_user: User = Depends(get_current_user)
) -> User:
    """Admin, Dispatcher or Supervisor"""
    if current_user.role not in MANAGER_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"User role {current_user.role.value} is not authorized to access this route"
        )
    return current_user


async def load_user_rights(db: AsyncSession, user: User) -> Optional[UserRight]:
    result = await db.execute(select(UserRight).where(UserRight.user_id == user.id))
    return result.scalar_one_or_none()


async def user_has_right(
    db: AsyncSession,
    user: User,
    right,
    site_id: Optional[str] = None
) -> bool:
    """Right held globally, for ``site_id``, or (without a site) for any site"""
    rights = await load_user_rights(db, user)
    return bool(rights and rights.has_right(right, site_id))


def allow_access(roles: Iterable[UserRole] = (), rights: Iterable = ()):
    """
    Dependency factory: pass when the user's role is in ``roles`` or the user
    holds any of ``rights``.

    Usage:
        @router.post("")
        async def create_ticket(
            current_user: User = Depends(allow_access(
                roles=MANAGER_ROLES, rights=[Right.CREATE_TICKET]
            )),
        ):
            ...
    """
    allowed_roles = tuple(roles)
    required_rights = tuple(rights)

    async def dependency(
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db)
    ) -> User:
        if current_user.role in allowed_roles:
            return current_user

        if required_rights:
            user_rights = await load_user_rights(db, current_user)
            if user_rights and any(user_rights.has_right(r) for r in required_rights):
                return current_user

        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"User role {current_user.role.value} is not authorized to access this route"
        )

    return dependency
