from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_, func
from datetime import datetime

from ticketops.core.database import get_db
from ticketops.core.security import verify_password, get_password_hash, create_access_token
from ticketops.core.logging_config import logger, set_user_id
from ticketops.core.rate_limiter import limiter, LOGIN_LIMIT
from ticketops.models.user import User
from ticketops.models.worklog import WorkLogCategory
from ticketops.modules.auth.dependencies import get_current_user
from ticketops.schemas.auth import (
    UserLogin, LoginResponse, UserResponse, ChangePasswordRequest, PreferencesUpdate,
)
from ticketops.services import worklog_service

router = APIRouter()


@router.post("/login", response_model=LoginResponse)
@limiter.limit(LOGIN_LIMIT)
async def login(
    request: Request,
    credentials: UserLogin,
    db: AsyncSession = Depends(get_db)
):
    """Login with username or e-mail"""
    client_ip = request.client.host if request.client else "unknown"
    identifier = credentials.username.strip()

    result = await db.execute(
        select(User).where(or_(
            User.username == identifier,
            func.lower(User.email) == identifier.lower(),
        ))
    )
    user = result.scalars().first()

    if not user or not verify_password(credentials.password, user.hashed_password):
        logger.log_auth_event(
            event="login",
            success=False,
            user_email=identifier,
            reason="Invalid credentials",
            client_ip=client_ip
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials"
        )

    if not user.is_active:
        logger.log_auth_event(
            event="login",
            success=False,
            user_email=user.email,
            reason="Account inactive",
            client_ip=client_ip
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account is deactivated"
        )

    user.last_login = datetime.utcnow()
    set_user_id(str(user.id))
    await worklog_service.log_activity(db, user.id, WorkLogCategory.LOGIN, "Logged in", details={"ip": client_ip})
    await db.commit()

    access_token = create_access_token({
        "sub": str(user.id),
        "email": user.email,
        "role": user.role.value
    })

    logger.log_auth_event(
        event="login",
        success=True,
        user_email=user.email,
        client_ip=client_ip,
        user_role=user.role.value
    )

    return {
        "access_token": access_token,
        "token_type": "bearer",
        "user": user,
    }


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: User = Depends(get_current_user)
):
    return current_user


@router.put("/change-password")
async def change_password(
    payload: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    if not verify_password(payload.current_password, current_user.hashed_password):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    if payload.current_password == payload.new_password:
        raise HTTPException(status_code=400, detail="New password must differ from the current password")

    current_user.hashed_password = get_password_hash(payload.new_password)
    prefs = dict(current_user.preferences or {})
    prefs.pop("must_change_password", None)
    current_user.preferences = prefs
    await db.commit()

    logger.log_auth_event(event="password_change", success=True, user_email=current_user.email)
    return {"message": "Password updated successfully"}


@router.put("/preferences", response_model=UserResponse)
async def update_preferences(
    payload: PreferencesUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    current_user.preferences = {**(current_user.preferences or {}), **payload.preferences}
    await db.commit()
    return current_user


@router.post("/logout")
async def logout(
    current_user: User = Depends(get_current_user)
):
    """Tokens are stateless; the client discards its token"""
    logger.log_auth_event(event="logout", success=True, user_email=current_user.email)
    return {"message": "Successfully logged out"}
