"""
Rate Limiting for the TicketOps API
===================================
slowapi limiter keyed by authenticated user, falling back to client IP.

Storage defaults to in-process memory; point RATE_LIMIT_STORAGE_URI at
Redis (``redis://host:6379/3``) when running more than one worker.

Special endpoints:
- /auth/login: 10 req/min (brute force protection)
- /client-registrations (public signup): 5 req/min
- /asset-update-requests/token/*: 20 req/min (public link)
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from fastapi.responses import JSONResponse

from ticketops.core.config import settings
from ticketops.core.logging_config import logger


def get_user_identifier(request: Request) -> str:
    """
    Rate limit key: authenticated user id (set by the auth dependency),
    otherwise the client IP.
    """
    user_id = getattr(request.state, 'user_id', None)
    if user_id:
        return f"user:{user_id}"
    return f"ip:{get_remote_address(request)}"


limiter = Limiter(
    key_func=get_user_identifier,
    default_limits=[f"{settings.RATE_LIMIT_PER_MINUTE}/minute"],
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    strategy="fixed-window",
    enabled=settings.RATE_LIMIT_ENABLED,
)

LOGIN_LIMIT = "10/minute"
PUBLIC_FORM_LIMIT = "5/minute"
PUBLIC_LINK_LIMIT = "20/minute"


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """Return a JSON 429 with a Retry-After hint"""
    retry_after = "60"
    detail = str(exc.detail) if exc.detail else ""
    if "second" in detail:
        retry_after = "1"

    logger.warning(f"[RateLimit] Exceeded for {get_user_identifier(request)}: {detail}")

    return JSONResponse(
        status_code=429,
        content={
            "error": "rate_limit_exceeded",
            "detail": "Too many requests. Please slow down.",
            "limit": detail,
            "retry_after_seconds": int(retry_after),
        },
        headers={"Retry-After": retry_after},
    )
