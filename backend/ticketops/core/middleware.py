"""
TicketOps - HTTP Middleware

RequestLoggingMiddleware   correlation id, timing headers, access log
SecurityHeadersMiddleware  fixed response hardening headers
RequestSizeLimitMiddleware 413 for oversized bodies
"""

import time
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response, JSONResponse
from starlette.types import ASGIApp

from ticketops.core.logging_config import logger, set_request_id, set_user_id, generate_request_id


REQUEST_ID_HEADER = "X-Request-ID"
RESPONSE_TIME_HEADER = "X-Response-Time"

# Probes and docs are not access-logged
SKIP_LOGGING_PATHS = frozenset({
    "/",
    "/health",
    "/api/v1/health",
    "/docs",
    "/redoc",
    "/openapi.json",
    "/favicon.ico",
})

# Polled by every open browser tab
QUIET_PATH_SUFFIXES = ("/notifications/unread-count",)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


def should_skip_logging(path: str) -> bool:
    return path in SKIP_LOGGING_PATHS or path.endswith(QUIET_PATH_SUFFIXES)


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Access log with a correlation id.

    An incoming X-Request-ID is reused so a request can be followed from
    the frontend through to the log file. Requests slower than
    ``slow_request_ms`` get an extra performance warning.
    """

    def __init__(self, app: ASGIApp, slow_request_ms: float = 1000):
        super().__init__(app)
        self.slow_request_ms = slow_request_ms

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or generate_request_id()
        set_request_id(request_id)
        quiet = should_skip_logging(request.url.path)
        started = time.perf_counter()

        try:
            try:
                response = await call_next(request)
            except Exception as exc:
                self._log_failure(request, exc, self._elapsed_ms(started))
                raise

            duration_ms = self._elapsed_ms(started)
            response.headers[REQUEST_ID_HEADER] = request_id
            response.headers[RESPONSE_TIME_HEADER] = f"{duration_ms:.2f}ms"

            if not quiet:
                self._log_completion(request, response.status_code, duration_ms)
            return response
        finally:
            # Context vars leak into the next request on the same task otherwise
            set_request_id("")
            set_user_id("")

    @staticmethod
    def _elapsed_ms(started: float) -> float:
        return (time.perf_counter() - started) * 1000

    def _log_completion(self, request: Request, status_code: int, duration_ms: float) -> None:
        path = request.url.path
        logger.log_request(
            request.method,
            path,
            status_code,
            duration_ms,
            client_ip=_client_ip(request),
            user_agent=request.headers.get("user-agent", ""),
        )
        if duration_ms > self.slow_request_ms:
            logger.log_performance(f"{request.method} {path}", duration_ms, self.slow_request_ms)

    @staticmethod
    def _log_failure(request: Request, exc: Exception, duration_ms: float) -> None:
        logger.log_error_with_context(
            exc,
            context=f"{request.method} {request.url.path}",
            duration_ms=round(duration_ms, 2),
            client_ip=_client_ip(request),
        )


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        return response


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Rejects bodies whose Content-Length exceeds ``max_size`` bytes"""

    def __init__(self, app: ASGIApp, max_size: int = 10 * 1024 * 1024):
        super().__init__(app)
        self.max_size = max_size

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        declared = request.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > self.max_size:
            logger.warning(
                f"[Request] Body too large on {request.url.path}: {declared} bytes (max {self.max_size})",
                extra={"event_type": "request_too_large", "content_length": int(declared)},
            )
            return JSONResponse(
                status_code=413,
                content={"detail": f"Request body too large. Maximum size is {self.max_size // (1024 * 1024)}MB"},
            )
        return await call_next(request)


__all__ = [
    "RequestLoggingMiddleware",
    "SecurityHeadersMiddleware",
    "RequestSizeLimitMiddleware",
    "should_skip_logging",
    "SKIP_LOGGING_PATHS",
]
