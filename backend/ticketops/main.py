from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from slowapi.errors import RateLimitExceeded

from ticketops.core.config import settings
from ticketops.core.database import get_engine, get_session_local, Base, close_db
from ticketops.core.exceptions import TicketOpsError, TokenExpiredError, error_response
from ticketops.core.logging_config import logger
from ticketops.core.middleware import (
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    RequestSizeLimitMiddleware,
)
from ticketops.core.rate_limiter import limiter, rate_limit_exceeded_handler
from ticketops.api.v1.router import api_router
import ticketops.models  # noqa: F401  register models on Base.metadata


async def validate_critical_config():
    """Validate critical configuration at startup - fail fast if missing"""
    errors = []
    warnings = []

    if not settings.DATABASE_URL:
        errors.append("DATABASE_URL is not set")
    if not settings.SECRET_KEY or settings.SECRET_KEY == "CHANGE_ME":
        errors.append("SECRET_KEY is not set or using default value")
    if not settings.JWT_SECRET_KEY or settings.JWT_SECRET_KEY == "CHANGE_ME":
        errors.append("JWT_SECRET_KEY is not set or using default value")

    if not settings.email_configured:
        warnings.append("SMTP_USER/SMTP_PASSWORD not set - e-mail notifications disabled")
    if settings.RATE_LIMIT_ENABLED and settings.RATE_LIMIT_STORAGE_URI.startswith("memory"):
        warnings.append("Rate limit storage is in-process memory - limits are per worker")

    if errors:
        for err in errors:
            logger.critical(f"[Startup] CRITICAL: {err}")
        if settings.ENVIRONMENT == "production":
            raise RuntimeError(f"Missing critical configuration: {', '.join(errors)}")

    for warn in warnings:
        logger.warning(f"[Startup] WARNING: {warn}")

    logger.info("[Startup] Configuration validated")
    return not errors


async def ensure_database_ready():
    """Create tables when the users table is missing"""
    from sqlalchemy import text

    try:
        session_factory = get_session_local()
        async with session_factory() as session:
            try:
                await session.execute(text("SELECT 1 FROM users LIMIT 1"))
                logger.info("[Startup] Database tables already exist")
                return True
            except Exception:
                logger.warning("[Startup] Database tables not found, creating...")

        async with get_engine().begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("[Startup] Database tables created successfully")
        return True
    except Exception as e:
        logger.error(f"[Startup] Failed to ensure database ready: {e}")
        return False


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown"""
    logger.info("=" * 60)
    logger.info("Starting TicketOps helpdesk API...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"API Version: {settings.API_VERSION}")
    logger.info(f"Business time zone: {settings.TIMEZONE}")
    logger.info("=" * 60)

    await validate_critical_config()

    if not await ensure_database_ready():
        logger.warning("[Startup] Database not ready - requests will fail until it is reachable")

    yield

    logger.info("Shutting down TicketOps helpdesk API...")
    await close_db()


app = FastAPI(
    title=settings.APP_NAME,
    description="Helpdesk for surveillance and network assets: tickets, SLAs, RMA and spare stock",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    redirect_slashes=False
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# Middleware (order matters - last added runs first)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestSizeLimitMiddleware, max_size=settings.MAX_REQUEST_SIZE)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Response-Time"],
)


@app.exception_handler(TicketOpsError)
async def ticketops_exception_handler(request: Request, exc: TicketOpsError):
    if exc.status_code >= 500:
        logger.error(f"[{exc.code}] {exc.message}", exc_info=True)
    else:
        logger.info(f"[{exc.code}] {request.method} {request.url.path}: {exc.message}")

    content = error_response(exc)
    if isinstance(exc, TokenExpiredError):
        content["expired"] = True
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.log_error_with_context(exc, context=f"{request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "message": str(exc) if settings.DEBUG else "An error occurred"
        }
    )


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "app_name": settings.APP_NAME,
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint"""
    return {
        "message": "Welcome to the TicketOps helpdesk API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health"
    }


app.include_router(api_router, prefix=f"/api/{settings.API_VERSION}")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "ticketops.main:app",
        host=settings.SERVER_HOST,
        port=settings.SERVER_PORT,
        reload=settings.DEBUG
    )
