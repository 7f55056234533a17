"""
TicketOps - Centralized Logging Configuration

Development: readable lines on stdout, detailed lines in the rotating file.
Production:  one JSON object per line on both.

Every record carries the request id and user id of the request that
produced it (``-`` outside a request).
"""

import logging
import sys
import json
import traceback
import uuid
from datetime import datetime
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional
from contextvars import ContextVar

from ticketops.core.config import settings


LOGGER_NAME = "ticketops"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024

CONSOLE_FORMAT = "%(levelname)-8s | %(message)s"
FILE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | [%(request_id)s] [%(user_id)s] | "
    "%(module)s.%(funcName)s:%(lineno)d | %(message)s"
)

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "sqlalchemy.engine", "aiosmtplib", "celery.app.trace")

request_id_var: ContextVar[str] = ContextVar('request_id', default='')
user_id_var: ContextVar[str] = ContextVar('user_id', default='')

# Attributes every LogRecord has; anything else came in through ``extra``
_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    'message', 'asctime', 'request_id', 'user_id',
}


def get_request_id() -> str:
    return request_id_var.get() or ''


def set_request_id(request_id: str) -> None:
    request_id_var.set(request_id)


def get_user_id() -> str:
    return user_id_var.get() or ''


def set_user_id(user_id: str) -> None:
    user_id_var.set(user_id)


def generate_request_id() -> str:
    """Short id, enough to grep one request out of a day of logs"""
    return uuid.uuid4().hex[:8]


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        key: value for key, value in record.__dict__.items()
        if key not in _STANDARD_ATTRS and not key.startswith('_')
    }


class JSONFormatter(logging.Formatter):
    """Structured log line for production log shipping"""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
            "request_id": get_request_id() or None,
            "user_id": get_user_id() or None,
        }
        if record.exc_info and record.exc_info[0]:
            payload["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": traceback.format_exception(*record.exc_info),
            }
        payload.update(_extra_fields(record))
        return json.dumps({k: v for k, v in payload.items() if v is not None}, default=str)


class ContextualFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        record.request_id = get_request_id() or '-'
        record.user_id = get_user_id() or '-'
        return super().format(record)


class TicketOpsLogger(logging.Logger):
    """Logger with one helper per kind of event the helpdesk reports"""

    def log_request(self, method: str, path: str, status_code: int,
                    duration_ms: float, **kwargs) -> None:
        """Access log line; 4xx at WARNING, 5xx at ERROR"""
        if status_code >= 500:
            level = logging.ERROR
        elif status_code >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO
        self.log(
            level,
            f"{method} {path} -> {status_code} ({duration_ms:.2f}ms)",
            extra={
                "event_type": "http_request",
                "http_method": method,
                "http_path": path,
                "http_status": status_code,
                "duration_ms": round(duration_ms, 2),
                **kwargs
            }
        )

    def log_auth_event(self, event: str, success: bool, user_email: Optional[str] = None,
                       reason: Optional[str] = None, **kwargs) -> None:
        parts = [f"[Auth] {event} {'ok' if success else 'failed'}"]
        if user_email:
            parts.append(user_email)
        if reason:
            parts.append(reason)
        self.log(
            logging.INFO if success else logging.WARNING,
            " - ".join(parts),
            extra={
                "event_type": "auth",
                "auth_event": event,
                "auth_success": success,
                "user_email": user_email,
                "failure_reason": reason,
                **kwargs
            }
        )

    def log_ticket_event(self, ticket_number: str, action: str,
                         from_status: Optional[str] = None,
                         to_status: Optional[str] = None, **kwargs) -> None:
        transition = f" ({from_status} -> {to_status})" if from_status and to_status else ""
        self.info(
            f"[Ticket] {ticket_number}: {action}{transition}",
            extra={
                "event_type": "ticket",
                "ticket_number": ticket_number,
                "ticket_action": action,
                "from_status": from_status,
                "to_status": to_status,
                **kwargs
            }
        )

    def log_error_with_context(self, error: Exception, context: Optional[str] = None,
                               **kwargs) -> None:
        """ERROR with traceback; ``context`` names the operation that failed"""
        self.error(
            f"Error in {context or 'unknown'}: {type(error).__name__}: {error}",
            exc_info=(type(error), error, error.__traceback__),
            extra={
                "event_type": "error",
                "error_type": type(error).__name__,
                "error_context": context,
                **kwargs
            }
        )

    def log_performance(self, operation: str, duration_ms: float,
                        threshold_ms: float = 1000, **kwargs) -> None:
        slow = duration_ms > threshold_ms
        self.log(
            logging.WARNING if slow else logging.DEBUG,
            f"[Perf] {operation} took {duration_ms:.2f}ms" + (f" (threshold {threshold_ms:.0f}ms)" if slow else ""),
            extra={
                "event_type": "performance",
                "operation": operation,
                "duration_ms": round(duration_ms, 2),
                "threshold_ms": threshold_ms,
                "exceeded_threshold": slow,
                **kwargs
            }
        )


def _build_handlers(json_logs: bool) -> list:
    handlers = []

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.INFO)
    console.setFormatter(JSONFormatter() if json_logs else ContextualFormatter(CONSOLE_FORMAT))
    handlers.append(console)

    if settings.LOG_FILE and not settings.TESTING:
        log_file = Path(settings.LOG_FILE)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=10 if json_logs else 5,
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(JSONFormatter() if json_logs else ContextualFormatter(FILE_FORMAT))
        handlers.append(file_handler)

    return handlers


def setup_logging() -> TicketOpsLogger:
    """Configure the ``ticketops`` logger for the current environment"""
    logging.setLoggerClass(TicketOpsLogger)

    log = logging.getLogger(LOGGER_NAME)
    log.__class__ = TicketOpsLogger
    log.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    log.handlers.clear()
    log.propagate = False

    json_logs = settings.ENVIRONMENT == "production"
    for handler in _build_handlers(json_logs):
        log.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    log.info(
        "Logging initialized",
        extra={"environment": settings.ENVIRONMENT, "log_level": settings.LOG_LEVEL, "json_logging": json_logs},
    )
    return log


logger: TicketOpsLogger = setup_logging()


__all__ = [
    'logger',
    'setup_logging',
    'get_request_id',
    'set_request_id',
    'get_user_id',
    'set_user_id',
    'generate_request_id',
    'TicketOpsLogger',
]
