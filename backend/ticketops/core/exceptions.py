"""
Custom Exceptions for TicketOps
===============================

Service code raises these instead of generic Exception so the API layer can
turn them into consistent JSON errors with the right status code.

Usage:
    from ticketops.core.exceptions import ResourceNotFoundError, InvalidTransitionError

    if not ticket:
        raise ResourceNotFoundError("Ticket", ticket_id)

    if ticket.status not in allowed:
        raise InvalidTransitionError("resolve", ticket.status.value)
"""

from typing import Optional, Any, Dict


class TicketOpsError(Exception):
    """Base exception for all TicketOps errors"""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Authentication & Authorization Errors
# ============================================

class AuthenticationError(TicketOpsError):
    """User authentication failed"""

    status_code = 401

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, code="AUTH_FAILED")


class AuthorizationError(TicketOpsError):
    """User not authorized for this action"""

    status_code = 403

    def __init__(self, message: str = "Not authorized to access this route"):
        super().__init__(message, code="NOT_AUTHORIZED")


class TokenExpiredError(TicketOpsError):
    """A time-limited access link is no longer usable"""

    status_code = 403

    def __init__(self, message: str = "This link has expired"):
        super().__init__(message, code="TOKEN_EXPIRED", details={"expired": True})


# ============================================
# Resource Errors (404-type)
# ============================================

class ResourceNotFoundError(TicketOpsError):
    """Base class for not found errors"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} not found",
            code=f"{resource_type.upper().replace(' ', '_')}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": str(resource_id)}
        )


# ============================================
# Validation Errors (400-type)
# ============================================

class ValidationError(TicketOpsError):
    """Input validation failed"""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class InvalidTransitionError(TicketOpsError):
    """Workflow action is not allowed from the current status"""

    status_code = 400

    def __init__(self, action: str, current_status: str, allowed: Optional[list] = None):
        super().__init__(
            f"Cannot {action} when status is {current_status}",
            code="INVALID_TRANSITION",
            details={
                "action": action,
                "current_status": current_status,
                "allowed_from": allowed or [],
            }
        )


# ============================================
# Conflict Errors (409-type)
# ============================================

class ConflictError(TicketOpsError):
    """Resource already exists or is in use"""

    status_code = 409

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="CONFLICT", details=details)


# ============================================
# Helper function for API responses
# ============================================

def error_response(error: TicketOpsError) -> Dict[str, Any]:
    """Convert exception to API error response format"""
    return {
        "detail": error.message,
        "error": error.to_dict()
    }
