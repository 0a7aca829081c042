"""
Standardized error taxonomy and response formatting.

Domain errors (not found, unauthorized, invalid state, bad input) are distinguishable
from store failures so callers can map the former to 4xx outcomes and the
latter to 5xx outcomes.
"""

from datetime import datetime
from http import HTTPStatus
from typing import Any, Dict, Optional, Tuple

from memoir.logging_config import get_logger

logger = get_logger(__name__)


class MemoirError(Exception):
    """Base exception for domain and store errors."""

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = int(status_code)
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(MemoirError):
    """Referenced collision, merger, tag or connection does not exist."""

    def __init__(self, resource: str = "Resource", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=f"{resource} not found",
            code="NOT_FOUND",
            status_code=HTTPStatus.NOT_FOUND,
            details=details,
        )


class UnauthorizedError(MemoirError):
    """Actor has no standing for the requested mutation."""

    def __init__(self, message: str = "Not a participant", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            code="AUTHORIZATION_ERROR",
            status_code=HTTPStatus.FORBIDDEN,
            details=details,
        )


class InvalidStateError(MemoirError):
    """Operation violates a lifecycle precondition."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            code="INVALID_STATE",
            status_code=HTTPStatus.CONFLICT,
            details=details,
        )


class ValidationError(MemoirError):
    """Caller input failed validation."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            status_code=HTTPStatus.UNPROCESSABLE_ENTITY,
            details=details,
        )

    @classmethod
    def from_pydantic(cls, message: str, exc) -> "ValidationError":
        """Wrap a pydantic ValidationError, keeping per-field messages."""
        errors = []
        for error in exc.errors():
            errors.append({
                "field": ".".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
                "type": error["type"],
            })
        return cls(message, details={"fields": errors})


class StoreFailureError(MemoirError):
    """Underlying persistence error."""

    def __init__(self, operation: str):
        super().__init__(
            message=f"Data store failure during {operation}",
            code="STORE_FAILURE",
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            details={"operation": operation},
        )


def format_error(error: Exception) -> Tuple[int, Dict[str, Any]]:
    """
    Format an exception in the standard error body.

    Args:
        error: Exception that occurred

    Returns:
        (status_code, body) where body is {"error": {...}}
    """
    if isinstance(error, MemoirError):
        error_code = error.code
        error_message = error.message
        error_status = error.status_code
        error_details = error.details
    else:
        error_code = "INTERNAL_SERVER_ERROR"
        error_message = "An unexpected error occurred"
        error_status = int(HTTPStatus.INTERNAL_SERVER_ERROR)
        error_details = {}

    if error_status >= 500:
        logger.error(
            f"Error: {error_message}",
            exc_info=error,
            extra={"error_code": error_code, "status_code": error_status},
        )
    else:
        logger.info(
            f"Error: {error_message}",
            extra={"error_code": error_code, "status_code": error_status},
        )

    body: Dict[str, Any] = {
        "error": {
            "code": error_code,
            "message": error_message,
            "timestamp": datetime.utcnow().isoformat() + "Z",
        }
    }

    if error_details:
        body["error"]["details"] = error_details

    # Recovery hints for common errors
    if error_code == "INVALID_STATE":
        body["error"]["hint"] = "Wait for every participant to approve before publishing"
    elif error_code == "AUTHORIZATION_ERROR":
        body["error"]["hint"] = "Only participants of the shared memory may do this"
    elif error_code == "STORE_FAILURE":
        body["error"]["hint"] = "Retry the request later"
    elif error_code == "VALIDATION_ERROR":
        body["error"]["hint"] = "Check the listed fields and try again"

    return error_status, body
