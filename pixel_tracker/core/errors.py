"""
Error taxonomy for the tracking pipeline.

Every user-visible failure is one of these and is rendered as structured JSON
by the handler registered in main.py. Anything else becomes a generic 500.
"""
from typing import Any, Dict, Optional


class TrackingError(Exception):
    """Base class for errors that map to an HTTP response."""

    status_code: int = 500
    error: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, **extra: Any):
        self.message = message
        self.extra = extra
        super().__init__(message or self.error)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.error}
        if self.message:
            body["message"] = self.message
        body.update(self.extra)
        return body

    @property
    def headers(self) -> Optional[Dict[str, str]]:
        return None


class ValidationError(TrackingError):
    status_code = 400
    error = "Invalid request"


class AuthorizationError(TrackingError):
    """Tracking refused for this pixel; `reason` is machine-readable."""

    status_code = 403
    error = "Tracking disabled"

    def __init__(self, reason: str, message: Optional[str] = None):
        self.reason = reason
        super().__init__(message, trackingDisabled=True, reason=reason)


class NotFoundError(TrackingError):
    status_code = 404
    error = "Not found"


class TransientInfraError(TrackingError):
    status_code = 503
    error = "Service temporarily unavailable"
    retry_after = 5

    @property
    def headers(self) -> Optional[Dict[str, str]]:
        return {"Retry-After": str(self.retry_after)}


class QueueTimeoutError(TransientInfraError):
    """Caller waited too long for a database slot."""


class OperationTimeoutError(TransientInfraError):
    """Database operation did not finish in time."""
