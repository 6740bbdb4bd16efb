"""
Error taxonomy for the critique pipeline.
Each class carries a stable code and HTTP status so the transport layer can
classify failures without inspecting messages.
"""

from typing import Any, Dict, Optional


class DysappError(Exception):
    """Base class for classified pipeline failures."""

    code = "internal"
    status_code = 500
    user_message = "An internal error occurred. Please try again later."

    def __init__(self, message: str = None, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.user_message
        self.details = details or {}
        super().__init__(self.message)

    @property
    def public_message(self) -> str:
        """Message safe to return to a caller. Server-side failures stay generic."""
        if self.status_code >= 500:
            return self.user_message
        return self.message


class UpstreamMalformedError(DysappError):
    """The generative model returned output that failed validation."""

    code = "internal"
    status_code = 500
    user_message = "The design analysis could not be completed. Please try again."


class UpstreamUnavailableError(DysappError):
    """The generative model or its transport failed."""

    code = "unavailable"
    status_code = 503
    user_message = "The analysis service is temporarily unavailable. Please retry shortly."


class PreconditionFailedError(DysappError):
    code = "failed-precondition"
    status_code = 412
    user_message = "This feature is not available for this record."


class RateLimitedError(DysappError):
    code = "resource-exhausted"
    status_code = 429
    user_message = "Too many requests. Please try again later."


class NotFoundError(DysappError):
    code = "not-found"
    status_code = 404
    user_message = "The requested item was not found."


class PermissionDeniedError(DysappError):
    code = "permission-denied"
    status_code = 403
    user_message = "You do not have permission to access this item."


class InvalidArgumentError(DysappError):
    code = "invalid-argument"
    status_code = 400
    user_message = "The request was invalid."


class StoreError(DysappError):
    """Persistence failure. Always fatal to the current operation."""

    code = "internal"
    status_code = 500
