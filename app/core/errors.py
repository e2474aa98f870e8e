# app/core/errors.py
"""
Error taxonomy shared by the gateway, the guard and the GraphQL layer.

graphql-core copies an original exception's ``extensions`` dict onto the
GraphQL error it builds, so every error here carries its code there.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class BookingError(Exception):
    code = "INTERNAL_SERVER_ERROR"
    # Finer-grained than ``code`` where several errors share one code
    reason: Optional[str] = None
    default_message = "Something went wrong"

    def __init__(self, message: Optional[str] = None, **details: Any):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.details = details

    @property
    def extensions(self) -> Dict[str, Any]:
        extensions: Dict[str, Any] = {"code": self.code}
        if self.reason:
            extensions["reason"] = self.reason
        extensions.update(self.details)
        return extensions


class InvalidInput(BookingError):
    code = "BAD_USER_INPUT"
    reason = "INVALID_INPUT"
    default_message = "Invalid input"


class NotFound(BookingError):
    code = "NOT_FOUND"
    default_message = "Not found"


class InvalidReference(BookingError):
    code = "BAD_USER_INPUT"
    reason = "INVALID_REFERENCE"
    default_message = "Referenced record does not exist"


class Unauthorized(BookingError):
    """Raised for every authn/authz failure; never carries a reason."""

    code = "UNAUTHENTICATED"
    default_message = "Unauthorized"

    def __init__(self):
        super().__init__(self.default_message)


class UpstreamFailure(BookingError):
    code = "UPSTREAM_FAILURE"
    default_message = "Upstream service call failed"

    def __init__(self, message: Optional[str] = None, *, service: str = "unknown"):
        super().__init__(message, service=service)
        self.service = service
