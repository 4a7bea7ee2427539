# Overview: Service error taxonomy shared by every workflow and route.

"""
Service errors.

Every failure a workflow can report maps to exactly one of these kinds.
Routes never inspect messages; they use `kind` and `status_code` to build
the structured JSON body returned by `error_body()`.
"""

from __future__ import annotations


class ServiceError(Exception):
    """Base class for structured, client-visible failures."""

    kind = "InternalError"
    status_code = 500

    def __init__(self, message: str, *, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {
            "success": False,
            "error": self.kind,
            "message": self.message,
        }
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(ServiceError, ValueError):
    """400-level input problem. Always client-fixable."""

    kind = "ValidationError"
    status_code = 400


class InvalidStatusError(ValidationError):
    """Requested warranty status or transition is not allowed."""

    kind = "InvalidStatus"


class NotFoundError(ServiceError, LookupError):
    kind = "NotFound"
    status_code = 404


class AlreadyRegisteredError(ServiceError):
    """A warranty was submitted for a unit that already carries one."""

    kind = "AlreadyRegistered"
    status_code = 400


class ConflictError(ServiceError, ValueError):
    """409-level uniqueness conflict (duplicate serial number)."""

    kind = "Conflict"
    status_code = 409


class InternalError(ServiceError):
    """Store or artifact-store fault, including timeouts."""

    kind = "InternalError"
    status_code = 500


class RateLimitedError(ServiceError):
    kind = "RateLimited"
    status_code = 429

    def __init__(self, message: str, *, retry_after: int):
        super().__init__(message, details={"retry_after_seconds": retry_after})
        self.retry_after = retry_after


def error_body(exc: ServiceError) -> tuple[dict, int]:
    """(json_body, status) pair for a route to return."""
    return exc.to_dict(), exc.status_code
