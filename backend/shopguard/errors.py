# Overview: Typed error taxonomy shared by services and routes.

"""
Access-control error taxonomy.

Every denial path in the permission subsystem raises one of these instead of
returning a falsy value. Routes translate them into JSON responses using
status_code and reason; reason is a stable, display-safe string that never
contains identifiers of other tenants' shops.
"""

from __future__ import annotations


class AccessError(Exception):
    """Base class: an operation was refused or could not be completed."""

    status_code = 500
    default_reason = "Request could not be completed"

    def __init__(self, reason: str | None = None):
        self.reason = reason or self.default_reason
        super().__init__(self.reason)

    def to_dict(self) -> dict:
        return {"error": self.reason}


class Unauthenticated(AccessError):
    status_code = 401
    default_reason = "Authentication required"


class Forbidden(AccessError):
    status_code = 403
    default_reason = "Permission denied"


class NotFound(AccessError):
    status_code = 404
    default_reason = "Not found"


class Conflict(AccessError):
    status_code = 409
    default_reason = "Conflict"


class DuplicateRequest(Conflict):
    """A pending request already exists for this admin/shop pair."""

    default_reason = "A pending access request for this shop already exists"


class RateLimited(AccessError):
    status_code = 429
    default_reason = "Too many requests. Please wait a moment."

    def __init__(self, reason: str | None = None, retry_after_seconds: int | None = None):
        super().__init__(reason)
        self.retry_after_seconds = retry_after_seconds

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.retry_after_seconds is not None:
            data["retry_after_seconds"] = self.retry_after_seconds
        return data


class ValidationError(AccessError):
    """400-level input problem."""

    status_code = 400
    default_reason = "Invalid input"


class Internal(AccessError):
    status_code = 500
    default_reason = "Internal server error"
