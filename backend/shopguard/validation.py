"""
Request input helpers for the JSON API.

Every helper raises shopguard.errors.ValidationError (400) on bad input so
route handlers can let it propagate to the shared error translation. A
rejection on an authenticated request is audited as a failed access_attempt.
"""

from __future__ import annotations

from functools import wraps
from typing import Any

from flask import g, has_request_context, request

from .errors import ValidationError
from .models import AuditAction
from .models.audit import AUDIT_STATUS_FAILED
from .services import audit_service


def _audited(func):
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ValidationError as exc:
            user = getattr(g, "current_user", None) if has_request_context() else None
            if user is not None:
                audit_service.append(
                    user_id=user.id,
                    action=AuditAction.ACCESS_ATTEMPT,
                    status=AUDIT_STATUS_FAILED,
                    reason=f"Rejected input: {exc.reason}",
                )
            raise
    return wrapper


def _coerce(value: Any, field: str) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    elif isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    else:
        raise ValidationError(f"{field} must be an integer")

    if result <= 0:
        raise ValidationError(f"{field} must be a positive integer")
    return result


@_audited
def coerce_positive_int(value: Any, field: str) -> int:
    """
    Strict integer coercion: accepts ints and plain digit strings only.

    Rejects bools, floats, decimals and scientific notation.
    """
    return _coerce(value, field)


@_audited
def json_body() -> dict:
    """The request's JSON object, or {} when no body was sent."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


@_audited
def optional_reason(data: dict, field: str = "reason", max_length: int = 500) -> str | None:
    value = data.get(field)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    value = value.strip()
    if len(value) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return value or None


@_audited
def limit_arg(default: int = 50) -> int:
    """?limit= query parameter; the audit service clamps it further."""
    raw = request.args.get("limit")
    if raw is None:
        return default
    return _coerce(raw, "limit")


@_audited
def id_list(data: dict, field: str) -> list[int]:
    values = data.get(field)
    if not isinstance(values, list) or not values:
        raise ValidationError(f"{field} must be a non-empty list")
    return [_coerce(value, field) for value in values]
