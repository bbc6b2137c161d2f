# Overview: Service-layer authorization decision point for multi-shop admin access.

"""
Permission Validation Service

WHY: The single place that answers "may this multi-shop admin see this shop's
data right now". Routes, the session context service and CRUD handlers call
this module; none of them read the permission store directly.

DESIGN PRINCIPLES:
- Fail closed: every step denies on its own; nothing falls through to allow
- Explicit result: AccessDecision is Allowed or Denied(reason), never a bare
  boolean, so "no branch matched" cannot read as access
- Defense in depth: the record returned by the store is re-validated field
  by field (granted, revoked_at, granted_at) instead of trusting the lookup
- Log denials only: every denial is written to the audit log as
  access_attempt/denied; a successful check writes nothing, the caller's
  own audit entry (e.g. shop_switch) records the access
- Display-safe reasons: no tenant identifiers in deny messages
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from flask import current_app

from ..models import AuditAction, User
from ..models.audit import AUDIT_STATUS_DENIED
from . import audit_service, directory_service, permission_store
from shopguard.time_utils import as_naive_utc, utcnow


REASON_NOT_MULTI_SHOP_ADMIN = "User is not an active multi-shop admin"
REASON_NO_PERMISSION = "No permission granted for this shop"
REASON_NOT_GRANTED = "Permission not granted by shop owner"
REASON_REVOKED = "Permission has been revoked"
REASON_NOT_YET_ACTIVE = "Permission not yet active"
REASON_RECORD_MISMATCH = "Permission verification failed"
REASON_INVALID_SHOP = "Invalid shop reference"
REASON_NOT_AUTHORIZED = "Not authorized for this shop"
REASON_SYSTEM_ERROR = "System error during permission validation"


@dataclass(frozen=True)
class Allowed:
    @property
    def has_access(self) -> bool:
        return True

    @property
    def reason(self) -> None:
        return None

    def to_dict(self) -> dict:
        return {"has_access": True}


@dataclass(frozen=True)
class Denied:
    reason: str

    @property
    def has_access(self) -> bool:
        return False

    def to_dict(self) -> dict:
        return {"has_access": False, "reason": self.reason}


AccessDecision = Union[Allowed, Denied]


def _is_valid_id(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _deny(user_id, shop_id, reason: str, audit_reason: str | None = None) -> Denied:
    audit_service.append(
        user_id=user_id if _is_valid_id(user_id) else 0,
        action=AuditAction.ACCESS_ATTEMPT,
        status=AUDIT_STATUS_DENIED,
        target_shop_id=shop_id if _is_valid_id(shop_id) else None,
        reason=audit_reason or reason,
    )
    return Denied(reason)


def validate_shop_access(multi_shop_admin_id: int, target_shop_id: int) -> AccessDecision:
    """
    Decide whether multi_shop_admin_id currently has access to target_shop_id.

    Steps (each denies and audits on failure):
    1. Principal exists, is active and is a multi-shop admin
    2. The permission store has a record for the pair
    3. The record itself says granted, not revoked, and granted_at <= now
    """
    if not _is_valid_id(multi_shop_admin_id) or not _is_valid_id(target_shop_id):
        return _deny(multi_shop_admin_id, target_shop_id, REASON_INVALID_SHOP, "Malformed user or shop id")

    try:
        # 1. Principal
        user = directory_service.get_principal(multi_shop_admin_id)
        if user is None or user.is_active is not True or user.is_multi_shop_admin is not True:
            return _deny(multi_shop_admin_id, target_shop_id, REASON_NOT_MULTI_SHOP_ADMIN)

        # 2. Store lookup
        permission = permission_store.find_current(multi_shop_admin_id, target_shop_id)
        if permission is None:
            return _deny(multi_shop_admin_id, target_shop_id, REASON_NO_PERMISSION, "No valid permission found")

        # 3. Re-validate the record explicitly
        if permission.multi_shop_admin_id != multi_shop_admin_id or permission.shop_id != target_shop_id:
            return _deny(
                multi_shop_admin_id, target_shop_id, REASON_RECORD_MISMATCH,
                "Permission not found in detailed validation",
            )

        if permission.granted is not True:
            return _deny(multi_shop_admin_id, target_shop_id, REASON_NOT_GRANTED, "Permission not granted")

        if permission.revoked_at is not None:
            return _deny(multi_shop_admin_id, target_shop_id, REASON_REVOKED)

        granted_at = as_naive_utc(permission.granted_at)
        if granted_at is None or granted_at > utcnow():
            return _deny(multi_shop_admin_id, target_shop_id, REASON_NOT_YET_ACTIVE)

    except Exception as exc:
        current_app.logger.exception("Permission validation error")
        return _deny(
            multi_shop_admin_id, target_shop_id, REASON_SYSTEM_ERROR,
            f"Validation error: {type(exc).__name__}",
        )

    return Allowed()


def validate_shop_context(user_id: int, session_shop_id: int | None) -> AccessDecision:
    """
    Validate a session's shop context. No context (dashboard mode) is valid.
    """
    if session_shop_id is None:
        return Allowed()
    return validate_shop_access(user_id, session_shop_id)


def authorize_shop_read(principal: User, shop_id: int) -> AccessDecision:
    """
    Single entry point for "may principal read shop_id's data".

    - The shop's owner: allowed
    - A multi-shop admin: delegated to validate_shop_access
    - Anyone else (including superadmins): denied
    """
    if principal is None or principal.is_active is not True:
        return _deny(getattr(principal, "id", None), shop_id, REASON_NOT_AUTHORIZED, "Inactive or missing principal")

    if not _is_valid_id(shop_id):
        return _deny(principal.id, shop_id, REASON_INVALID_SHOP, "Malformed shop id")

    shop = directory_service.get_shop(shop_id)
    if shop is not None and shop.is_active and shop.owner_id == principal.id:
        return Allowed()

    if principal.is_multi_shop_admin:
        return validate_shop_access(principal.id, shop_id)

    return _deny(principal.id, shop_id, REASON_NOT_AUTHORIZED, "Not shop owner or multi-shop admin")
