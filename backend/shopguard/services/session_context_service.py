# Overview: Service-layer "viewing as shop X" context for multi-shop admin sessions.

"""
Session Context Service

WHY: A multi-shop admin works from a dashboard and temporarily switches into
one shop at a time. The switch is remembered on the session row so every
later request knows which shop's data is being viewed.

STATES (per session):
    Dashboard            current_shop_id is NULL (initial state)
    ShopContext(shop)    current_shop_id = shop

SECURITY:
- A switch is honored only after permission validation passes
- The stored context is never trusted: get_current_context() revalidates it
  on every call and drops it (auditing invalid_shop_context_reset) when the
  permission behind it is gone
- Context lives on exactly one session row and is cleared on logout
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ..errors import Forbidden, RateLimited
from ..extensions import db, rate_limiter
from ..models import AuditAction, SessionToken, User
from ..models.audit import AUDIT_STATUS_DENIED, AUDIT_STATUS_SUCCESS
from . import audit_service, directory_service
from .permission_validation_service import REASON_NOT_MULTI_SHOP_ADMIN, Denied, validate_shop_context, validate_shop_access
from .rate_limit_service import SHOP_SWITCH
from shopguard.time_utils import to_utc_z, utcnow


@dataclass(frozen=True)
class ShopContext:
    current_shop_id: int | None = None
    previous_shop_id: int | None = None
    switched_at: datetime | None = None
    shop_name: str | None = None

    @property
    def mode(self) -> str:
        return "dashboard" if self.current_shop_id is None else "shop_context"

    def to_dict(self) -> dict:
        return {
            "mode": self.mode,
            "current_shop_id": self.current_shop_id,
            "current_shop_name": self.shop_name,
            "previous_shop_id": self.previous_shop_id,
            "switched_at": to_utc_z(self.switched_at) if self.switched_at else None,
        }


DASHBOARD = ShopContext()


def _context_of(session: SessionToken) -> ShopContext:
    if session.current_shop_id is None:
        return DASHBOARD
    shop = directory_service.get_shop(session.current_shop_id)
    return ShopContext(
        current_shop_id=session.current_shop_id,
        previous_shop_id=session.previous_shop_id,
        switched_at=session.shop_switched_at,
        shop_name=shop.name if shop else None,
    )


def _check_session_owner(principal: User, session: SessionToken, target_shop_id: int | None = None) -> None:
    if session is not None and principal is not None and session.user_id == principal.id:
        return

    error = Forbidden("Session does not belong to this user")
    if principal is not None:
        audit_service.append(
            user_id=principal.id,
            action=AuditAction.ACCESS_ATTEMPT,
            status=AUDIT_STATUS_DENIED,
            target_user_id=session.user_id if session is not None else None,
            target_shop_id=target_shop_id,
            reason=error.reason,
        )
    raise error


def switch_shop(principal: User, session: SessionToken, target_shop_id: int) -> ShopContext:
    """
    Move the session into ShopContext(target_shop_id).

    Raises Forbidden (not a multi-shop admin, session mismatch, validation
    denied) or RateLimited. On any failure the session is left untouched.
    """
    if not principal.is_multi_shop_admin:
        audit_service.append(
            user_id=principal.id,
            action=AuditAction.ACCESS_ATTEMPT,
            status=AUDIT_STATUS_DENIED,
            target_shop_id=target_shop_id,
            reason="Shop switch by non multi-shop admin",
        )
        raise Forbidden(REASON_NOT_MULTI_SHOP_ADMIN)

    _check_session_owner(principal, session, target_shop_id)

    try:
        rate_limiter.enforce(SHOP_SWITCH, principal.id)
    except RateLimited as exc:
        audit_service.append(
            user_id=principal.id,
            action=AuditAction.SHOP_SWITCH_RATE_LIMITED,
            status=AUDIT_STATUS_DENIED,
            target_shop_id=target_shop_id,
            reason=exc.reason,
        )
        raise

    decision = validate_shop_access(principal.id, target_shop_id)
    if isinstance(decision, Denied):
        raise Forbidden(decision.reason)

    previous_shop_id = session.current_shop_id
    session.previous_shop_id = previous_shop_id
    session.current_shop_id = target_shop_id
    session.shop_switched_at = utcnow()
    db.session.commit()

    audit_service.append(
        user_id=principal.id,
        action=AuditAction.SHOP_SWITCH,
        status=AUDIT_STATUS_SUCCESS,
        shop_id=previous_shop_id,
        target_shop_id=target_shop_id,
        reason="Switched shop context",
    )
    return _context_of(session)


def get_current_context(principal: User, session: SessionToken) -> ShopContext:
    """
    Current context, revalidated.

    A context whose permission no longer holds is cleared and reported as
    the dashboard, never returned stale.
    """
    _check_session_owner(principal, session)

    if session.current_shop_id is None:
        return DASHBOARD

    decision = validate_shop_context(principal.id, session.current_shop_id)
    if isinstance(decision, Denied):
        stale_shop_id = session.current_shop_id
        session.clear_shop_context()
        db.session.commit()

        audit_service.append(
            user_id=principal.id,
            action=AuditAction.INVALID_SHOP_CONTEXT_RESET,
            status=AUDIT_STATUS_SUCCESS,
            shop_id=stale_shop_id,
            reason=f"Context reset: {decision.reason}",
        )
        return DASHBOARD

    return _context_of(session)


def reset_context(principal: User, session: SessionToken) -> ShopContext:
    """Back to the dashboard, unconditionally."""
    _check_session_owner(principal, session)

    previous_shop_id = session.current_shop_id
    session.clear_shop_context()
    db.session.commit()

    audit_service.append(
        user_id=principal.id,
        action=AuditAction.SHOP_CONTEXT_RESET,
        status=AUDIT_STATUS_SUCCESS,
        shop_id=previous_shop_id,
        reason="Returned to dashboard",
    )
    return DASHBOARD


def context_history(principal: User, limit: int | None = 20) -> list[dict]:
    """The principal's own switches and resets, newest first."""
    return [entry.to_dict() for entry in audit_service.context_history(principal.id, limit)]
