# Overview: Service-layer operations for the audit log; append-only writes and bounded queries.

"""
Audit Log Service

WHY: Immutable audit trail for every multi-shop permission decision, denial
and shop-context change. Shop owners read it for transparency; operators read
it to detect unauthorized access attempts.

DESIGN PRINCIPLES:
- Append-only: there is no update or delete function in this module
- Never raises: a failing audit sink must not break the caller's primary
  operation. Failures are rolled back, counted and reported on the
  "shopguard.audit" logger (the operational error channel)
- Durable before return: append() commits before it returns
- Bounded: the audit INSERT runs under AUDIT_APPEND_TIMEOUT_SECONDS; queries are capped
  at AUDIT_QUERY_MAX_LIMIT rows, newest first
"""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass

from flask import current_app, g, has_request_context, request
from sqlalchemy import text

from ..extensions import db
from ..models import AuditLogEntry
from ..models.audit import AUDIT_STATUSES, CONTEXT_ACTIONS, AuditAction
from shopguard.time_utils import utcnow


logger = logging.getLogger("shopguard.audit")

DEFAULT_QUERY_LIMIT = 100

_failure_lock = threading.Lock()
_failure_count = 0


@dataclass(frozen=True)
class ClientInfo:
    """Where a request came from. Every field is optional."""
    ip_address: str | None = None
    user_agent: str | None = None
    session_id: str | None = None


def client_info_from_request() -> ClientInfo:
    """
    Capture client details from the active Flask request, if any.

    IP resolution honors X-Forwarded-For (first hop) and X-Real-IP before
    falling back to the socket address.
    """
    if not has_request_context():
        return ClientInfo()

    forwarded = request.headers.get("X-Forwarded-For", "")
    ip_address = forwarded.split(",")[0].strip() if forwarded else None
    if not ip_address:
        ip_address = request.headers.get("X-Real-IP") or request.remote_addr

    session_context = getattr(g, "session_context", None)
    session_id = None
    if session_context is not None:
        session_id = str(session_context.session.id)
    elif request.headers.get("X-Session-Id"):
        session_id = request.headers.get("X-Session-Id")

    return ClientInfo(
        ip_address=ip_address[:45] if ip_address else None,
        user_agent=(request.headers.get("User-Agent") or None),
        session_id=session_id,
    )


def _record_failure(message: str, *args) -> None:
    global _failure_count
    with _failure_lock:
        _failure_count += 1
    logger.error(message, *args, exc_info=True)


def failure_count() -> int:
    """Number of audit appends that failed since process start."""
    with _failure_lock:
        return _failure_count


def reset_failure_count() -> None:
    global _failure_count
    with _failure_lock:
        _failure_count = 0


def _timeout_seconds() -> float:
    return float(current_app.config.get("AUDIT_APPEND_TIMEOUT_SECONDS", 2))


@contextmanager
def _bounded_write(timeout_seconds: float):
    """
    Bound the audit INSERT.

    PostgreSQL gets a per-transaction statement_timeout. SQLite has none, so
    the connection busy timeout is lowered for the INSERT only and set back to
    SQLITE_BUSY_TIMEOUT_SECONDS before commit; other writes keep the longer wait.
    """
    dialect = db.engine.dialect.name
    if dialect == "postgresql":
        db.session.execute(text(f"SET LOCAL statement_timeout = {int(timeout_seconds * 1000)}"))
    if dialect != "sqlite":
        yield
        return

    default_ms = int(float(current_app.config.get("SQLITE_BUSY_TIMEOUT_SECONDS", 5)) * 1000)
    db.session.execute(text(f"PRAGMA busy_timeout = {int(timeout_seconds * 1000)}"))
    try:
        yield
    finally:
        db.session.execute(text(f"PRAGMA busy_timeout = {default_ms}"))


def append(
    user_id: int,
    action: str,
    status: str,
    *,
    shop_id: int | None = None,
    target_user_id: int | None = None,
    target_shop_id: int | None = None,
    reason: str | None = None,
    client: ClientInfo | None = None,
) -> AuditLogEntry | None:
    """
    Append one audit entry and commit it.

    Returns the persisted entry, or None when the write failed. Never raises.

    The caller's own changes must already be committed: append() commits the
    session, and on failure it rolls the session back.
    """
    if action not in AuditAction.all():
        _record_failure("Rejected audit entry with unknown action %r", action)
        return None
    if status not in AUDIT_STATUSES:
        _record_failure("Rejected audit entry with unknown status %r for %s", status, action)
        return None

    started = time.monotonic()
    try:
        client = client or client_info_from_request()
        timeout_seconds = _timeout_seconds()

        entry = AuditLogEntry(
            user_id=user_id,
            shop_id=shop_id,
            action=action,
            target_user_id=target_user_id,
            target_shop_id=target_shop_id,
            status=status,
            reason=reason,
            ip_address=client.ip_address,
            user_agent=client.user_agent[:512] if client.user_agent else None,
            session_id=client.session_id,
            created_at=utcnow(),
        )

        with _bounded_write(timeout_seconds):
            with db.session.begin_nested():
                db.session.add(entry)
        db.session.commit()
    except Exception:
        try:
            db.session.rollback()
        except Exception:
            logger.exception("Rollback after failed audit append also failed")
        _record_failure("Audit append failed: %s by user %s (%s)", action, user_id, status)
        return None

    elapsed = time.monotonic() - started
    if elapsed > timeout_seconds:
        logger.warning("Slow audit append: %s took %.2fs (limit %.2fs)", action, elapsed, timeout_seconds)

    logger.info(
        "AUDIT: %s by user %s - %s%s",
        action, user_id, status, f" ({reason})" if reason else "",
    )
    return entry


def _clamp_limit(limit: int | None) -> int:
    maximum = int(current_app.config.get("AUDIT_QUERY_MAX_LIMIT", DEFAULT_QUERY_LIMIT))
    if limit is None:
        return maximum
    return max(1, min(int(limit), maximum))


def query_by_shop(shop_id: int, limit: int | None = DEFAULT_QUERY_LIMIT) -> list[AuditLogEntry]:
    """Entries where the shop is the actor's shop or the target shop, newest first."""
    return (
        db.session.query(AuditLogEntry)
        .filter(db.or_(AuditLogEntry.shop_id == shop_id, AuditLogEntry.target_shop_id == shop_id))
        .order_by(AuditLogEntry.created_at.desc(), AuditLogEntry.id.desc())
        .limit(_clamp_limit(limit))
        .all()
    )


def query_by_user(user_id: int, limit: int | None = DEFAULT_QUERY_LIMIT) -> list[AuditLogEntry]:
    """Entries performed by user_id, newest first."""
    return (
        db.session.query(AuditLogEntry)
        .filter(AuditLogEntry.user_id == user_id)
        .order_by(AuditLogEntry.created_at.desc(), AuditLogEntry.id.desc())
        .limit(_clamp_limit(limit))
        .all()
    )


def context_history(user_id: int, limit: int | None = 20) -> list[AuditLogEntry]:
    """Shop switches and context resets performed by user_id, newest first."""
    return (
        db.session.query(AuditLogEntry)
        .filter(
            AuditLogEntry.user_id == user_id,
            AuditLogEntry.action.in_(CONTEXT_ACTIONS),
        )
        .order_by(AuditLogEntry.created_at.desc(), AuditLogEntry.id.desc())
        .limit(_clamp_limit(limit))
        .all()
    )
