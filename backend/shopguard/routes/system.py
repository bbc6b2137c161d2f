# backend/shopguard/routes/system.py
"""
System health endpoint.

Reports database reachability and the audit sink's failure counter, so a
silently failing audit log shows up in monitoring.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db, rate_limiter
from ..models import MultiShopPermission, SessionToken, Shop, User
from ..services import audit_service
from shopguard.time_utils import utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        user_count = db.session.query(User).count()
        shop_count = db.session.query(Shop).count()
        pending_count = db.session.query(MultiShopPermission).filter(
            MultiShopPermission.granted.is_(False),
            MultiShopPermission.revoked_at.is_(None),
        ).count()
        active_sessions = db.session.query(SessionToken).filter_by(is_revoked=False).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "users": user_count,
                "shops": shop_count,
                "pending_requests": pending_count,
                "active_sessions": active_sessions,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_audit_health() -> dict:
    """Any failed append since process start degrades the service."""
    failures = audit_service.failure_count()
    return {
        "status": "degraded" if failures else "healthy",
        "details": {
            "append_failures": failures,
        }
    }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded (audit failures seen)
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    audit_health = check_audit_health()

    if database_health["status"] == "unhealthy":
        overall_status = "unhealthy"
        http_status = 503
    elif audit_health["status"] == "degraded":
        overall_status = "degraded"
        http_status = 200  # Degraded is still operational
    else:
        overall_status = "healthy"
        http_status = 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "audit_log": audit_health,
            "rate_limiter": {
                "status": "healthy",
                "details": {"enabled": rate_limiter.enabled, "tracked_windows": len(rate_limiter.store)},
            },
        }
    }

    return response, http_status
