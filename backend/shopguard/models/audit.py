from __future__ import annotations

from ..extensions import db
from shopguard.time_utils import to_utc_z


AUDIT_STATUS_SUCCESS = "success"
AUDIT_STATUS_FAILED = "failed"
AUDIT_STATUS_DENIED = "denied"

AUDIT_STATUSES = frozenset({AUDIT_STATUS_SUCCESS, AUDIT_STATUS_FAILED, AUDIT_STATUS_DENIED})


class AuditAction:
    """Closed vocabulary of audited actions."""
    PERMISSION_REQUEST = "permission_request"
    PERMISSION_REQUEST_FAILED = "permission_request_failed"
    PERMISSION_REQUEST_RATE_LIMITED = "permission_request_rate_limited"
    PERMISSION_GRANT = "permission_grant"
    PERMISSION_DENY = "permission_deny"
    PERMISSION_REVOKE = "permission_revoke"
    PERMISSION_APPROVE_FAILED = "permission_approve_failed"
    PERMISSION_DENY_FAILED = "permission_deny_failed"
    PERMISSION_REVOKE_FAILED = "permission_revoke_failed"
    PERMISSION_APPROVE_RATE_LIMITED = "permission_approve_rate_limited"
    PERMISSION_DENY_RATE_LIMITED = "permission_deny_rate_limited"
    PERMISSION_REVOKE_RATE_LIMITED = "permission_revoke_rate_limited"
    ACCESS_ATTEMPT = "access_attempt"
    SHOP_SWITCH = "shop_switch"
    SHOP_SWITCH_RATE_LIMITED = "shop_switch_rate_limited"
    SHOP_CONTEXT_RESET = "shop_context_reset"
    INVALID_SHOP_CONTEXT_RESET = "invalid_shop_context_reset"
    VIEW_PENDING_REQUESTS = "view_pending_requests"
    VIEW_AUDIT_LOGS = "view_audit_logs"
    SUPERADMIN_ASSIGN_SHOPS = "superadmin_assign_shops"
    SUPERADMIN_ASSIGN_RATE_LIMITED = "superadmin_assign_rate_limited"

    @classmethod
    def all(cls) -> frozenset[str]:
        return frozenset(
            value for name, value in vars(cls).items()
            if name.isupper() and isinstance(value, str)
        )


CONTEXT_ACTIONS = (
    AuditAction.SHOP_SWITCH,
    AuditAction.SHOP_CONTEXT_RESET,
    AuditAction.INVALID_SHOP_CONTEXT_RESET,
)


class AuditLogEntry(db.Model):
    """
    Append-only audit trail for the multi-shop permission subsystem.

    WHY: Shop owners must be able to see who looked at their data and who
    asked for access. Every permission decision, denial and context switch
    is recorded here.

    IMMUTABLE: Never update or delete. Append-only for audit integrity.
    Only audit_service.append() creates rows.
    """
    __tablename__ = "audit_log"
    __table_args__ = (
        db.Index("ix_audit_log_user_created", "user_id", "created_at"),
        db.Index("ix_audit_log_shop_created", "shop_id", "created_at"),
        db.Index("ix_audit_log_target_shop_created", "target_shop_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Actor
    user_id = db.Column(db.Integer, nullable=False)
    shop_id = db.Column(db.Integer, nullable=True)

    action = db.Column(db.String(64), nullable=False, index=True)

    target_user_id = db.Column(db.Integer, nullable=True)
    target_shop_id = db.Column(db.Integer, nullable=True)

    status = db.Column(db.String(16), nullable=False)
    reason = db.Column(db.Text, nullable=True)

    # Client context
    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)
    session_id = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self, scope_shop_id: int | None = None) -> dict:
        """
        scope_shop_id: when set, shop ids other than this one are redacted so a
        shop owner's view never exposes other tenants' shop identifiers.
        """
        shop_id = self.shop_id
        target_shop_id = self.target_shop_id
        if scope_shop_id is not None:
            shop_id = shop_id if shop_id == scope_shop_id else None
            target_shop_id = target_shop_id if target_shop_id == scope_shop_id else None

        return {
            "id": self.id,
            "user_id": self.user_id,
            "shop_id": shop_id,
            "action": self.action,
            "target_user_id": self.target_user_id,
            "target_shop_id": target_shop_id,
            "status": self.status,
            "reason": self.reason,
            "ip_address": self.ip_address,
            "created_at": to_utc_z(self.created_at),
        }
