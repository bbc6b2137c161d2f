# Overview: Service-layer request/approve/deny/revoke workflow for multi-shop permissions.

"""
Permission Workflow Service

WHY: Shop owners decide who may look at their shop. A multi-shop admin (or a
superadmin on their behalf) files a request; only the owner of that shop can
approve or deny it. Either side may later revoke a grant.

STATE TRANSITIONS (see MultiShopPermission):
    request  -> pending
    approve  -> granted   (shop owner only, pending only)
    deny     -> denied    (shop owner only, pending only)
    revoke   -> revoked   (shop owner or the admin themself)

ERRORS: every refusal raises a shopguard.errors type and writes an audit
entry first:
- Forbidden      acting party is not entitled        -> *_failed / failed
- NotFound       permission, shop or owner missing   -> *_failed / failed
- Conflict       duplicate or already-decided        -> *_failed / failed
- RateLimited    window exhausted                    -> *_rate_limited / denied
- ValidationError malformed ids                      -> *_failed / failed
"""

from __future__ import annotations

from ..errors import AccessError, Conflict, DuplicateRequest, Forbidden, NotFound, RateLimited, ValidationError
from ..extensions import rate_limiter
from ..models import AuditAction, MultiShopPermission
from ..models.audit import AUDIT_STATUS_DENIED, AUDIT_STATUS_FAILED, AUDIT_STATUS_SUCCESS
from . import audit_service, directory_service, permission_store
from .rate_limit_service import (
    APPROVE_PERMISSION,
    DENY_PERMISSION,
    PERMISSION_REQUEST,
    REVOKE_PERMISSION,
    RateLimitRule,
)
from shopguard.time_utils import to_utc_z


def _is_valid_id(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _fail(actor_id: int, action: str, error: AccessError, **audit_fields) -> AccessError:
    """Audit a refused operation and hand back the error for the caller to raise."""
    status = AUDIT_STATUS_DENIED if isinstance(error, RateLimited) else AUDIT_STATUS_FAILED
    audit_service.append(
        user_id=actor_id,
        action=action,
        status=status,
        reason=error.reason,
        **audit_fields,
    )
    return error


def _enforce_rate_limit(rule: RateLimitRule, actor_id: int, rate_limited_action: str) -> None:
    try:
        rate_limiter.enforce(rule, actor_id)
    except RateLimited as exc:
        raise _fail(actor_id, rate_limited_action, exc)


def _load_permission(permission_id, actor_id: int, failed_action: str) -> MultiShopPermission:
    if not _is_valid_id(permission_id):
        raise _fail(actor_id, failed_action, ValidationError("Invalid permission id"))

    permission = permission_store.get(permission_id)
    if permission is None:
        raise _fail(actor_id, failed_action, NotFound("Permission request not found"))
    return permission


# =============================================================================
# REQUEST
# =============================================================================

def request_access(multi_shop_admin_id: int, shop_id: int, *, actor_id: int | None = None) -> MultiShopPermission:
    """
    Rate-limited entry point for a multi-shop admin asking for access to a shop.

    actor_id defaults to the admin themself.
    """
    actor_id = actor_id or multi_shop_admin_id
    _enforce_rate_limit(PERMISSION_REQUEST, actor_id, AuditAction.PERMISSION_REQUEST_RATE_LIMITED)
    return submit_request(multi_shop_admin_id, shop_id, actor_id=actor_id)


def submit_request(
    multi_shop_admin_id: int,
    shop_id: int,
    *,
    actor_id: int | None = None,
    reason: str | None = None,
) -> MultiShopPermission:
    """
    Create a pending permission for (admin, shop), owned by the shop's current owner.

    Callers are responsible for rate limiting (request_access does it for
    admins, superadmin assignment applies its own windows).
    """
    actor_id = actor_id or multi_shop_admin_id
    failed = AuditAction.PERMISSION_REQUEST_FAILED

    if not _is_valid_id(multi_shop_admin_id) or not _is_valid_id(shop_id):
        raise _fail(actor_id, failed, ValidationError("Invalid multi-shop admin or shop id"))

    admin = directory_service.get_principal(multi_shop_admin_id)
    if admin is None or not admin.is_active or not admin.is_multi_shop_admin:
        raise _fail(
            actor_id, failed, Forbidden("User is not an active multi-shop admin"),
            target_user_id=multi_shop_admin_id, target_shop_id=shop_id,
        )

    owner = directory_service.get_shop_owner(shop_id)
    if owner is None:
        raise _fail(actor_id, failed, NotFound("Shop not found"), target_shop_id=shop_id)

    if owner.id == admin.id:
        raise _fail(
            actor_id, failed, ValidationError("Cannot request access to a shop you own"),
            target_shop_id=shop_id,
        )

    current = permission_store.find_current(admin.id, shop_id)
    if current is not None and current.is_currently_valid():
        raise _fail(
            actor_id, failed, Conflict("Access to this shop has already been granted"),
            target_user_id=owner.id, target_shop_id=shop_id,
        )

    try:
        permission = permission_store.create(admin.id, shop_id, owner.id)
    except DuplicateRequest as exc:
        raise _fail(actor_id, failed, exc, target_user_id=owner.id, target_shop_id=shop_id)

    if reason is None:
        reason = f"Requested access to shop {shop_id}"
        if actor_id != admin.id:
            reason = f"Requested access to shop {shop_id} on behalf of multi-shop admin {admin.id}"

    audit_service.append(
        user_id=actor_id,
        action=AuditAction.PERMISSION_REQUEST,
        status=AUDIT_STATUS_SUCCESS,
        target_user_id=owner.id,
        target_shop_id=shop_id,
        reason=reason,
    )
    return permission


# =============================================================================
# DECISIONS
# =============================================================================

def approve(permission_id: int, acting_owner_id: int, reason: str | None = None) -> MultiShopPermission:
    """Shop owner approves a pending request for one of their shops."""
    failed = AuditAction.PERMISSION_APPROVE_FAILED
    _enforce_rate_limit(APPROVE_PERMISSION, acting_owner_id, AuditAction.PERMISSION_APPROVE_RATE_LIMITED)

    permission = _load_permission(permission_id, acting_owner_id, failed)
    audit_fields = {
        "target_user_id": permission.multi_shop_admin_id,
        "target_shop_id": permission.shop_id,
    }

    if permission.shop_owner_id != acting_owner_id:
        raise _fail(acting_owner_id, failed, Forbidden("Not authorized to decide on this request"), **audit_fields)

    if not permission.is_pending:
        raise _fail(acting_owner_id, failed, Conflict("Permission request already decided"), **audit_fields)

    if not permission_store.grant(permission.id, pending_only=True):
        # Decided by someone else between the load and the update
        raise _fail(acting_owner_id, failed, Conflict("Permission request already decided"), **audit_fields)

    audit_service.append(
        user_id=acting_owner_id,
        action=AuditAction.PERMISSION_GRANT,
        status=AUDIT_STATUS_SUCCESS,
        shop_id=permission.shop_id,
        reason=reason or "Permission approved by shop owner",
        **audit_fields,
    )
    return permission_store.get(permission.id)


def deny(permission_id: int, acting_owner_id: int, reason: str | None = None) -> MultiShopPermission:
    """
    Shop owner denies a pending request.

    Denial uses the same storage mutation as revocation (revoked_at=now);
    a denied request is a revoked record whose granted_at was never set.
    """
    failed = AuditAction.PERMISSION_DENY_FAILED
    _enforce_rate_limit(DENY_PERMISSION, acting_owner_id, AuditAction.PERMISSION_DENY_RATE_LIMITED)

    permission = _load_permission(permission_id, acting_owner_id, failed)
    audit_fields = {
        "target_user_id": permission.multi_shop_admin_id,
        "target_shop_id": permission.shop_id,
    }

    if permission.shop_owner_id != acting_owner_id:
        raise _fail(acting_owner_id, failed, Forbidden("Not authorized to decide on this request"), **audit_fields)

    if not permission.is_pending:
        raise _fail(acting_owner_id, failed, Conflict("Permission request already decided"), **audit_fields)

    if not permission_store.revoke(permission.id, pending_only=True):
        # Approved or revoked between the load and the update
        raise _fail(acting_owner_id, failed, Conflict("Permission request already decided"), **audit_fields)

    audit_service.append(
        user_id=acting_owner_id,
        action=AuditAction.PERMISSION_DENY,
        status=AUDIT_STATUS_SUCCESS,
        shop_id=permission.shop_id,
        reason=reason or "Permission denied by shop owner",
        **audit_fields,
    )
    return permission_store.get(permission.id)


def revoke(permission_id: int, acting_user_id: int, reason: str | None = None) -> MultiShopPermission:
    """
    Revoke a permission. Allowed for the shop owner, or for the multi-shop
    admin on their own permission. Revoking a revoked record is a no-op.
    """
    failed = AuditAction.PERMISSION_REVOKE_FAILED
    _enforce_rate_limit(REVOKE_PERMISSION, acting_user_id, AuditAction.PERMISSION_REVOKE_RATE_LIMITED)

    permission = _load_permission(permission_id, acting_user_id, failed)

    if acting_user_id == permission.shop_owner_id:
        counterpart_id = permission.multi_shop_admin_id
        default_reason = "Permission revoked by shop owner"
    elif acting_user_id == permission.multi_shop_admin_id:
        counterpart_id = permission.shop_owner_id
        default_reason = "Permission revoked by multi-shop admin"
    else:
        raise _fail(
            acting_user_id, failed, Forbidden("Not authorized to revoke this permission"),
            target_shop_id=permission.shop_id,
        )

    if permission.revoked_at is not None:
        return permission

    permission_store.revoke(permission.id)

    audit_service.append(
        user_id=acting_user_id,
        action=AuditAction.PERMISSION_REVOKE,
        status=AUDIT_STATUS_SUCCESS,
        shop_id=permission.shop_id,
        target_user_id=counterpart_id,
        target_shop_id=permission.shop_id,
        reason=reason or default_reason,
    )
    return permission_store.get(permission.id)


# =============================================================================
# READ MODELS
# =============================================================================

def _mask_email(email: str | None) -> str | None:
    if not email or "@" not in email:
        return None
    local, domain = email.split("@", 1)
    return f"{local[:3]}***@{domain}"


def list_pending(shop_owner_id: int) -> list[dict]:
    """Pending requests for the owner's shops, enriched for display."""
    pending = permission_store.list_pending_for_shop_owner(shop_owner_id)

    admins = directory_service.get_principals([p.multi_shop_admin_id for p in pending])
    shops = directory_service.get_shops([p.shop_id for p in pending])

    views = []
    for permission in pending:
        admin = admins.get(permission.multi_shop_admin_id)
        shop = shops.get(permission.shop_id)
        admin_name = admin.username if admin else "Unknown"
        shop_name = shop.name if shop else "Unknown"
        views.append({
            "id": permission.id,
            "multi_shop_admin_id": permission.multi_shop_admin_id,
            "multi_shop_admin_name": admin_name,
            "multi_shop_admin_email": admin.email if admin else None,
            "shop_id": permission.shop_id,
            "shop_name": shop_name,
            "created_at": to_utc_z(permission.created_at),
            "request_reason": f'Multi-shop admin "{admin_name}" requests access to shop "{shop_name}"',
        })

    audit_service.append(
        user_id=shop_owner_id,
        action=AuditAction.VIEW_PENDING_REQUESTS,
        status=AUDIT_STATUS_SUCCESS,
        reason=f"Viewed {len(views)} pending requests",
    )
    return views


def list_granted(shop_owner_id: int) -> list[dict]:
    """Active grants on the owner's shops. Admin e-mail is masked."""
    active = permission_store.list_active_for_shop_owner(shop_owner_id)

    admins = directory_service.get_principals([p.multi_shop_admin_id for p in active])
    shops = directory_service.get_shops([p.shop_id for p in active])

    views = []
    for permission in active:
        admin = admins.get(permission.multi_shop_admin_id)
        shop = shops.get(permission.shop_id)
        views.append({
            "id": permission.id,
            "multi_shop_admin_id": permission.multi_shop_admin_id,
            "admin_username": admin.username if admin else None,
            "admin_email_hint": _mask_email(admin.email) if admin else None,
            "shop_id": permission.shop_id,
            "shop_name": shop.name if shop else None,
            "granted_at": to_utc_z(permission.granted_at),
        })
    return views


def list_for_admin(multi_shop_admin_id: int) -> list[dict]:
    """All of an admin's permissions (any status), newest first."""
    permissions = permission_store.list_by_multi_shop_admin(multi_shop_admin_id)
    shops = directory_service.get_shops([p.shop_id for p in permissions])

    views = []
    for permission in permissions:
        data = permission.to_dict()
        shop = shops.get(permission.shop_id)
        data["shop_name"] = shop.name if shop else None
        # Owner identity is the other tenant's business
        data.pop("shop_owner_id", None)
        views.append(data)
    return views


def shop_audit_logs(shop_owner_id: int, shop_id: int, limit: int | None = 50) -> list[dict]:
    """
    Audit entries touching one of the owner's shops, newest first.

    Shop ids belonging to other tenants are redacted from the result.
    """
    if not _is_valid_id(shop_id):
        raise _fail(shop_owner_id, AuditAction.ACCESS_ATTEMPT, ValidationError("Invalid shop id"))

    if not directory_service.owns_shop(shop_owner_id, shop_id):
        audit_service.append(
            user_id=shop_owner_id,
            action=AuditAction.ACCESS_ATTEMPT,
            status=AUDIT_STATUS_DENIED,
            target_shop_id=shop_id,
            reason="Unauthorized access to shop audit logs",
        )
        raise Forbidden("Not authorized for this shop")

    entries = [entry.to_dict(scope_shop_id=shop_id) for entry in audit_service.query_by_shop(shop_id, limit)]

    audit_service.append(
        user_id=shop_owner_id,
        action=AuditAction.VIEW_AUDIT_LOGS,
        status=AUDIT_STATUS_SUCCESS,
        shop_id=shop_id,
        reason=f"Viewed {len(entries)} audit entries",
    )
    return entries
