# Overview: Service-layer bulk seeding of access requests by platform superadmins.

"""
Superadmin Assignment Service

WHY: Onboarding a multi-shop admin across many shops should not require the
admin to file each request by hand. A superadmin can seed the requests in
bulk.

NO OWNER BYPASS: every shop goes through the regular request step of the
permission workflow. The result is a set of *pending* requests; each shop's
owner still approves or denies them.

RATE LIMITS (per superadmin):
- superadmin_bulk_assign: one attempt per call
- superadmin_assign: one attempt per shop in the call

A failure on one shop (owner missing, duplicate pending request, per-shop
limit reached) is recorded in the result and the batch continues.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..errors import AccessError, Forbidden, NotFound, RateLimited, ValidationError
from ..extensions import rate_limiter
from ..models import AuditAction
from ..models.audit import AUDIT_STATUS_DENIED, AUDIT_STATUS_FAILED, AUDIT_STATUS_SUCCESS
from . import audit_service, directory_service, permission_workflow_service
from .rate_limit_service import SUPERADMIN_ASSIGN, SUPERADMIN_BULK_ASSIGN


@dataclass
class AssignmentResult:
    multi_shop_admin_id: int
    successes: list[dict] = field(default_factory=list)
    failures: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "multi_shop_admin_id": self.multi_shop_admin_id,
            "assigned": self.successes,
            "failed": self.failures,
            "summary": {
                "requested": len(self.successes) + len(self.failures),
                "assigned": len(self.successes),
                "failed": len(self.failures),
            },
        }


def _normalize_shop_ids(shop_ids) -> list[int]:
    if not isinstance(shop_ids, (list, tuple)) or not shop_ids:
        raise ValidationError("shop_ids must be a non-empty list")

    normalized = []
    seen = set()
    for shop_id in shop_ids:
        if not isinstance(shop_id, int) or isinstance(shop_id, bool) or shop_id <= 0:
            raise ValidationError("shop_ids must contain positive integers")
        if shop_id not in seen:
            seen.add(shop_id)
            normalized.append(shop_id)
    return normalized


def _fail(superadmin_id: int, multi_shop_admin_id: int, error: AccessError) -> AccessError:
    """Audit a rejected assignment call and hand back the error."""
    audit_service.append(
        user_id=superadmin_id,
        action=AuditAction.SUPERADMIN_ASSIGN_SHOPS,
        status=AUDIT_STATUS_FAILED,
        target_user_id=multi_shop_admin_id,
        reason=error.reason,
    )
    return error


def assign_shops(
    superadmin_id: int,
    multi_shop_admin_id: int,
    shop_ids: list[int],
    reason: str | None = None,
) -> AssignmentResult:
    """
    File a pending access request for multi_shop_admin_id on every shop in shop_ids.

    Raises:
        Forbidden        caller is not an active superadmin
        NotFound         target user does not exist
        ValidationError  target is not an active multi-shop admin, or bad shop_ids
        RateLimited      bulk window exhausted (nothing is attempted)
    """
    superadmin = directory_service.get_principal(superadmin_id)
    if superadmin is None or not superadmin.is_active or not superadmin.is_superadmin:
        audit_service.append(
            user_id=superadmin_id,
            action=AuditAction.ACCESS_ATTEMPT,
            status=AUDIT_STATUS_DENIED,
            target_user_id=multi_shop_admin_id,
            reason="Shop assignment by non-superadmin",
        )
        raise Forbidden("Superadmin access required")

    target = directory_service.get_principal(multi_shop_admin_id)
    if target is None:
        raise _fail(superadmin_id, multi_shop_admin_id, NotFound("Multi-shop admin not found"))
    if not target.is_active or not target.is_multi_shop_admin:
        raise _fail(
            superadmin_id, multi_shop_admin_id, ValidationError("Target user is not an active multi-shop admin"),
        )

    try:
        shop_ids = _normalize_shop_ids(shop_ids)
    except ValidationError as exc:
        raise _fail(superadmin_id, multi_shop_admin_id, exc)

    try:
        rate_limiter.enforce(SUPERADMIN_BULK_ASSIGN, superadmin_id)
    except RateLimited as exc:
        audit_service.append(
            user_id=superadmin_id,
            action=AuditAction.SUPERADMIN_ASSIGN_RATE_LIMITED,
            status=AUDIT_STATUS_DENIED,
            target_user_id=multi_shop_admin_id,
            reason=f"Bulk assignment: {exc.reason}",
        )
        raise

    result = AssignmentResult(multi_shop_admin_id=multi_shop_admin_id)
    request_reason = f"Assigned by superadmin {superadmin_id}"
    if reason:
        request_reason = f"{request_reason}: {reason}"

    per_shop_limited = False
    for shop_id in shop_ids:
        try:
            rate_limiter.enforce(SUPERADMIN_ASSIGN, superadmin_id)
        except RateLimited as exc:
            if not per_shop_limited:
                per_shop_limited = True
                audit_service.append(
                    user_id=superadmin_id,
                    action=AuditAction.SUPERADMIN_ASSIGN_RATE_LIMITED,
                    status=AUDIT_STATUS_DENIED,
                    target_user_id=multi_shop_admin_id,
                    target_shop_id=shop_id,
                    reason=f"Per-shop assignment: {exc.reason}",
                )
            result.failures.append({"shop_id": shop_id, "error": exc.reason})
            continue

        try:
            permission = permission_workflow_service.submit_request(
                multi_shop_admin_id,
                shop_id,
                actor_id=superadmin_id,
                reason=request_reason,
            )
        except AccessError as exc:
            result.failures.append({"shop_id": shop_id, "error": exc.reason})
            continue

        result.successes.append({"shop_id": shop_id, "permission_id": permission.id})

    summary = f"Assigned {len(result.successes)} of {len(shop_ids)} shops to multi-shop admin {multi_shop_admin_id}"
    if reason:
        summary = f"{summary}: {reason}"

    audit_service.append(
        user_id=superadmin_id,
        action=AuditAction.SUPERADMIN_ASSIGN_SHOPS,
        status=AUDIT_STATUS_SUCCESS,
        target_user_id=multi_shop_admin_id,
        reason=summary,
    )
    return result
