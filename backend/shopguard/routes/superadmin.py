# Overview: Flask API routes for platform superadmins; bulk request seeding and audit inspection.

from flask import Blueprint, jsonify, g

from ..decorators import require_auth, require_superadmin
from ..errors import AccessError
from ..services import audit_service, superadmin_assignment_service
from ..validation import id_list, json_body, limit_arg, optional_reason


superadmin_bp = Blueprint("superadmin", __name__, url_prefix="/api/superadmin")


@superadmin_bp.post("/multi-shop-admins/<int:admin_id>/assign-shops")
@require_auth
@require_superadmin
def assign_shops(admin_id: int):
    """
    Seed pending access requests for a multi-shop admin.

    Body: {"shop_ids": [1, 2, 3], "reason": "Regional rollout"}
    Owners still approve each request.
    """
    try:
        data = json_body()
        result = superadmin_assignment_service.assign_shops(
            g.current_user.id,
            admin_id,
            id_list(data, "shop_ids"),
            optional_reason(data),
        )
    except AccessError as exc:
        return jsonify(exc.to_dict()), exc.status_code
    return jsonify(result.to_dict()), 200


@superadmin_bp.get("/audit-logs/users/<int:user_id>")
@require_auth
@require_superadmin
def user_audit_logs(user_id: int):
    try:
        entries = audit_service.query_by_user(user_id, limit_arg())
    except AccessError as exc:
        return jsonify(exc.to_dict()), exc.status_code
    return jsonify([entry.to_dict() for entry in entries]), 200


@superadmin_bp.get("/audit-logs/shops/<int:shop_id>")
@require_auth
@require_superadmin
def shop_audit_logs(shop_id: int):
    try:
        entries = audit_service.query_by_shop(shop_id, limit_arg())
    except AccessError as exc:
        return jsonify(exc.to_dict()), exc.status_code
    return jsonify([entry.to_dict() for entry in entries]), 200
