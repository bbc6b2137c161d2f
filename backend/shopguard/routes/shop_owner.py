# Overview: Flask API routes for shop owners; approve, deny and revoke multi-shop admin access.

from flask import Blueprint, jsonify, g

from ..decorators import require_auth
from ..errors import AccessError
from ..services import permission_workflow_service
from ..validation import json_body, limit_arg, optional_reason


shop_owner_bp = Blueprint("shop_owner", __name__, url_prefix="/api/shop-owner")


@shop_owner_bp.get("/pending-requests")
@require_auth
def pending_requests():
    """Pending access requests for every shop the caller owns."""
    return jsonify(permission_workflow_service.list_pending(g.current_user.id)), 200


@shop_owner_bp.post("/approve-request/<int:permission_id>")
@require_auth
def approve_request(permission_id: int):
    try:
        reason = optional_reason(json_body())
        permission = permission_workflow_service.approve(permission_id, g.current_user.id, reason)
    except AccessError as exc:
        return jsonify(exc.to_dict()), exc.status_code
    return jsonify(permission.to_dict()), 200


@shop_owner_bp.post("/deny-request/<int:permission_id>")
@require_auth
def deny_request(permission_id: int):
    try:
        reason = optional_reason(json_body())
        permission = permission_workflow_service.deny(permission_id, g.current_user.id, reason)
    except AccessError as exc:
        return jsonify(exc.to_dict()), exc.status_code
    return jsonify(permission.to_dict()), 200


@shop_owner_bp.post("/revoke/<int:permission_id>")
@require_auth
def revoke_access(permission_id: int):
    try:
        reason = optional_reason(json_body())
        permission = permission_workflow_service.revoke(permission_id, g.current_user.id, reason)
    except AccessError as exc:
        return jsonify(exc.to_dict()), exc.status_code
    return jsonify(permission.to_dict()), 200


@shop_owner_bp.get("/granted-access")
@require_auth
def granted_access():
    return jsonify(permission_workflow_service.list_granted(g.current_user.id)), 200


@shop_owner_bp.get("/audit-logs/<int:shop_id>")
@require_auth
def shop_audit_logs(shop_id: int):
    """Who did what on one of the caller's shops, newest first."""
    try:
        entries = permission_workflow_service.shop_audit_logs(g.current_user.id, shop_id, limit_arg())
    except AccessError as exc:
        return jsonify(exc.to_dict()), exc.status_code
    return jsonify(entries), 200
