# Overview: Flask API routes for multi-shop admins; shop context switching and access requests.

from flask import Blueprint, jsonify, g

from ..decorators import require_auth, require_multi_shop_admin, require_shop_access
from ..errors import AccessError
from ..services import directory_service, permission_workflow_service, session_context_service
from ..services.permission_validation_service import validate_shop_access
from ..validation import coerce_positive_int, json_body, limit_arg


multi_shop_bp = Blueprint("multi_shop", __name__, url_prefix="/api/multi-shop")


@multi_shop_bp.post("/switch-shop/<int:shop_id>")
@require_auth
@require_multi_shop_admin
def switch_shop(shop_id: int):
    """Enter "viewing as shop" mode for this session."""
    try:
        context = session_context_service.switch_shop(g.current_user, g.session_context.session, shop_id)
    except AccessError as exc:
        return jsonify({"has_access": False, **exc.to_dict()}), exc.status_code
    return jsonify({"has_access": True, "context": context.to_dict()}), 200


@multi_shop_bp.get("/current-context")
@require_auth
def current_context():
    try:
        context = session_context_service.get_current_context(g.current_user, g.session_context.session)
    except AccessError as exc:
        return jsonify(exc.to_dict()), exc.status_code
    return jsonify(context.to_dict()), 200


@multi_shop_bp.post("/reset-context")
@require_auth
def reset_context():
    try:
        context = session_context_service.reset_context(g.current_user, g.session_context.session)
    except AccessError as exc:
        return jsonify(exc.to_dict()), exc.status_code
    return jsonify(context.to_dict()), 200


@multi_shop_bp.get("/context-history")
@require_auth
@require_multi_shop_admin
def context_history():
    try:
        history = session_context_service.context_history(g.current_user, limit_arg(default=20))
    except AccessError as exc:
        return jsonify(exc.to_dict()), exc.status_code
    return jsonify(history), 200


@multi_shop_bp.post("/permissions/request")
@require_auth
@require_multi_shop_admin
def request_permission():
    """
    Ask a shop's owner for access.

    Body: {"shop_id": 5}
    """
    try:
        shop_id = coerce_positive_int(json_body().get("shop_id"), "shop_id")
        permission = permission_workflow_service.request_access(g.current_user.id, shop_id)
    except AccessError as exc:
        return jsonify(exc.to_dict()), exc.status_code
    return jsonify(permission.to_dict()), 201


@multi_shop_bp.get("/permissions")
@require_auth
@require_multi_shop_admin
def list_permissions():
    return jsonify(permission_workflow_service.list_for_admin(g.current_user.id)), 200


@multi_shop_bp.post("/permissions/<int:permission_id>/revoke")
@require_auth
@require_multi_shop_admin
def revoke_permission(permission_id: int):
    """Give up a permission (pending or granted)."""
    try:
        permission = permission_workflow_service.revoke(permission_id, g.current_user.id)
    except AccessError as exc:
        return jsonify(exc.to_dict()), exc.status_code
    return jsonify(permission.to_dict()), 200


@multi_shop_bp.get("/shops/<int:shop_id>/access")
@require_auth
@require_multi_shop_admin
def check_access(shop_id: int):
    decision = validate_shop_access(g.current_user.id, shop_id)
    return jsonify(decision.to_dict()), 200


@multi_shop_bp.get("/shops/<int:shop_id>")
@require_auth
@require_shop_access("shop_id")
def get_shop(shop_id: int):
    """Shop-scoped read, served only after authorize_shop_read."""
    shop = directory_service.get_shop(shop_id)
    if not shop:
        return jsonify({"error": "Shop not found"}), 404
    return jsonify(shop.to_dict()), 200
