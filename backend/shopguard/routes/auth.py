# Overview: Flask API routes for session tokens; validation and logout.

"""
Session token routes.

Password login belongs to the host application; tokens are issued there (or
with `flask sessions issue` in development). These routes let a client check
a token and end its session.
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import session_service
from ..services.session_context_service import get_current_context


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1]


@auth_bp.post("/logout")
def logout_route():
    """
    Revoke session token (logout). Clears the session's shop context.

    Expects Authorization header: Bearer <token>
    """
    try:
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authorization header required"}), 401

        revoked = session_service.revoke_session(token, reason="User logout")

        if not revoked:
            return jsonify({"error": "Invalid or expired token"}), 401

        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/validate")
def validate_route():
    """
    Validate session token and return the principal with its revalidated shop context.

    Expects Authorization header: Bearer <token>
    """
    try:
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authorization header required"}), 401

        context = session_service.validate_session(token)

        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        shop_context = get_current_context(context.user, context.session)

        return jsonify({
            "user": context.user.to_dict(),
            "shop_context": shop_context.to_dict(),
            "message": "Token valid"
        }), 200

    except Exception:
        current_app.logger.exception("Failed to validate session")
        return jsonify({"error": "Internal server error"}), 500
