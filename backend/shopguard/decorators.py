# Overview: Request and permission decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .models import AuditAction
from .models.audit import AUDIT_STATUS_DENIED
from .services import audit_service, session_service
from .services.permission_validation_service import Denied, authorize_shop_read


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user') and hasattr(g, 'session_context')


def _log_role_denial(reason: str) -> None:
    audit_service.append(
        user_id=g.current_user.id,
        action=AuditAction.ACCESS_ATTEMPT,
        status=AUDIT_STATUS_DENIED,
        reason=f"{reason}: {request.method} {request.path}",
    )


def require_auth(f):
    """
    Require a valid bearer session token.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.session_context: SessionContext (user + SessionToken row)

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, expired or revoked token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        # Extract token from Authorization header
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1]

        context = session_service.validate_session(token)

        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_multi_shop_admin(f):
    """Require the authenticated user to be an active multi-shop admin."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return jsonify({"error": "Authentication required"}), 401
        if not g.current_user.is_multi_shop_admin:
            _log_role_denial("Multi-shop admin route")
            return jsonify({"error": "Multi-shop admin access required"}), 403
        return f(*args, **kwargs)
    return decorated_function


def require_superadmin(f):
    """Require the authenticated user to be a superadmin."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return jsonify({"error": "Authentication required"}), 401
        if not g.current_user.is_superadmin:
            _log_role_denial("Superadmin route")
            return jsonify({"error": "Superadmin access required"}), 403
        return f(*args, **kwargs)
    return decorated_function


def require_shop_access(view_arg: str = "shop_id"):
    """
    Gate a shop-scoped handler on authorize_shop_read.

    The shop id is taken from the URL variable named view_arg. Shop owners
    pass for their own shops; multi-shop admins need a currently valid grant.
    Denials are audited by the validation service.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            decision = authorize_shop_read(g.current_user, kwargs.get(view_arg))
            if isinstance(decision, Denied):
                return jsonify({"error": decision.reason}), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
