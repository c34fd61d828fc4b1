# Overview: Request and permission decorators for API routes.

from functools import wraps
from flask import current_app, request, jsonify, g

from .services import session_service
from .permissions import role_has_permission


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user') and hasattr(g, 'session_context')


def require_auth(f):
    """
    Require authentication and establish tenant context.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.store_id: The session's store ID (None for admins without a store)
    - g.session_context: The full SessionContext object

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
            return jsonify({"success": False, "message": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1].strip()

        context = session_service.validate_session(token)

        if not context:
            return jsonify({"success": False, "message": "Invalid or expired token"}), 401

        # Store user and tenant context in Flask g for access in routes
        g.current_user = context.user
        g.store_id = context.store_id
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_permission(permission_code: str):
    """Require a specific permission for the authenticated user's role."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_auth was called first
            if not _is_authenticated():
                return jsonify({"success": False, "message": "Authentication required"}), 401

            user = g.current_user
            if not role_has_permission(user.role, permission_code):
                current_app.logger.warning(
                    "PERMISSION_DENIED user_id=%s role=%s permission=%s path=%s",
                    user.id, user.role, permission_code, request.path,
                )
                return jsonify({
                    "success": False,
                    "message": "Permission denied",
                    "details": {"requiredPermission": permission_code},
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
