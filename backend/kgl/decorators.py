# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g, current_app

from .services import session_service


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user')


def require_auth(f):
    """
    Require a bearer session token and establish the acting user.

    Sets g.current_user. Branch context comes from the user:
    managers and agents act in user.branch_id, directors name a branch
    per request (see tenant_service.resolve_branch_id).

    Returns 401 if:
    - No Authorization header
    - Invalid, expired or idle token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required", "kind": "unauthorized", "details": {}}), 401

        token = auth_header.split(" ", 1)[1]
        user = session_service.validate_session(token)

        if not user:
            return jsonify({"error": "Invalid or expired token", "kind": "unauthorized", "details": {}}), 401

        g.current_user = user
        g.session_token = token

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """
    Require the acting user to hold one of the given roles.

    Must be applied after @require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required", "kind": "unauthorized", "details": {}}), 401

            user = g.current_user
            if user.role not in roles:
                current_app.logger.warning(
                    "Role denied: user=%s role=%s path=%s required=%s",
                    user.username, user.role, request.path, ",".join(roles),
                )
                return jsonify({
                    "error": "Permission denied",
                    "kind": "forbidden",
                    "details": {"required_roles": list(roles), "role": user.role},
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
