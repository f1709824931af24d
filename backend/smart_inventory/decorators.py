# Overview: Request decorators and error translation for API routes.

from functools import wraps
from flask import request, jsonify, g

from .errors import InventoryError
from .services import user_service


ACTOR_HEADER = "X-User-Id"


def require_actor(f):
    """
    Resolve the acting user supplied by the upstream auth layer.

    The authenticated user id arrives in the X-User-Id header; sessions and
    credentials are issued elsewhere. Sets g.current_user.

    Returns 401 if the header is missing, malformed, or names an unknown or
    inactive user.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = request.headers.get(ACTOR_HEADER, "").strip()
        if not raw.isdigit():
            return jsonify({"error": "Authentication required"}), 401

        user = user_service.get_active_user(int(raw))
        if user is None:
            return jsonify({"error": "Invalid or inactive user"}), 401

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def error_response(exc: InventoryError):
    return jsonify(exc.to_dict()), exc.http_status


def require_role(*role_names):
    """
    Restrict a route to the given roles. Must sit under @require_actor.

    Returns 403 when the acting user's role is not listed.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None:
                return jsonify({"error": "Authentication required"}), 401

            if user.role_name not in role_names:
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": list(role_names),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
