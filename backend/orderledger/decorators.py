# Overview: Request and permission decorators for API routes.

from functools import wraps

from flask import request, jsonify, g, current_app

from .errors import LedgerError
from .services.authz import load_actor


def _has_actor() -> bool:
    return hasattr(g, "actor")


def require_actor(f):
    """
    Resolve the authenticated caller and store it on g.actor.

    Credentials are checked upstream; the gateway forwards the user id in the
    ACTOR_ID_HEADER header. Returns 401 if:
    - The header is missing or not an integer
    - The user does not exist or is deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        header = current_app.config.get("ACTOR_ID_HEADER", "X-Actor-Id")
        raw = request.headers.get(header)
        if not raw:
            return jsonify({"error": "Authentication required", "code": "UNAUTHENTICATED"}), 401

        try:
            user_id = int(raw)
        except ValueError:
            return jsonify({"error": "Invalid actor id", "code": "UNAUTHENTICATED"}), 401

        actor = load_actor(user_id)
        if actor is None:
            return jsonify({"error": "Unknown or inactive user", "code": "UNAUTHENTICATED"}), 401

        g.actor = actor
        return f(*args, **kwargs)

    return decorated_function


def require_permission(permission_code: str):
    """Require a capability from the role table. Must follow @require_actor."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _has_actor():
                return jsonify({"error": "Authentication required", "code": "UNAUTHENTICATED"}), 401

            if not g.actor.has(permission_code):
                current_app.logger.info(
                    "Permission %s denied to user %s (%s) on %s",
                    permission_code, g.actor.user_id, g.actor.role.value, request.path,
                )
                return jsonify({
                    "error": "Permission denied",
                    "code": "FORBIDDEN",
                    "details": {"required_permission": permission_code},
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_any_permission(*permission_codes):
    """Require any of the listed capabilities. Must follow @require_actor."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _has_actor():
                return jsonify({"error": "Authentication required", "code": "UNAUTHENTICATED"}), 401

            if not any(g.actor.has(code) for code in permission_codes):
                return jsonify({
                    "error": "Permission denied",
                    "code": "FORBIDDEN",
                    "details": {"required_permissions": list(permission_codes)},
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def ledger_error_response(exc: LedgerError):
    """Typed domain error -> (json, status)."""
    return jsonify(exc.to_dict()), exc.http_status


def internal_error_response(message: str):
    current_app.logger.exception(message)
    return jsonify({"error": "Internal server error", "code": "INTERNAL_ERROR"}), 500
