# Overview: Request decorators that establish the caller for API routes.

from functools import wraps
from flask import request, jsonify, g, current_app

from .services import get_services
from .services.access_service import has_capability


def require_caller(f):
    """
    Resolve the bearer token into a Caller and store it on g.caller.

    MULTI-TENANT: g.caller carries (user_id, role, org_id) exactly as the
    identity provider decoded it; services scope every query from it.

    Returns 401 if the Authorization header is missing or the token is
    invalid or expired.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1]
        caller = get_services().identity.resolve(token)

        if caller is None:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.caller = caller
        return f(*args, **kwargs)

    return decorated_function


def require_capability(capability: str):
    """
    Reject early when the caller's role lacks the capability.

    Services check again; this only saves the round trip for obvious denials.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            caller = getattr(g, "caller", None)
            if caller is None:
                return jsonify({"error": "Authentication required"}), 401

            if not has_capability(caller, capability):
                current_app.logger.info(
                    "Capability %s denied for user_id=%s on %s",
                    capability, caller.user_id, request.path,
                )
                return jsonify({
                    "error": "Permission denied",
                    "required_capability": capability,
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
