# Overview: Request authentication decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1]


def require_auth(f):
    """
    Require a valid session and establish the request principal.

    Sets the following Flask g attributes:
    - g.session_context: The full SessionContext object
    - g.principal: AdminUser, Wholesaler, Reseller or Retailer
    - g.principal_type: "admin", "wholesaler", "reseller" or "retailer"
    - g.token: The plaintext bearer token (for logout)

    SECURITY: Returns 401 if there is no Authorization header, the token is
    unknown/expired/revoked, or the principal may no longer hold a session.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.session_context = context
        g.principal = context.principal
        g.principal_type = context.principal_type
        g.token = token

        return f(*args, **kwargs)

    return decorated_function


def require_principal(*principal_types: str):
    """
    Restrict a route to the given principal types. Must follow @require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not hasattr(g, "principal_type"):
                return jsonify({"error": "Authentication required"}), 401
            if g.principal_type not in principal_types:
                return jsonify({
                    "error": "Permission denied",
                    "required_principal": list(principal_types),
                }), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator


require_admin = require_principal("admin")
