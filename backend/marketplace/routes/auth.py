# Overview: Flask API routes for admin auth operations; parses input and returns JSON responses.

"""
Admin Authentication API routes

Channel partners log in through /api/partners/<type>/login instead.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_admin
from ..errors import AuthenticationError
from ..services import auth_service
from ..services import session_service
from . import invalid_body, json_object


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate an admin and create a session token.

    Request body:
    {
        "username": "admin",   // or "email"
        "password": "..."
    }
    """
    data = json_object()
    if data is None:
        return invalid_body()
    identifier = data.get("username") or data.get("email")
    password = data.get("password")

    if not all([identifier, password]):
        return jsonify({"error": "username/email and password required"}), 400

    try:
        admin = auth_service.authenticate_admin(identifier, password)
        session, token = session_service.create_session(
            principal_type="admin",
            principal_id=admin.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
    except AuthenticationError as e:
        return jsonify({"error": str(e)}), 401
    except Exception:
        current_app.logger.exception("Failed to login admin")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({
        "user": admin.to_dict(),
        "token": token,
        "session": session.to_dict(),
        "message": "Login successful",
    }), 200


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the caller's session (admins and partners alike)."""
    session_service.revoke_session(g.token)
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get("/me")
@require_auth
@require_admin
def me_route():
    return jsonify({"user": g.principal.to_dict(), "session": g.session_context.session.to_dict()})
