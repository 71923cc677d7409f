# Overview: Flask API routes for channel-partner registration, approval and login.

"""
Channel Partner Routes

<partner_type> is one of: wholesaler, reseller, retailer.

Public:
- POST /api/partners/<type>/register
- GET  /api/partners/<type>/check-availability
- POST /api/partners/<type>/login

Admin only:
- GET  /api/partners/<type>
- GET  /api/partners/<type>/<id>
- POST /api/partners/<type>/<id>/approve
- POST /api/partners/<type>/<id>/reject
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_admin
from ..errors import AccountBlockedError, MarketplaceError, PendingApprovalError
from ..services import registration_service, session_service
from . import error_response, invalid_body, json_object, pagination_args


partners_bp = Blueprint("partners", __name__, url_prefix="/api/partners")


@partners_bp.post("/<partner_type>/register")
def register_route(partner_type: str):
    """
    Request body:
    {
        "name": "...", "email": "...", "contact_number": "...", "password": "...",
        "shop_name": "..."      // reseller; "company_name" for wholesaler; "address" for retailer
    }
    """
    data = json_object()
    if data is None:
        return invalid_body()
    data = dict(data)
    data.pop("partner_type", None)
    fields = {key: data.pop(key, None) for key in ("name", "email", "contact_number", "password")}
    try:
        partner = registration_service.register_partner(partner_type, **fields, **data)
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to register %s", partner_type)
        return jsonify({"error": "Registration failed. Please try again."}), 500

    return jsonify({
        "success": True,
        "message": "Registration successful! Please wait for admin approval.",
        "partner": {
            "id": partner.id,
            "name": partner.name,
            "email": partner.email,
            "username": partner.username,
        },
    }), 201


@partners_bp.get("/<partner_type>/check-availability")
def check_availability_route(partner_type: str):
    try:
        result = registration_service.check_availability(
            partner_type,
            username=request.args.get("username"),
            email=request.args.get("email"),
        )
    except MarketplaceError as e:
        return error_response(e)
    return jsonify(result)


@partners_bp.post("/<partner_type>/login")
def login_route(partner_type: str):
    """
    Request body:
    {
        "identifier": "...",   // username, email or phone ("username"/"email"/"phone" also accepted)
        "password": "..."
    }

    Pending and rejected partners get 403 with a "reason" of
    pending_approval or rejected.
    """
    data = json_object()
    if data is None:
        return invalid_body()
    identifier = data.get("identifier") or data.get("username") or data.get("email") or data.get("phone")

    try:
        partner = registration_service.authenticate_partner(partner_type, identifier, data.get("password"))
        session, token = session_service.create_session(
            principal_type=partner_type,
            principal_id=partner.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
    except AccountBlockedError as e:
        reason = "pending_approval" if isinstance(e, PendingApprovalError) else "rejected"
        return jsonify({"error": str(e), "reason": reason}), e.status_code
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to login %s", partner_type)
        return jsonify({"error": "Authentication failed"}), 500

    return jsonify({
        "success": True,
        "partner": partner.to_dict(),
        "token": token,
        "session": session.to_dict(),
    })


@partners_bp.get("/<partner_type>")
@require_auth
@require_admin
def list_partners_route(partner_type: str):
    limit, offset = pagination_args()
    try:
        partners, total = registration_service.list_partners(
            partner_type,
            registration_status=request.args.get("registration_status"),
            limit=limit,
            offset=offset,
        )
    except MarketplaceError as e:
        return error_response(e)
    return jsonify({
        "items": [p.to_dict() for p in partners],
        "count": total,
        "limit": limit,
        "offset": offset,
    })


@partners_bp.get("/<partner_type>/<int:partner_id>")
@require_auth
@require_admin
def get_partner_route(partner_type: str, partner_id: int):
    try:
        partner = registration_service.get_partner(partner_type, partner_id)
    except MarketplaceError as e:
        return error_response(e)
    return jsonify(partner.to_dict())


@partners_bp.post("/<partner_type>/<int:partner_id>/approve")
@require_auth
@require_admin
def approve_route(partner_type: str, partner_id: int):
    try:
        partner = registration_service.approve(partner_type, partner_id, reviewed_by=g.principal.username)
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to approve %s %s", partner_type, partner_id)
        return jsonify({"error": f"Failed to approve {partner_type}"}), 500
    return jsonify(partner.to_dict())


@partners_bp.post("/<partner_type>/<int:partner_id>/reject")
@require_auth
@require_admin
def reject_route(partner_type: str, partner_id: int):
    try:
        partner = registration_service.reject(partner_type, partner_id, reviewed_by=g.principal.username)
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to reject %s %s", partner_type, partner_id)
        return jsonify({"error": f"Failed to reject {partner_type}"}), 500
    return jsonify(partner.to_dict())
