# Overview: Flask API routes for the vendors that purchase bills are raised against.

from flask import Blueprint, request, jsonify

from ..decorators import require_auth, require_admin
from ..errors import MarketplaceError
from ..services import vendor_service
from . import error_response, invalid_body, json_object, pagination_args


vendors_bp = Blueprint("vendors", __name__, url_prefix="/api/vendors")

VENDOR_FIELDS = ("contact_name", "contact_email", "contact_phone", "address", "gst_number", "notes")


@vendors_bp.get("")
@require_auth
@require_admin
def list_vendors_route():
    """
    Query parameters:
    - include_inactive: true to list deactivated vendors as well
    - search: Matches vendor or contact name
    - limit / offset: Pagination
    """
    limit, offset = pagination_args()
    vendors, total = vendor_service.list_vendors(
        include_inactive=request.args.get("include_inactive", "").lower() == "true",
        search=request.args.get("search"),
        limit=limit,
        offset=offset,
    )
    return jsonify({
        "items": [v.to_dict() for v in vendors],
        "count": total,
        "limit": limit,
        "offset": offset,
    })


@vendors_bp.post("")
@require_auth
@require_admin
def create_vendor_route():
    data = json_object()
    if data is None:
        return invalid_body()
    try:
        vendor = vendor_service.create_vendor(
            name=data.get("name"),
            **{field: data.get(field) for field in VENDOR_FIELDS},
        )
    except MarketplaceError as e:
        return error_response(e)
    return jsonify(vendor.to_dict()), 201


@vendors_bp.get("/<int:vendor_id>")
@require_auth
@require_admin
def get_vendor_route(vendor_id: int):
    try:
        vendor = vendor_service.get_vendor(vendor_id)
    except MarketplaceError as e:
        return error_response(e)
    return jsonify(vendor.to_dict())
