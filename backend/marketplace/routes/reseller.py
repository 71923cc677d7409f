# Overview: Flask API routes for the reseller storefront; requires a reseller session.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_principal
from ..errors import MarketplaceError
from ..services import storefront_service
from . import error_response, invalid_body, json_object


reseller_bp = Blueprint("reseller", __name__, url_prefix="/api/reseller")


@reseller_bp.get("/profile")
@require_auth
@require_principal("reseller")
def profile_route():
    return jsonify(g.principal.to_dict())


@reseller_bp.get("/products")
@require_auth
@require_principal("reseller")
def list_products_route():
    """
    Query parameters:
    - visibility: all (default), visible, hidden
    - category_id, brand_id
    """
    try:
        rows = storefront_service.list_imported_products(
            g.principal.id,
            visibility=request.args.get("visibility", "all"),
            category_id=request.args.get("category_id", type=int),
            brand_id=request.args.get("brand_id", type=int),
        )
    except MarketplaceError as e:
        return error_response(e)
    return jsonify({"products": [r.to_dict() for r in rows], "total": len(rows)})


@reseller_bp.post("/products")
@require_auth
@require_principal("reseller")
def import_products_route():
    """
    Request body:
    {
        "product_ids": [1, 2, 3],
        "selling_price": 1500     // optional override applied to each new import
    }
    """
    data = json_object()
    if data is None:
        return invalid_body()
    try:
        result = storefront_service.import_products(
            g.principal.id,
            data.get("product_ids"),
            selling_price=data.get("selling_price"),
        )
    except MarketplaceError as e:
        return error_response(e)
    result["success"] = True
    return jsonify(result)


@reseller_bp.patch("/products/<int:reseller_product_id>")
@require_auth
@require_principal("reseller")
def update_product_route(reseller_product_id: int):
    data = json_object()
    if data is None:
        return invalid_body()
    changes = {k: data[k] for k in ("selling_price", "is_visible", "display_order") if k in data}
    try:
        row = storefront_service.update_imported_product(g.principal.id, reseller_product_id, changes)
    except MarketplaceError as e:
        return error_response(e)
    return jsonify(row.to_dict())


@reseller_bp.delete("/products/<int:reseller_product_id>")
@require_auth
@require_principal("reseller")
def remove_product_route(reseller_product_id: int):
    try:
        storefront_service.remove_imported_product(g.principal.id, reseller_product_id)
    except MarketplaceError as e:
        return error_response(e)
    return jsonify({"success": True})


@reseller_bp.post("/bulk-markup")
@require_auth
@require_principal("reseller")
def bulk_markup_route():
    """
    Request body:
    {
        "markup_type": "percentage",   // or "fixed"
        "markup_value": 10,            // >= 0
        "apply_to_existing": true
    }
    """
    data = json_object()
    if data is None:
        return invalid_body()
    if not data.get("markup_type") or data.get("markup_value") is None:
        return jsonify({"error": "Markup type and value are required"}), 400

    try:
        result = storefront_service.apply_bulk_markup(
            g.principal.id,
            markup_type=data["markup_type"],
            markup_value=data["markup_value"],
            apply_to_existing=bool(data.get("apply_to_existing", False)),
        )
    except MarketplaceError as e:
        return error_response(e)
    result["success"] = True
    return jsonify(result)


@reseller_bp.put("/auto-import")
@require_auth
@require_principal("reseller")
def auto_import_route():
    data = json_object()
    if data is None:
        return invalid_body()
    if not isinstance(data.get("enabled"), bool):
        return jsonify({"error": "enabled must be a boolean"}), 400
    try:
        reseller = storefront_service.set_auto_import(g.principal.id, data["enabled"])
    except MarketplaceError as e:
        return error_response(e)
    return jsonify(reseller.to_dict())
