# Overview: Flask API routes for products, channel pricing and stock sync; parses input and returns JSON responses.

"""
Product Routes

SECURITY: All routes require authentication. Writes are admin-only.

Stock and cost are derived from purchase bills:
- POST /api/products/sync-stock rebuilds every product's stock from bills
- PUT/PATCH /api/products/<id> edits catalogue fields; DELETE removes an
  unpurchased product
- /api/products/recalculate-costs previews (GET) or applies (POST)
  weighted-average cost prices
"""

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth, require_admin
from ..errors import MarketplaceError
from ..services import catalog_service, pricing_service, stock_service
from . import error_response, invalid_body, json_object, pagination_args


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products_route():
    """
    Query parameters:
    - status: in_stock | out_of_stock
    - category_id, brand_id: Filter by catalogue grouping
    - search: Matches sku or name
    - limit / offset: Pagination
    """
    limit, offset = pagination_args()
    products, total = catalog_service.list_products(
        status=request.args.get("status"),
        category_id=request.args.get("category_id", type=int),
        brand_id=request.args.get("brand_id", type=int),
        search=request.args.get("search"),
        limit=limit,
        offset=offset,
    )
    return jsonify({
        "items": [p.to_dict() for p in products],
        "count": total,
        "limit": limit,
        "offset": offset,
    })


@products_bp.post("")
@require_auth
@require_admin
def create_product_route():
    data = json_object()
    if data is None:
        return invalid_body()
    try:
        product = catalog_service.create_product(data)
    except MarketplaceError as e:
        return error_response(e)
    return jsonify(product.to_dict()), 201


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        product = catalog_service.get_product(product_id)
    except MarketplaceError as e:
        return error_response(e)
    return jsonify(product.to_dict())


@products_bp.put("/<int:product_id>")
@products_bp.patch("/<int:product_id>")
@require_auth
@require_admin
def update_product_route(product_id: int):
    """
    Partial update. cost_price, stock_quantity and status are derived from
    purchase bills and are ignored here.
    """
    data = json_object()
    if data is None:
        return invalid_body()
    try:
        product = catalog_service.update_product(product_id, data)
    except MarketplaceError as e:
        return error_response(e)
    return jsonify(product.to_dict())


@products_bp.delete("/<int:product_id>")
@require_auth
@require_admin
def delete_product_route(product_id: int):
    try:
        catalog_service.delete_product(product_id)
    except MarketplaceError as e:
        return error_response(e)
    return jsonify({"ok": True})


@products_bp.patch("/<int:product_id>/price")
@require_auth
@require_admin
def apply_price_route(product_id: int):
    """
    Recompute one channel price from the product's cost price.

    Request body:
    {
        "markup_type": "percentage",     // or "fixed"
        "markup_value": 20,
        "price_field": "wholesale_price" // reseller_price, retail_price; default wholesale_price
    }
    """
    data = json_object()
    if data is None:
        return invalid_body()
    try:
        product = pricing_service.apply_price(
            product_id=product_id,
            markup_type=data.get("markup_type"),
            markup_value=data.get("markup_value"),
            price_field=data.get("price_field", "wholesale_price"),
        )
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update price")
        return jsonify({"error": "Failed to update price"}), 500
    return jsonify(product.to_dict())


@products_bp.post("/bulk-price")
@require_auth
@require_admin
def bulk_price_route():
    """Apply one markup rule to every product. Same body as the single-product route."""
    data = json_object()
    if data is None:
        return invalid_body()
    if not data.get("markup_type") or data.get("markup_value") is None:
        return jsonify({"error": "markup_type and markup_value are required"}), 400

    try:
        result = pricing_service.bulk_apply_price(
            markup_type=data["markup_type"],
            markup_value=data["markup_value"],
            price_field=data.get("price_field", "wholesale_price"),
        )
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update bulk prices")
        return jsonify({"error": "Failed to update prices"}), 500

    label = result["price_field"].replace("_", " ")
    result["message"] = f"Updated {label} for {result['updated_count']} products"
    return jsonify(result)


@products_bp.post("/sync-stock")
@require_auth
@require_admin
def sync_stock_route():
    """Rebuild stock quantity, cost price and status of every product from purchase bills."""
    try:
        result = stock_service.reconcile_stock()
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to sync stock")
        return jsonify({"error": "Failed to sync stock"}), 500

    result["message"] = (
        f"Synced stock for {result['updated_product_count']} products "
        f"from {result['contributing_bill_count']} bills"
    )
    return jsonify(result)


@products_bp.get("/recalculate-costs")
@require_auth
@require_admin
def preview_costs_route():
    """Weighted-average cost report without writing anything."""
    try:
        result = stock_service.recalculate_average_costs(apply=False)
    except MarketplaceError as e:
        return error_response(e)
    return jsonify(result)


@products_bp.post("/recalculate-costs")
@require_auth
@require_admin
def recalculate_costs_route():
    try:
        result = stock_service.recalculate_average_costs(apply=True)
    except MarketplaceError as e:
        return error_response(e)
    return jsonify(result)
