# Overview: Flask API routes for brands and categories.

from flask import Blueprint, request, jsonify

from ..decorators import require_auth, require_admin
from ..errors import MarketplaceError
from ..services import catalog_service
from . import error_response, invalid_body, json_object


catalog_bp = Blueprint("catalog", __name__, url_prefix="/api")


@catalog_bp.get("/brands")
@require_auth
def list_brands_route():
    return jsonify({"items": [b.to_dict() for b in catalog_service.list_brands()]})


@catalog_bp.post("/brands")
@require_auth
@require_admin
def create_brand_route():
    data = json_object()
    if data is None:
        return invalid_body()
    try:
        brand = catalog_service.create_brand(data.get("name"), logo_url=data.get("logo_url"))
    except MarketplaceError as e:
        return error_response(e)
    return jsonify(brand.to_dict()), 201


@catalog_bp.get("/categories")
@require_auth
def list_categories_route():
    return jsonify({"items": [c.to_dict() for c in catalog_service.list_categories()]})


@catalog_bp.post("/categories")
@require_auth
@require_admin
def create_category_route():
    data = json_object()
    if data is None:
        return invalid_body()
    try:
        category = catalog_service.create_category(data.get("name"))
    except MarketplaceError as e:
        return error_response(e)
    return jsonify(category.to_dict()), 201


@catalog_bp.get("/brands/<int:brand_id>")
@require_auth
def get_brand_route(brand_id: int):
    try:
        brand = catalog_service.get_brand(brand_id)
    except MarketplaceError as e:
        return error_response(e)
    return jsonify(brand.to_dict())


@catalog_bp.put("/brands/<int:brand_id>")
@catalog_bp.patch("/brands/<int:brand_id>")
@require_auth
@require_admin
def update_brand_route(brand_id: int):
    """Body: any of name, logo_url, is_active."""
    data = json_object()
    if data is None:
        return invalid_body()
    try:
        brand = catalog_service.update_brand(brand_id, data)
    except MarketplaceError as e:
        return error_response(e)
    return jsonify(brand.to_dict())


@catalog_bp.delete("/brands/<int:brand_id>")
@require_auth
@require_admin
def delete_brand_route(brand_id: int):
    try:
        catalog_service.delete_brand(brand_id)
    except MarketplaceError as e:
        return error_response(e)
    return jsonify({"ok": True})


@catalog_bp.get("/categories/<int:category_id>")
@require_auth
def get_category_route(category_id: int):
    try:
        category = catalog_service.get_category(category_id)
    except MarketplaceError as e:
        return error_response(e)
    return jsonify(category.to_dict())


@catalog_bp.put("/categories/<int:category_id>")
@catalog_bp.patch("/categories/<int:category_id>")
@require_auth
@require_admin
def update_category_route(category_id: int):
    """Body: any of name, is_active."""
    data = json_object()
    if data is None:
        return invalid_body()
    try:
        category = catalog_service.update_category(category_id, data)
    except MarketplaceError as e:
        return error_response(e)
    return jsonify(category.to_dict())


@catalog_bp.delete("/categories/<int:category_id>")
@require_auth
@require_admin
def delete_category_route(category_id: int):
    try:
        catalog_service.delete_category(category_id)
    except MarketplaceError as e:
        return error_response(e)
    return jsonify({"ok": True})
