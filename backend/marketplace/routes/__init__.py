# Overview: Shared helpers for blueprints.

from flask import jsonify, request

from ..errors import MarketplaceError


def error_response(exc: MarketplaceError):
    return jsonify({"error": str(exc)}), exc.status_code


def pagination_args(default_limit: int = 100, max_limit: int = 500) -> tuple[int, int]:
    limit = request.args.get("limit", default_limit, type=int)
    offset = request.args.get("offset", 0, type=int)

    # Clamp limit
    if limit < 1:
        limit = 1
    if limit > max_limit:
        limit = max_limit
    if offset < 0:
        offset = 0
    return limit, offset


def json_object() -> dict | None:
    """Request body as a JSON object. A missing body reads as {}; arrays and scalars give None."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    return data if isinstance(data, dict) else None


def invalid_body():
    return jsonify({"error": "JSON object body is required"}), 400
