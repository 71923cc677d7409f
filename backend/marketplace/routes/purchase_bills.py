# Overview: Flask API routes for purchase bills and their payments; parses input and returns JSON responses.

"""
Purchase Bill Routes

SECURITY: All routes require an admin session.
"""

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth, require_admin
from ..errors import MarketplaceError
from ..models.purchasing import PAYMENT_MODES
from ..services import payment_service, purchase_service
from . import error_response, invalid_body, json_object, pagination_args


purchase_bills_bp = Blueprint("purchase_bills", __name__, url_prefix="/api/purchase-bills")


@purchase_bills_bp.get("")
@require_auth
@require_admin
def list_bills_route():
    """
    Query parameters:
    - status: pending | paid | cancelled
    - vendor_id: Filter by vendor
    - limit / offset: Pagination
    """
    limit, offset = pagination_args()
    bills, total = purchase_service.list_purchase_bills(
        status=request.args.get("status"),
        vendor_id=request.args.get("vendor_id", type=int),
        limit=limit,
        offset=offset,
    )
    return jsonify({
        "items": [b.to_dict() for b in bills],
        "count": total,
        "limit": limit,
        "offset": offset,
    })


@purchase_bills_bp.post("")
@require_auth
@require_admin
def create_bill_route():
    """
    Create a purchase bill.

    Request body:
    {
        "vendor_id": 1,                 // required
        "bill_number": "INV-77",        // optional, PBYYYYMMDD-NNN when omitted
        "date": "2026-10-18",           // optional, defaults to today
        "items": [{"product_id": 1, "quantity": 2, "cost_price": 500,
                   "final_cost_price": 520, "mrp": 900}],
        "shipping_charges": 40, "miscellaneous": 0, "original_box": 0,
        "total_amount": 1000,           // optional, defaults to sum of items
        "paid_amount": 0, "payment_mode": "cash", "transaction_details": null,
        "notes": "..."
    }
    """
    data = json_object()
    if data is None:
        return invalid_body()
    try:
        bill = purchase_service.create_purchase_bill(
            vendor_id=data.get("vendor_id"),
            items=data.get("items", []),
            bill_number=data.get("bill_number"),
            bill_date=data.get("date"),
            total_amount=data.get("total_amount"),
            shipping_charges=data.get("shipping_charges"),
            miscellaneous=data.get("miscellaneous"),
            original_box=data.get("original_box"),
            paid_amount=data.get("paid_amount"),
            payment_mode=data.get("payment_mode"),
            transaction_details=data.get("transaction_details"),
            notes=data.get("notes"),
        )
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create purchase bill")
        return jsonify({"error": "Failed to create purchase bill"}), 500
    return jsonify(bill.to_dict(include_lines=True)), 201


@purchase_bills_bp.get("/<int:bill_id>")
@require_auth
@require_admin
def get_bill_route(bill_id: int):
    try:
        bill = purchase_service.get_purchase_bill(bill_id)
    except MarketplaceError as e:
        return error_response(e)
    return jsonify(bill.to_dict(include_lines=True))


@purchase_bills_bp.put("/<int:bill_id>")
@require_auth
@require_admin
def update_bill_route(bill_id: int):
    """
    Edit a bill. Omitted keys keep their value; "items" replaces every line
    and moves stock accordingly. Payments are managed through /payments.
    """
    data = json_object()
    if data is None:
        return invalid_body()
    try:
        bill = purchase_service.update_purchase_bill(
            bill_id,
            items=data.get("items"),
            bill_number=data.get("bill_number"),
            bill_date=data.get("date"),
            vendor_id=data.get("vendor_id"),
            total_amount=data.get("total_amount"),
            shipping_charges=data.get("shipping_charges"),
            miscellaneous=data.get("miscellaneous"),
            original_box=data.get("original_box"),
            notes=data.get("notes"),
        )
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update purchase bill")
        return jsonify({"error": "Failed to update purchase bill"}), 500
    return jsonify(bill.to_dict(include_lines=True))


@purchase_bills_bp.post("/<int:bill_id>/cancel")
@require_auth
@require_admin
def cancel_bill_route(bill_id: int):
    """
    Cancel a bill. Stock is re-synced unless ?sync_stock=false.
    """
    resync = request.args.get("sync_stock", "true").lower() != "false"
    try:
        bill, sync_result = purchase_service.cancel_purchase_bill(bill_id, resync_stock=resync)
    except MarketplaceError as e:
        return error_response(e)
    return jsonify({"bill": bill.to_dict(), "stock_sync": sync_result})


@purchase_bills_bp.delete("/<int:bill_id>")
@require_auth
@require_admin
def delete_bill_route(bill_id: int):
    try:
        sync_result = purchase_service.delete_purchase_bill(bill_id)
    except MarketplaceError as e:
        return error_response(e)
    return jsonify({"deleted": True, "stock_sync": sync_result})


@purchase_bills_bp.get("/<int:bill_id>/payments")
@require_auth
@require_admin
def list_payments_route(bill_id: int):
    try:
        payments = payment_service.list_payments(bill_id)
    except MarketplaceError as e:
        return error_response(e)
    return jsonify({"items": [p.to_dict() for p in payments]})


@purchase_bills_bp.post("/<int:bill_id>/payments")
@require_auth
@require_admin
def add_payment_route(bill_id: int):
    """
    Record a payment against a bill.

    Request body:
    {
        "amount": 250.00,             // required, > 0, <= current balance
        "payment_mode": "upi",        // required
        "transaction_details": "...", // optional
        "notes": "...",               // optional
        "payment_date": "2026-10-18"  // optional
    }

    Returns:
        {payment, bill}
    """
    data = json_object()
    if data is None:
        return invalid_body()
    if data.get("amount") is None:
        return jsonify({"error": "Valid payment amount is required"}), 400
    if not data.get("payment_mode"):
        return jsonify({"error": f"Payment mode is required. Must be one of: {', '.join(PAYMENT_MODES)}"}), 400

    try:
        bill, payment = payment_service.record_payment(
            bill_id=bill_id,
            amount=data.get("amount"),
            payment_mode=data.get("payment_mode"),
            transaction_details=data.get("transaction_details"),
            notes=data.get("notes"),
            payment_date=data.get("payment_date"),
        )
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to add payment")
        return jsonify({"error": "Failed to add payment"}), 500

    return jsonify({"payment": payment.to_dict(), "bill": bill.to_dict()}), 201
