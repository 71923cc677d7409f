# Overview: Service-layer operations for purchase bills; encapsulates business logic and database work.

"""
Purchase Bill Service

A purchase bill records inventory bought from one vendor, the bill's
shared expenses, and the payments made against it.

LIFECYCLE:
1. pending: Created, balance outstanding
2. paid: Balance reached zero (see payment_service.py)
3. cancelled: Terminal; the bill's items stop counting towards stock

CREATION (single transaction):
- line items are stored with a snapshot of the product sku/name
- an initial payment row is written when paid_amount > 0
- each purchased product's stock is incremented and marked in_stock
- each purchased product's cost price becomes the weighted average of its
  purchase history

EDITING (update_purchase_bill): line replacement moves stock out for the old
lines and in for the new ones; affected products are re-averaged and their
status follows the resulting stock. Cancelled bills are read-only.
"""

import logging
from datetime import date

from sqlalchemy import func

from ..extensions import db
from ..errors import InvalidInputError, InvalidStateError, NotFoundError
from ..models import Product, PurchaseBill, PurchaseItem, PurchasePayment
from ..models.catalog import PRODUCT_STATUS_IN_STOCK
from ..models.purchasing import BILL_STATUS_CANCELLED
from ..money import ZERO, money_or_zero, quantize, to_money
from .concurrency import commit_or_fail, lock_for_update, run_with_retry
from .payment_service import bill_expenses, bill_paid_total, status_for_balance, validate_payment_mode
from .stock_service import reconcile_stock, stock_status, weighted_average_cost
from .vendor_service import validate_vendor
from marketplace.time_utils import parse_iso_date, today, utcnow


logger = logging.getLogger(__name__)

DEFAULT_PAYMENT_MODE = "cash"


def _money(value, field: str, *, default=ZERO, allow_none: bool = False):
    if value is None or value == "":
        return None if allow_none else default
    try:
        amount = to_money(value, field=field)
    except ValueError as e:
        raise InvalidInputError(str(e))
    if amount < ZERO:
        raise InvalidInputError(f"{field} cannot be negative")
    return amount


def _bill_date(value) -> date:
    if value is None or isinstance(value, date):
        return value or today()
    try:
        return parse_iso_date(value) or today()
    except (TypeError, ValueError):
        raise InvalidInputError("Invalid date format (expected YYYY-MM-DD)")


def next_bill_number(on: date | None = None) -> str:
    """
    PBYYYYMMDD-NNN, numbered per day.

    Skips numbers already taken (manually entered bill numbers can collide).
    """
    on = on or today()
    prefix = f"PB{on:%Y%m%d}"
    count = (
        db.session.query(func.count(PurchaseBill.id))
        .filter(PurchaseBill.bill_number.like(f"{prefix}-%"))
        .scalar()
    )
    sequence = count + 1
    while True:
        candidate = f"{prefix}-{sequence:03d}"
        if not db.session.query(PurchaseBill.id).filter_by(bill_number=candidate).first():
            return candidate
        sequence += 1


def _build_item(raw: dict) -> tuple[PurchaseItem, dict]:
    product_id = raw.get("product_id")
    if not product_id:
        raise InvalidInputError("product_id is required on every item")

    product = db.session.get(Product, product_id)
    if not product:
        raise InvalidInputError(f"Product {product_id} not found")

    quantity = raw.get("quantity")
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidInputError("Item quantity must be a positive integer")

    cost_price = _money(raw.get("cost_price"), "cost_price", default=None)
    if cost_price is None:
        raise InvalidInputError("cost_price is required on every item")
    distributed_cost = _money(raw.get("distributed_cost"), "distributed_cost")
    final_cost_price = _money(raw.get("final_cost_price"), "final_cost_price", allow_none=True)
    line_total = _money(raw.get("total"), "total", default=None)
    if line_total is None:
        line_total = quantize(cost_price * quantity)

    item = PurchaseItem(
        product_id=product.id,
        product_sku=product.sku,
        product_name=product.name,
        quantity=quantity,
        cost_price=cost_price,
        distributed_cost=distributed_cost,
        final_cost_price=final_cost_price or cost_price,
        line_total=line_total,
    )
    extras = {"mrp": _money(raw.get("mrp"), "mrp", allow_none=True)}
    return item, extras


def create_purchase_bill(
    *,
    vendor_id: int,
    items: list[dict],
    bill_number: str | None = None,
    bill_date=None,
    total_amount=None,
    shipping_charges=None,
    miscellaneous=None,
    original_box=None,
    paid_amount=None,
    payment_mode: str | None = None,
    transaction_details: str | None = None,
    notes: str | None = None,
) -> PurchaseBill:
    """
    Create a purchase bill with its items and optional initial payment.

    total_amount defaults to the sum of the items' line totals.

    Raises:
        InvalidInputError: Bad vendor/items/amounts, duplicate bill number,
            or an initial payment larger than the bill
    """
    if not vendor_id:
        raise InvalidInputError("Vendor is required")
    validate_vendor(vendor_id)

    if not isinstance(items, list):
        raise InvalidInputError("items must be a list")

    billed_on = _bill_date(bill_date)
    built = [_build_item(raw or {}) for raw in items]

    if total_amount is None:
        total = sum((item.line_total for item, _ in built), ZERO)
    else:
        total = _money(total_amount, "total_amount")
    shipping = _money(shipping_charges, "shipping_charges")
    misc = _money(miscellaneous, "miscellaneous")
    box = _money(original_box, "original_box")
    paid = _money(paid_amount, "paid_amount")

    total_with_expenses = total + shipping + misc + box
    if paid > total_with_expenses:
        raise InvalidInputError("paid_amount cannot exceed the bill total including expenses")

    mode = validate_payment_mode(payment_mode or DEFAULT_PAYMENT_MODE) if paid > ZERO else None
    if bill_number:
        bill_number = bill_number.strip()
    balance = total_with_expenses - paid

    def _op():
        if bill_number:
            if db.session.query(PurchaseBill.id).filter_by(bill_number=bill_number).first():
                raise InvalidInputError(f"Bill number '{bill_number}' already exists")
            number = bill_number
        else:
            number = next_bill_number(billed_on)

        lines = [_build_item(raw or {}) for raw in items]
        bill = PurchaseBill(
            bill_number=number,
            bill_date=billed_on,
            vendor_id=vendor_id,
            total_amount=total,
            shipping_charges=shipping,
            miscellaneous=misc,
            original_box=box,
            paid_amount=paid,
            balance_amount=balance,
            status=status_for_balance(balance),
            notes=notes,
        )
        bill.items = [item for item, _ in lines]
        if mode:
            bill.payments = [
                PurchasePayment(
                    amount=paid,
                    payment_mode=mode,
                    transaction_details=transaction_details or None,
                    payment_date=billed_on,
                )
            ]
        db.session.add(bill)
        db.session.flush()

        for item, extras in lines:
            product = lock_for_update(db.session.query(Product).filter_by(id=item.product_id)).first()
            product.stock_quantity = (product.stock_quantity or 0) + item.quantity
            product.status = PRODUCT_STATUS_IN_STOCK
            if extras["mrp"] and extras["mrp"] > ZERO:
                product.mrp = extras["mrp"]

        for product_id in {item.product_id for item, _ in lines}:
            product = db.session.get(Product, product_id)
            product.cost_price = weighted_average_cost(product_id)

        commit_or_fail("Failed to create purchase bill")
        return bill

    bill = run_with_retry(_op)
    logger.info("Created purchase bill %s (%d items)", bill.bill_number, len(items))
    return bill


def _spread_expenses(items: list[PurchaseItem], expenses) -> None:
    """Share the bill's expenses across its lines per unit and refresh final costs."""
    total_quantity = sum(item.quantity for item in items)
    if total_quantity <= 0:
        return
    per_unit = expenses / total_quantity
    for item in items:
        item.distributed_cost = quantize(per_unit * item.quantity)
        item.final_cost_price = quantize(money_or_zero(item.cost_price) + per_unit)


def update_purchase_bill(
    bill_id: int,
    *,
    items: list[dict] | None = None,
    bill_number: str | None = None,
    bill_date=None,
    vendor_id: int | None = None,
    total_amount=None,
    shipping_charges=None,
    miscellaneous=None,
    original_box=None,
    notes: str | None = None,
) -> PurchaseBill:
    """
    Edit a purchase bill. Arguments left as None keep their current value.

    With items, the old lines' stock is taken back, the lines are replaced
    and the new lines' stock is added. Without items but with changed
    expenses, the expenses are spread again over the existing lines. Every
    affected product then gets its weighted-average cost and a status that
    follows its stock.

    Payments are not edited here: paid_amount stays the ledger sum and the
    balance is recomputed against the new total.

    Raises:
        NotFoundError: Bill does not exist
        InvalidStateError: Bill is cancelled
        InvalidInputError: Bad vendor/items/amounts, duplicate bill number,
            or a total below what has already been paid
    """
    if items is not None and not isinstance(items, list):
        raise InvalidInputError("items must be a list")
    if vendor_id is not None:
        validate_vendor(vendor_id)
    billed_on = _bill_date(bill_date) if bill_date is not None else None
    new_total = _money(total_amount, "total_amount", allow_none=True)
    new_shipping = _money(shipping_charges, "shipping_charges", allow_none=True)
    new_misc = _money(miscellaneous, "miscellaneous", allow_none=True)
    new_box = _money(original_box, "original_box", allow_none=True)
    number = bill_number.strip() if isinstance(bill_number, str) and bill_number.strip() else None

    def _op():
        bill = lock_for_update(db.session.query(PurchaseBill).filter_by(id=bill_id)).first()
        if not bill:
            raise NotFoundError("Purchase bill not found")
        if bill.status == BILL_STATUS_CANCELLED:
            raise InvalidStateError("Cannot edit a cancelled bill")

        if number and number != bill.bill_number:
            taken = (
                db.session.query(PurchaseBill.id)
                .filter(PurchaseBill.bill_number == number, PurchaseBill.id != bill.id)
                .first()
            )
            if taken:
                raise InvalidInputError(f"Bill number '{number}' already exists")

        lines = [_build_item(raw or {}) for raw in items] if items is not None else None

        old_expenses = bill_expenses(bill)
        shipping = new_shipping if new_shipping is not None else money_or_zero(bill.shipping_charges)
        misc = new_misc if new_misc is not None else money_or_zero(bill.miscellaneous)
        box = new_box if new_box is not None else money_or_zero(bill.original_box)
        expenses = shipping + misc + box

        if new_total is not None:
            total = new_total
        elif lines is not None:
            total = sum((item.line_total for item, _ in lines), ZERO)
        else:
            total = money_or_zero(bill.total_amount)

        paid = bill_paid_total(bill.id)
        balance = total + expenses - paid
        if balance < ZERO:
            raise InvalidInputError(
                f"Bill total cannot be less than the amount already paid ({quantize(paid)})"
            )

        affected = {item.product_id for item in bill.items}
        if lines is not None:
            for item in bill.items:
                product = lock_for_update(db.session.query(Product).filter_by(id=item.product_id)).first()
                product.stock_quantity = max((product.stock_quantity or 0) - item.quantity, 0)
            bill.items = [item for item, _ in lines]
            db.session.flush()
            for item, extras in lines:
                affected.add(item.product_id)
                product = lock_for_update(db.session.query(Product).filter_by(id=item.product_id)).first()
                product.stock_quantity = (product.stock_quantity or 0) + item.quantity
                if extras["mrp"] and extras["mrp"] > ZERO:
                    product.mrp = extras["mrp"]
        elif expenses != old_expenses:
            _spread_expenses(bill.items, expenses)

        if number:
            bill.bill_number = number
        if billed_on:
            bill.bill_date = billed_on
        if vendor_id is not None:
            bill.vendor_id = vendor_id
        if notes is not None:
            bill.notes = notes
        bill.shipping_charges = shipping
        bill.miscellaneous = misc
        bill.original_box = box
        bill.total_amount = total
        bill.paid_amount = quantize(paid)
        bill.balance_amount = quantize(balance)
        bill.status = status_for_balance(balance)
        db.session.flush()

        for product_id in affected:
            product = db.session.get(Product, product_id)
            product.cost_price = weighted_average_cost(product_id)
            product.status = stock_status(product.stock_quantity or 0)

        commit_or_fail("Failed to update purchase bill")
        return bill

    bill = run_with_retry(_op)
    logger.info("Updated purchase bill %s", bill.bill_number)
    return bill


def get_purchase_bill(bill_id: int) -> PurchaseBill:
    bill = db.session.get(PurchaseBill, bill_id)
    if not bill:
        raise NotFoundError("Purchase bill not found")
    return bill


def list_purchase_bills(
    *,
    status: str | None = None,
    vendor_id: int | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[PurchaseBill], int]:
    query = db.session.query(PurchaseBill)
    if status:
        query = query.filter(PurchaseBill.status == status)
    if vendor_id:
        query = query.filter(PurchaseBill.vendor_id == vendor_id)

    total = query.count()
    bills = query.order_by(PurchaseBill.created_at.desc(), PurchaseBill.id.desc()).offset(offset).limit(limit).all()
    return bills, total


def cancel_purchase_bill(bill_id: int, *, resync_stock: bool = True) -> tuple[PurchaseBill, dict | None]:
    """
    Cancel a bill. Its items stop contributing to stock; with resync_stock the
    catalogue stock is reconciled immediately.

    Raises:
        NotFoundError: Bill does not exist
        InvalidStateError: Bill already cancelled
    """
    def _op():
        bill = lock_for_update(db.session.query(PurchaseBill).filter_by(id=bill_id)).first()
        if not bill:
            raise NotFoundError("Purchase bill not found")
        if bill.status == BILL_STATUS_CANCELLED:
            raise InvalidStateError("Purchase bill is already cancelled")
        bill.status = BILL_STATUS_CANCELLED
        bill.cancelled_at = utcnow()
        commit_or_fail("Failed to cancel purchase bill")
        return bill

    bill = run_with_retry(_op)
    sync_result = reconcile_stock() if resync_stock else None
    return bill, sync_result


def delete_purchase_bill(bill_id: int, *, resync_stock: bool = True) -> dict | None:
    """Delete a bill together with its items and payments."""
    bill = get_purchase_bill(bill_id)
    db.session.delete(bill)
    commit_or_fail("Failed to delete purchase bill")
    return reconcile_stock() if resync_stock else None
