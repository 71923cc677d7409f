# Overview: Service-layer operations for purchase-bill payments; the append-only payment ledger.

"""
Purchase Payment Ledger

DESIGN PRINCIPLES:
- Payments are append-only rows owned by their bill
- paid_amount is always recomputed as the sum of the bill's payments
- expenses = shipping_charges + miscellaneous + original_box (None counts as 0)
- balance = total_amount + expenses - paid, and may never go negative
- status becomes "paid" when the balance reaches zero, "pending" otherwise

CONCURRENCY: the payment insert and the bill update commit together. The
bill row is selected FOR UPDATE and carries an optimistic version_id, so of
two concurrent payments for the full balance one commits and the other is
retried, re-reads the new balance and is rejected.
"""

from datetime import date

from ..extensions import db
from ..errors import InvalidInputError, InvalidStateError, NotFoundError
from ..models import PurchaseBill, PurchasePayment
from ..models.purchasing import (
    BILL_STATUS_CANCELLED,
    BILL_STATUS_PAID,
    BILL_STATUS_PENDING,
    PAYMENT_MODES,
)
from ..money import ZERO, format_money, money_or_zero, quantize, to_money
from .concurrency import commit_or_fail, lock_for_update, run_with_retry
from marketplace.time_utils import parse_iso_date, today


def bill_expenses(bill: PurchaseBill):
    return (
        money_or_zero(bill.shipping_charges)
        + money_or_zero(bill.miscellaneous)
        + money_or_zero(bill.original_box)
    )


def bill_total_with_expenses(bill: PurchaseBill):
    return money_or_zero(bill.total_amount) + bill_expenses(bill)


def bill_paid_total(bill_id: int):
    """Sum of recorded payments for a bill (the ledger, not the cached column)."""
    amounts = db.session.query(PurchasePayment.amount).filter_by(bill_id=bill_id).all()
    return sum((money_or_zero(amount) for (amount,) in amounts), ZERO)


def status_for_balance(balance) -> str:
    return BILL_STATUS_PAID if balance <= ZERO else BILL_STATUS_PENDING


def validate_payment_mode(mode) -> str:
    if not mode or not isinstance(mode, str):
        raise InvalidInputError("Payment mode is required")
    mode = mode.strip().lower()
    if mode not in PAYMENT_MODES:
        raise InvalidInputError(f"Invalid payment mode. Must be one of: {', '.join(PAYMENT_MODES)}")
    return mode


def _parse_amount(amount):
    try:
        value = to_money(amount)
    except ValueError:
        raise InvalidInputError("Valid payment amount is required")
    if value <= ZERO:
        raise InvalidInputError("Valid payment amount is required")
    return value


def _parse_payment_date(payment_date) -> date:
    if payment_date is None or isinstance(payment_date, date):
        return payment_date or today()
    try:
        return parse_iso_date(payment_date) or today()
    except (TypeError, ValueError):
        raise InvalidInputError("Invalid payment_date format (expected YYYY-MM-DD)")


def record_payment(
    *,
    bill_id: int,
    amount,
    payment_mode: str,
    transaction_details: str | None = None,
    notes: str | None = None,
    payment_date=None,
) -> tuple[PurchaseBill, PurchasePayment]:
    """
    Append a payment to a purchase bill and recompute its paid/balance/status.

    Args:
        bill_id: Bill being paid
        amount: Positive amount; may not exceed the current balance
        payment_mode: cash, bank_transfer, upi, cheque or credit
        transaction_details: Reference number, UTR, cheque number (optional)
        notes: Free text (optional)
        payment_date: ISO date, defaults to today

    Returns:
        (updated_bill, payment)

    Raises:
        InvalidInputError: Bad amount/mode, or amount exceeds the balance
        NotFoundError: Bill does not exist
        InvalidStateError: Bill is cancelled
        StorageFailureError: The write did not commit
    """
    value = _parse_amount(amount)
    mode = validate_payment_mode(payment_mode)
    paid_on = _parse_payment_date(payment_date)

    def _op():
        bill = lock_for_update(db.session.query(PurchaseBill).filter_by(id=bill_id)).first()
        if not bill:
            raise NotFoundError("Purchase bill not found")
        if bill.status == BILL_STATUS_CANCELLED:
            raise InvalidStateError("Cannot add a payment to a cancelled bill")

        total_with_expenses = bill_total_with_expenses(bill)
        current_paid = bill_paid_total(bill.id)
        current_balance = total_with_expenses - current_paid

        if value > current_balance:
            raise InvalidInputError(
                f"Payment amount exceeds balance. Maximum allowed: {format_money(max(current_balance, ZERO))}"
            )

        payment = PurchasePayment(
            bill_id=bill.id,
            amount=value,
            payment_mode=mode,
            transaction_details=transaction_details or None,
            notes=notes or None,
            payment_date=paid_on,
        )
        db.session.add(payment)

        new_paid = current_paid + value
        new_balance = total_with_expenses - new_paid
        bill.paid_amount = quantize(new_paid)
        bill.balance_amount = quantize(new_balance)
        bill.status = status_for_balance(new_balance)

        commit_or_fail("Failed to add payment")
        return bill, payment

    return run_with_retry(_op)


def list_payments(bill_id: int) -> list[PurchasePayment]:
    """Payments for a bill, newest first."""
    if not db.session.get(PurchaseBill, bill_id):
        raise NotFoundError("Purchase bill not found")
    return (
        db.session.query(PurchasePayment)
        .filter_by(bill_id=bill_id)
        .order_by(PurchasePayment.created_at.desc(), PurchasePayment.id.desc())
        .all()
    )
