"""
Purchase payment ledger tests.

Verifies:
- Payments recompute paid/balance/status on the bill
- Over-payment is rejected with the exact maximum allowed
- Expenses count towards the payable total
- Cancelled and unknown bills refuse payments
- Concurrency retry wrapper behaviour
- Two simultaneous full-balance payments: one commits, the other is refused
"""

from decimal import Decimal
import threading

import pytest
from sqlalchemy.orm.exc import StaleDataError

from marketplace import create_app
from marketplace.errors import (
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
    StorageFailureError,
)
from marketplace.extensions import db
from marketplace.models import PurchaseBill, PurchasePayment
from marketplace.services import catalog_service, payment_service, purchase_service, vendor_service
from marketplace.services.concurrency import run_with_retry


@pytest.fixture
def bill(make_product, make_bill):
    bag = make_product("BAG-1")
    return make_bill([(bag, 1, 1000)])


def _pay(bill_id, amount, mode="cash", **kwargs):
    return payment_service.record_payment(bill_id=bill_id, amount=amount, payment_mode=mode, **kwargs)


# =============================================================================
# record_payment
# =============================================================================


class TestRecordPayment:

    def test_partial_then_full_payment(self, db_session, bill):
        assert bill.status == "pending"
        assert bill.balance_amount == Decimal("1000.00")

        bill, payment = _pay(bill.id, 400)
        assert payment.amount == Decimal("400.00")
        assert bill.paid_amount == Decimal("400.00")
        assert bill.balance_amount == Decimal("600.00")
        assert bill.status == "pending"

        bill, _ = _pay(bill.id, "600.00", mode="upi", transaction_details="UTR123")
        assert bill.paid_amount == Decimal("1000.00")
        assert bill.balance_amount == Decimal("0.00")
        assert bill.status == "paid"

    def test_overpayment_reports_remaining_balance(self, db_session, bill):
        _pay(bill.id, 400)

        with pytest.raises(InvalidInputError) as exc:
            _pay(bill.id, 700)

        assert str(exc.value) == "Payment amount exceeds balance. Maximum allowed: 600.00"

    def test_paid_bill_rejects_further_payment(self, db_session, bill):
        _pay(bill.id, 1000)

        with pytest.raises(InvalidInputError, match="Maximum allowed: 0.00"):
            _pay(bill.id, 1)

        assert len(payment_service.list_payments(bill.id)) == 1

    def test_expenses_are_payable(self, db_session, make_product, make_bill):
        bag = make_product("BAG-1")
        bill = make_bill([(bag, 1, 1000)], shipping_charges=50, miscellaneous=25, original_box="25.00")
        assert bill.balance_amount == Decimal("1100.00")

        bill, _ = _pay(bill.id, 1100)

        assert bill.status == "paid"
        assert bill.balance_amount == Decimal("0.00")

    def test_initial_payment_counts_towards_paid(self, db_session, make_product, make_bill):
        bag = make_product("BAG-1")
        bill = make_bill([(bag, 1, 1000)], paid_amount=300, payment_mode="bank_transfer")

        with pytest.raises(InvalidInputError, match="Maximum allowed: 700.00"):
            _pay(bill.id, 800)

        bill, _ = _pay(bill.id, 700)
        assert bill.paid_amount == Decimal("1000.00")
        assert bill.status == "paid"

    def test_cancelled_bill_rejects_payment(self, db_session, bill):
        purchase_service.cancel_purchase_bill(bill.id, resync_stock=False)

        with pytest.raises(InvalidStateError):
            _pay(bill.id, 100)

    def test_unknown_bill(self, db_session):
        with pytest.raises(NotFoundError):
            _pay(999999, 100)

    @pytest.mark.parametrize("amount", [0, -5, "abc", None, True])
    def test_invalid_amount(self, db_session, bill, amount):
        with pytest.raises(InvalidInputError, match="Valid payment amount is required"):
            _pay(bill.id, amount)

    @pytest.mark.parametrize("mode", [None, "", "paypal"])
    def test_invalid_mode(self, db_session, bill, mode):
        with pytest.raises(InvalidInputError):
            _pay(bill.id, 100, mode=mode)

    def test_mode_is_case_insensitive(self, db_session, bill):
        _, payment = _pay(bill.id, 100, mode="UPI")
        assert payment.payment_mode == "upi"

    def test_payment_bumps_bill_version(self, db_session, bill):
        version = bill.version_id

        bill, _ = _pay(bill.id, 100)

        assert bill.version_id == version + 1

    def test_invalid_payment_date(self, db_session, bill):
        with pytest.raises(InvalidInputError, match="payment_date"):
            _pay(bill.id, 100, payment_date="18/10/2026")


class TestListPayments:

    def test_newest_first(self, db_session, bill):
        _, first = _pay(bill.id, 100)
        _, second = _pay(bill.id, 200)

        payments = payment_service.list_payments(bill.id)

        assert [p.id for p in payments] == [second.id, first.id]

    def test_unknown_bill(self, db_session):
        with pytest.raises(NotFoundError):
            payment_service.list_payments(999999)


# =============================================================================
# run_with_retry
# =============================================================================


class TestRunWithRetry:

    def test_retries_stale_data_then_succeeds(self, db_session):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise StaleDataError("version mismatch")
            return "ok"

        assert run_with_retry(flaky, backoff_base=0) == "ok"
        assert len(calls) == 2

    def test_exhausted_attempts_raise_storage_failure(self, db_session):
        def always_stale():
            raise StaleDataError("version mismatch")

        with pytest.raises(StorageFailureError):
            run_with_retry(always_stale, attempts=2, backoff_base=0)

    def test_service_errors_are_not_retried(self, db_session):
        calls = []

        def not_found():
            calls.append(1)
            raise NotFoundError("missing")

        with pytest.raises(NotFoundError):
            run_with_retry(not_found, backoff_base=0)
        assert len(calls) == 1


# =============================================================================
# Concurrent payments
# =============================================================================


@pytest.fixture
def file_app(tmp_path):
    """Separate app on a file-backed SQLite database so threads share real storage."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'payments.db'}",
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


class TestConcurrentPayments:

    def test_full_balance_paid_twice_at_once(self, file_app, monkeypatch):
        brand = catalog_service.create_brand("Maison Test")
        category = catalog_service.create_category("Handbags")
        bag = catalog_service.create_product(
            {"sku": "BAG-1", "name": "Bag", "brand_id": brand.id, "category_id": category.id}
        )
        vendor = vendor_service.create_vendor(name="Atelier Supplies")
        bill = purchase_service.create_purchase_bill(
            vendor_id=vendor.id, items=[{"product_id": bag.id, "quantity": 1, "cost_price": 1000}]
        )
        bill_id = bill.id

        # Both payers read the ledger before either writes
        barrier = threading.Barrier(2, timeout=10)
        waited = threading.local()
        original = payment_service.bill_paid_total

        def paused(bid):
            paid = original(bid)
            if not getattr(waited, "done", False):
                waited.done = True
                barrier.wait()
            return paid

        monkeypatch.setattr(payment_service, "bill_paid_total", paused)

        outcomes = []

        def pay():
            with file_app.app_context():
                try:
                    payment_service.record_payment(bill_id=bill_id, amount=1000, payment_mode="cash")
                    outcomes.append(("ok", None))
                except Exception as exc:
                    outcomes.append(("error", exc))
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=pay) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert len(outcomes) == 2
        assert [kind for kind, _ in outcomes].count("ok") == 1
        [error] = [exc for kind, exc in outcomes if kind == "error"]
        assert isinstance(error, InvalidInputError)
        assert "Maximum allowed: 0.00" in str(error)

        db.session.expire_all()
        assert db.session.query(PurchasePayment).filter_by(bill_id=bill_id).count() == 1
        bill = db.session.get(PurchaseBill, bill_id)
        assert bill.paid_amount == Decimal("1000.00")
        assert bill.status == "paid"
