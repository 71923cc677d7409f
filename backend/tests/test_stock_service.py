"""
Stock reconciliation and weighted-average cost tests.

Verifies:
- Stock quantity is the sum over non-cancelled purchase bills
- Cost price is taken from the last contributing purchase line
- Products without contributions are reset to zero / out_of_stock
- Reconciliation is idempotent
- Weighted-average cost preview and apply
"""

from decimal import Decimal

from marketplace.extensions import db
from marketplace.models import Product
from marketplace.services import purchase_service, stock_service
from marketplace.services.stock_service import collect_stock, item_unit_cost


def _product(product_id):
    return db.session.get(Product, product_id)


class TestHelpers:

    def test_item_unit_cost_prefers_final_cost(self):
        assert item_unit_cost(Decimal("100"), Decimal("110")) == Decimal("110")

    def test_item_unit_cost_falls_back_on_zero_final_cost(self):
        assert item_unit_cost(Decimal("100"), Decimal("0")) == Decimal("100")
        assert item_unit_cost(Decimal("100"), None) == Decimal("100")

    def test_collect_stock_sums_and_keeps_last_cost(self):
        rows = [
            (1, 2, Decimal("100"), None),
            (2, 1, Decimal("40"), None),
            (1, 3, Decimal("150"), Decimal("160")),
        ]
        stock = collect_stock(rows)
        assert stock[1] == {"quantity": 5, "cost_price": Decimal("160")}
        assert stock[2] == {"quantity": 1, "cost_price": Decimal("40")}


# =============================================================================
# reconcile_stock
# =============================================================================


class TestReconcileStock:

    def test_quantity_is_sum_of_contributing_items(self, db_session, make_product, make_bill):
        bag = make_product("BAG-1")
        make_bill([(bag, 2, 100)])
        make_bill([(bag, 3, 100)])

        result = stock_service.reconcile_stock()

        product = _product(bag.id)
        assert product.stock_quantity == 5
        assert product.status == "in_stock"
        assert result["updated_product_count"] == 1
        assert result["contributing_bill_count"] == 2
        assert result["details"][str(bag.id)] == {"quantity": 5, "cost_price": "100.00"}

    def test_cost_is_last_write_wins(self, db_session, make_product, make_bill):
        bag = make_product("BAG-1")
        make_bill([(bag, 1, 100)])
        make_bill([(bag, 1, 150)])

        stock_service.reconcile_stock()

        # Not the 125.00 average
        assert _product(bag.id).cost_price == Decimal("150.00")

    def test_final_cost_price_wins_over_cost_price(self, db_session, make_product, make_bill):
        bag = make_product("BAG-1")
        make_bill([(bag, 1, 100, 112.5)])

        stock_service.reconcile_stock()

        assert _product(bag.id).cost_price == Decimal("112.50")

    def test_cancelled_bills_do_not_contribute(self, db_session, make_product, make_bill):
        bag = make_product("BAG-1")
        make_bill([(bag, 2, 100)])
        second = make_bill([(bag, 3, 200)])

        purchase_service.cancel_purchase_bill(second.id, resync_stock=False)
        result = stock_service.reconcile_stock()

        product = _product(bag.id)
        assert product.stock_quantity == 2
        assert product.cost_price == Decimal("100.00")
        assert result["contributing_bill_count"] == 1

    def test_uncontributed_products_reset_to_zero(self, db_session, make_product, make_bill):
        bag = make_product("BAG-1")
        wallet = make_product("WALLET-1")
        make_bill([(bag, 1, 100)])

        # Drifted value with no purchase behind it
        _product(wallet.id).stock_quantity = 7
        _product(wallet.id).status = "in_stock"
        db.session.commit()

        result = stock_service.reconcile_stock()

        wallet = _product(wallet.id)
        assert wallet.stock_quantity == 0
        assert wallet.status == "out_of_stock"
        assert str(wallet.id) not in result["details"]

    def test_all_bills_cancelled_zeroes_product(self, db_session, make_product, make_bill):
        bag = make_product("BAG-1")
        bill = make_bill([(bag, 4, 100)])

        purchase_service.cancel_purchase_bill(bill.id)

        product = _product(bag.id)
        assert product.stock_quantity == 0
        assert product.status == "out_of_stock"

    def test_idempotent(self, db_session, make_product, make_bill):
        bag = make_product("BAG-1")
        belt = make_product("BELT-1")
        make_bill([(bag, 2, 100), (belt, 1, 60)])
        make_bill([(bag, 1, 90)])

        first = stock_service.reconcile_stock()
        second = stock_service.reconcile_stock()

        assert first == second
        assert _product(bag.id).stock_quantity == 3
        assert _product(belt.id).stock_quantity == 1

    def test_empty_catalogue(self, db_session):
        result = stock_service.reconcile_stock()
        assert result == {"updated_product_count": 0, "contributing_bill_count": 0, "details": {}}


# =============================================================================
# Weighted-average cost
# =============================================================================


class TestWeightedAverageCost:

    def test_purchase_bill_sets_weighted_average(self, db_session, make_product, make_bill):
        bag = make_product("BAG-1")
        make_bill([(bag, 2, 100)])
        make_bill([(bag, 2, 200)])

        assert _product(bag.id).cost_price == Decimal("150.00")
        assert stock_service.weighted_average_cost(bag.id) == Decimal("150.00")

    def test_ignores_cancelled_bills(self, db_session, make_product, make_bill):
        bag = make_product("BAG-1")
        make_bill([(bag, 1, 100)])
        bill = make_bill([(bag, 3, 300)])

        purchase_service.cancel_purchase_bill(bill.id, resync_stock=False)

        assert stock_service.weighted_average_cost(bag.id) == Decimal("100.00")

    def test_preview_does_not_write(self, db_session, make_product, make_bill):
        bag = make_product("BAG-1")
        make_bill([(bag, 2, 100)])
        _product(bag.id).cost_price = Decimal("999.00")
        db.session.commit()

        result = stock_service.recalculate_average_costs(apply=False)

        assert result["summary"]["products_that_need_update"] == 1
        row = next(d for d in result["details"] if d["id"] == bag.id)
        assert row["old_cost_price"] == "999.00"
        assert row["new_cost_price"] == "100.00"
        assert row["needs_update"] is True
        assert _product(bag.id).cost_price == Decimal("999.00")

    def test_apply_updates_drifted_costs_only(self, db_session, make_product, make_bill):
        bag = make_product("BAG-1")
        belt = make_product("BELT-1")
        make_bill([(bag, 2, 100), (belt, 1, 50)])
        _product(bag.id).cost_price = Decimal("999.00")
        db.session.commit()

        result = stock_service.recalculate_average_costs(apply=True)

        assert result["summary"]["products_updated"] == 1
        assert result["summary"]["products_with_purchase_history"] == 2
        assert _product(bag.id).cost_price == Decimal("100.00")
        assert _product(belt.id).cost_price == Decimal("50.00")
