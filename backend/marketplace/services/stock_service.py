# Overview: Service-layer operations for stock; rebuilds product quantities and cost basis from purchase bills.

"""
Stock Service

Product.stock_quantity and Product.cost_price are derived data. The source
of truth is the set of purchase items on bills whose status is not cancelled.

RECONCILIATION (reconcile_stock):
- quantity(p) = sum of item.quantity over contributing items of p
- cost(p)     = cost of the LAST contributing item of p, where items are
                visited by bill (created_at, id) then item id. The item's
                final_cost_price wins when set (non-zero), else cost_price.
- status(p)   = in_stock iff quantity(p) > 0
- products with no contributing items end at 0 / out_of_stock

The whole recompute reads with one query and writes in one transaction,
under a process-wide lock, so it is idempotent and never exposes a
half-reset catalogue.

WEIGHTED AVERAGE (recalculate_average_costs):
- cost(p) = sum(quantity * unit cost) / sum(quantity) over contributing items
- used after a purchase bill is created, and on demand from the admin
"""

import logging
from decimal import Decimal

from sqlalchemy import bindparam, func, select, update

from ..extensions import db
from ..models import Product, PurchaseBill, PurchaseItem
from ..models.catalog import PRODUCT_STATUS_IN_STOCK, PRODUCT_STATUS_OUT_OF_STOCK
from ..models.purchasing import BILL_STATUS_CANCELLED
from ..money import ZERO, CENT, format_money, quantize, to_decimal
from .concurrency import commit_or_fail, exclusive, run_with_retry


logger = logging.getLogger(__name__)

STOCK_SYNC_LOCK = "stock-sync"


def stock_status(quantity: int) -> str:
    return PRODUCT_STATUS_IN_STOCK if quantity > 0 else PRODUCT_STATUS_OUT_OF_STOCK


def item_unit_cost(cost_price, final_cost_price) -> Decimal:
    """Unit cost of a purchase line: final cost when set and non-zero, else base cost."""
    if final_cost_price:
        return to_decimal(final_cost_price)
    return to_decimal(cost_price) if cost_price is not None else ZERO


def _contributing_items_query():
    return (
        db.session.query(
            PurchaseItem.product_id,
            PurchaseItem.quantity,
            PurchaseItem.cost_price,
            PurchaseItem.final_cost_price,
        )
        .join(PurchaseBill, PurchaseItem.bill_id == PurchaseBill.id)
        .filter(PurchaseBill.status != BILL_STATUS_CANCELLED)
    )


def collect_stock(rows) -> dict[int, dict]:
    """
    Fold ordered (product_id, quantity, cost_price, final_cost_price) rows
    into {product_id: {"quantity": int, "cost_price": Decimal}}.
    """
    stock: dict[int, dict] = {}
    for product_id, quantity, cost_price, final_cost_price in rows:
        entry = stock.setdefault(product_id, {"quantity": 0, "cost_price": ZERO})
        entry["quantity"] += quantity
        # Last write wins, not an average
        entry["cost_price"] = item_unit_cost(cost_price, final_cost_price)
    return stock


def reconcile_stock() -> dict:
    """
    Recompute stock quantity, cost price and status for every product.

    Returns:
        {
            "updated_product_count": products with at least one contributing item,
            "contributing_bill_count": non-cancelled bills,
            "details": {product_id: {"quantity": int, "cost_price": str}},
        }

    Raises:
        StorageFailureError: Read or write failed; nothing is applied
    """
    with exclusive(STOCK_SYNC_LOCK):
        result = run_with_retry(_reconcile_stock_locked)

    logger.info(
        "Synced stock for %d products from %d bills",
        result["updated_product_count"], result["contributing_bill_count"],
    )
    return result


def _reconcile_stock_locked() -> dict:
    rows = (
        _contributing_items_query()
        .order_by(PurchaseBill.created_at, PurchaseBill.id, PurchaseItem.id)
        .all()
    )
    stock = collect_stock(rows)

    bill_count = (
        db.session.query(func.count(PurchaseBill.id))
        .filter(PurchaseBill.status != BILL_STATUS_CANCELLED)
        .scalar()
    )

    products = Product.__table__
    contributing_ids = (
        select(PurchaseItem.product_id)
        .join(PurchaseBill, PurchaseItem.bill_id == PurchaseBill.id)
        .where(PurchaseBill.status != BILL_STATUS_CANCELLED)
    )

    # Products nothing contributes to drop to zero; the rest are overwritten below
    db.session.execute(
        update(products)
        .where(products.c.id.not_in(contributing_ids))
        .values(stock_quantity=0, status=PRODUCT_STATUS_OUT_OF_STOCK)
    )

    if stock:
        db.session.execute(
            update(products)
            .where(products.c.id == bindparam("pk"))
            .values(
                stock_quantity=bindparam("quantity"),
                cost_price=bindparam("cost"),
                status=bindparam("new_status"),
            ),
            [
                {
                    "pk": product_id,
                    "quantity": entry["quantity"],
                    "cost": quantize(entry["cost_price"]),
                    "new_status": stock_status(entry["quantity"]),
                }
                for product_id, entry in stock.items()
            ],
        )

    commit_or_fail("Failed to sync stock")

    return {
        "updated_product_count": len(stock),
        "contributing_bill_count": bill_count,
        "details": {
            str(product_id): {
                "quantity": entry["quantity"],
                "cost_price": format_money(entry["cost_price"]),
            }
            for product_id, entry in stock.items()
        },
    }


def _weighted_average(items) -> Decimal:
    total_cost = ZERO
    total_quantity = 0
    for quantity, cost_price, final_cost_price in items:
        total_cost += quantity * item_unit_cost(cost_price, final_cost_price)
        total_quantity += quantity
    if total_quantity <= 0:
        return ZERO
    return quantize(total_cost / total_quantity)


def weighted_average_cost(product_id: int) -> Decimal:
    """Weighted average unit cost of a product over its contributing purchase items."""
    rows = (
        _contributing_items_query()
        .filter(PurchaseItem.product_id == product_id)
        .all()
    )
    return _weighted_average((quantity, cost, final) for _, quantity, cost, final in rows)


def recalculate_average_costs(*, apply: bool = True) -> dict:
    """
    Recompute every product's cost price as a weighted average of its purchases.

    Products whose cost moves by more than one cent are updated when apply is
    True; with apply=False nothing is written and the same report is returned.
    Products without purchase history average to zero.

    Returns:
        {"summary": {...}, "details": [...]}
    """
    def _op():
        rows = _contributing_items_query().order_by(PurchaseItem.id).all()
        by_product: dict[int, list] = {}
        for product_id, quantity, cost, final in rows:
            by_product.setdefault(product_id, []).append((quantity, cost, final))

        details = []
        changed = []
        for product in db.session.query(Product).order_by(Product.id).all():
            purchases = by_product.get(product.id, [])
            old_cost = to_decimal(product.cost_price) if product.cost_price is not None else ZERO
            new_cost = _weighted_average(purchases)
            needs_update = abs(new_cost - old_cost) > CENT
            if needs_update:
                changed.append((product, new_cost))
            details.append({
                "id": product.id,
                "sku": product.sku,
                "name": product.name,
                "old_cost_price": format_money(old_cost),
                "new_cost_price": format_money(new_cost),
                "purchase_count": len(purchases),
                "needs_update": needs_update,
            })

        if apply:
            for product, new_cost in changed:
                product.cost_price = new_cost
            commit_or_fail("Failed to recalculate costs")

        return {
            "summary": {
                "total_products": len(details),
                "products_with_purchase_history": sum(1 for d in details if d["purchase_count"] > 0),
                "products_updated" if apply else "products_that_need_update": len(changed),
            },
            "details": details,
        }

    result = run_with_retry(_op)
    if apply:
        logger.info("Recalculated average cost for %d products", result["summary"]["products_updated"])
    return result
