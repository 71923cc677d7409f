# Overview: Service-layer operations for reseller storefronts; catalogue imports and reseller markups.

"""
Reseller Storefront Service

A reseller's store is the set of ResellerProduct rows pointing at catalogue
products, each with an optional selling-price override, a visibility flag
and a display order. Importing is idempotent per (reseller, product).

BULK MARKUP: the reseller's default markup is stored on the reseller and,
optionally, applied to every imported product:
    selling = retail_price + markup(cost)    where cost = reseller_price or wholesale_price
never below retail_price, rounded to whole units; products whose result
would exceed MRP are skipped.

AUTO-IMPORT: resellers with auto_import_enabled receive every new product
that has a reseller price, priced with their default markup.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import func

from ..extensions import db
from ..errors import InvalidInputError, NotFoundError
from ..models import Product, Reseller, ResellerProduct
from ..models.partners import REGISTRATION_APPROVED
from ..money import ZERO, money_or_zero, to_money
from .concurrency import commit_or_fail, run_with_retry
from .pricing_service import compute_price, validate_markup


logger = logging.getLogger(__name__)

VISIBILITY_FILTERS = ("all", "visible", "hidden")

WHOLE_UNIT = Decimal("1")


def _get_reseller(reseller_id: int) -> Reseller:
    reseller = db.session.get(Reseller, reseller_id)
    if not reseller:
        raise NotFoundError("Reseller not found")
    return reseller


def _optional_price(value, field: str = "selling_price"):
    if value is None or value == "":
        return None
    try:
        price = to_money(value, field=field)
    except ValueError as e:
        raise InvalidInputError(str(e))
    if price < ZERO:
        raise InvalidInputError(f"{field} cannot be negative")
    return price


def import_products(reseller_id: int, product_ids: list, selling_price=None) -> dict:
    """
    Import catalogue products into a reseller's store.

    Already-imported products are reported and left untouched. New rows are
    visible and appended after the current highest display order.

    Returns:
        {"imported": int, "already_imported": int, "results": [{"product_id", "status"}]}
    """
    _get_reseller(reseller_id)
    if not product_ids or not isinstance(product_ids, list):
        raise InvalidInputError("Product IDs are required")
    price = _optional_price(selling_price)

    def _op():
        max_order = (
            db.session.query(func.max(ResellerProduct.display_order))
            .filter(ResellerProduct.reseller_id == reseller_id)
            .scalar()
        )
        display_order = (max_order or 0) + 1
        results = []
        seen = set()

        for product_id in product_ids:
            if product_id in seen:
                continue
            seen.add(product_id)

            if not db.session.get(Product, product_id):
                results.append({"product_id": product_id, "status": "not_found"})
                continue

            existing = db.session.query(ResellerProduct.id).filter_by(
                reseller_id=reseller_id, product_id=product_id
            ).first()
            if existing:
                results.append({"product_id": product_id, "status": "already_imported"})
                continue

            db.session.add(ResellerProduct(
                reseller_id=reseller_id,
                product_id=product_id,
                selling_price=price,
                is_visible=True,
                display_order=display_order,
            ))
            display_order += 1
            results.append({"product_id": product_id, "status": "imported"})

        commit_or_fail("Failed to import products")
        return results

    results = run_with_retry(_op)
    return {
        "imported": sum(1 for r in results if r["status"] == "imported"),
        "already_imported": sum(1 for r in results if r["status"] == "already_imported"),
        "results": results,
    }


def list_imported_products(
    reseller_id: int,
    *,
    visibility: str = "all",
    category_id: int | None = None,
    brand_id: int | None = None,
) -> list[ResellerProduct]:
    if visibility not in VISIBILITY_FILTERS:
        raise InvalidInputError(f"visibility must be one of: {', '.join(VISIBILITY_FILTERS)}")

    query = (
        db.session.query(ResellerProduct)
        .join(Product, ResellerProduct.product_id == Product.id)
        .filter(ResellerProduct.reseller_id == reseller_id)
    )
    if visibility == "visible":
        query = query.filter(ResellerProduct.is_visible.is_(True))
    elif visibility == "hidden":
        query = query.filter(ResellerProduct.is_visible.is_(False))
    if category_id:
        query = query.filter(Product.category_id == category_id)
    if brand_id:
        query = query.filter(Product.brand_id == brand_id)

    return query.order_by(ResellerProduct.display_order, ResellerProduct.id).all()


def update_imported_product(reseller_id: int, reseller_product_id: int, changes: dict) -> ResellerProduct:
    """Update selling_price, is_visible and/or display_order of one imported product."""
    row = db.session.query(ResellerProduct).filter_by(id=reseller_product_id, reseller_id=reseller_id).first()
    if not row:
        raise NotFoundError("Product not found")

    if "selling_price" in changes:
        row.selling_price = _optional_price(changes["selling_price"])
    if "is_visible" in changes:
        if not isinstance(changes["is_visible"], bool):
            raise InvalidInputError("is_visible must be a boolean")
        row.is_visible = changes["is_visible"]
    if "display_order" in changes:
        order = changes["display_order"]
        if isinstance(order, bool) or not isinstance(order, int):
            raise InvalidInputError("display_order must be an integer")
        row.display_order = order

    commit_or_fail("Failed to update product")
    return row


def remove_imported_product(reseller_id: int, reseller_product_id: int) -> None:
    row = db.session.query(ResellerProduct).filter_by(id=reseller_product_id, reseller_id=reseller_id).first()
    if not row:
        raise NotFoundError("Product not found")
    db.session.delete(row)
    commit_or_fail("Failed to delete product")


def reseller_selling_price(product: Product, markup_type: str, markup_value) -> Decimal:
    """
    retail_price plus the markup earned on the reseller's cost, floored at
    retail_price and rounded to whole units.
    """
    cost = money_or_zero(product.reseller_price) or money_or_zero(product.wholesale_price)
    minimum = money_or_zero(product.retail_price)
    markup = compute_price(cost, markup_type, markup_value) - cost
    price = max(minimum + markup, minimum)
    return price.quantize(WHOLE_UNIT, rounding=ROUND_HALF_UP)


def apply_bulk_markup(reseller_id: int, *, markup_type: str, markup_value, apply_to_existing: bool = False) -> dict:
    """
    Store the reseller's default markup and optionally reprice every imported product.

    Returns:
        {"updated_count": int, "skipped_count": int}
    """
    value = validate_markup(markup_type, markup_value)
    if value < ZERO:
        raise InvalidInputError("Markup value cannot be negative")

    def _op():
        reseller = _get_reseller(reseller_id)
        reseller.auto_import_markup_type = markup_type
        reseller.auto_import_markup_value = value

        updated = skipped = 0
        if apply_to_existing:
            rows = db.session.query(ResellerProduct).filter_by(reseller_id=reseller_id).all()
            for row in rows:
                price = reseller_selling_price(row.product, markup_type, value)
                mrp = money_or_zero(row.product.mrp)
                if price > mrp:
                    skipped += 1
                    continue
                row.selling_price = price
                row.markup_type = markup_type
                row.markup_value = value
                updated += 1

        commit_or_fail("Failed to apply markup")
        return updated, skipped

    updated, skipped = run_with_retry(_op)
    logger.info("Reseller %s markup applied: %d updated, %d skipped", reseller_id, updated, skipped)
    return {"updated_count": updated, "skipped_count": skipped}


def set_auto_import(reseller_id: int, enabled: bool) -> Reseller:
    reseller = _get_reseller(reseller_id)
    reseller.auto_import_enabled = bool(enabled)
    commit_or_fail()
    return reseller


def sync_new_product(product: Product) -> int:
    """
    Push a new product to every approved reseller with auto-import enabled.

    Skipped when the product has no reseller price. Returns the number of
    reseller stores touched.
    """
    base_price = money_or_zero(product.reseller_price)
    if base_price <= ZERO:
        return 0

    resellers = (
        db.session.query(Reseller)
        .filter(
            Reseller.auto_import_enabled.is_(True),
            Reseller.registration_status == REGISTRATION_APPROVED,
        )
        .all()
    )
    for reseller in resellers:
        markup_type = reseller.auto_import_markup_type
        markup_value = money_or_zero(reseller.auto_import_markup_value)
        selling_price = compute_price(base_price, markup_type, markup_value)

        row = db.session.query(ResellerProduct).filter_by(
            reseller_id=reseller.id, product_id=product.id
        ).first()
        if row is None:
            max_order = (
                db.session.query(func.max(ResellerProduct.display_order))
                .filter(ResellerProduct.reseller_id == reseller.id)
                .scalar()
            )
            row = ResellerProduct(
                reseller_id=reseller.id,
                product_id=product.id,
                is_visible=True,
                display_order=(max_order or 0) + 1,
                is_auto_imported=True,
            )
            db.session.add(row)
        elif not row.is_auto_imported:
            continue
        row.selling_price = selling_price
        row.markup_type = markup_type
        row.markup_value = markup_value

    commit_or_fail("Auto-import sync failed")
    if resellers:
        logger.info("Auto-import sync completed for product %s (%d resellers)", product.id, len(resellers))
    return len(resellers)


def unlist_product(product_id: int) -> int:
    """
    Drop a catalogue product from every reseller store. The caller commits.

    Returns the number of store rows removed.
    """
    return (
        db.session.query(ResellerProduct)
        .filter(ResellerProduct.product_id == product_id)
        .delete(synchronize_session="fetch")
    )
