# Overview: Service-layer operations for pricing; markup rules applied to product cost prices.

"""
Pricing Service

A markup rule derives a sale price from a cost basis:

- percentage: cost + cost * value / 100
- fixed:      cost + value

Every result is quantized to 2 places (see money.py). A rule that produces
a negative price is rejected rather than clamped.

The same rule drives the three catalogue channel prices (wholesale, reseller,
retail) and the reseller storefront markup (see storefront_service.py).
"""

import logging
from decimal import Decimal

from sqlalchemy import bindparam, update

from ..extensions import db
from ..errors import InvalidInputError, NotFoundError
from ..models import Product
from ..models.catalog import PRICE_FIELDS
from ..models.partners import MARKUP_FIXED, MARKUP_PERCENTAGE
from ..money import ZERO, quantize, to_decimal
from .concurrency import commit_or_fail, lock_for_update, run_with_retry


logger = logging.getLogger(__name__)

MARKUP_TYPES = (MARKUP_PERCENTAGE, MARKUP_FIXED)

HUNDRED = Decimal(100)


def validate_markup(markup_type, markup_value) -> Decimal:
    """Validate a markup rule and return its value as Decimal."""
    if markup_type not in MARKUP_TYPES:
        raise InvalidInputError(
            f"Invalid markup type. Must be one of: {', '.join(MARKUP_TYPES)}"
        )
    try:
        return to_decimal(markup_value, field="markup_value")
    except ValueError as e:
        raise InvalidInputError(str(e))


def validate_price_field(price_field) -> str:
    if price_field not in PRICE_FIELDS:
        raise InvalidInputError(f"Invalid price type. Must be one of: {', '.join(PRICE_FIELDS)}")
    return price_field


def compute_price(cost_price, markup_type: str, markup_value) -> Decimal:
    """
    Apply a markup rule to a cost price.

    >>> compute_price(100, "percentage", 20)
    Decimal('120.00')

    Raises:
        InvalidInputError: Unknown markup type, non-numeric input, or a
            negative resulting price
    """
    value = validate_markup(markup_type, markup_value)
    try:
        cost = to_decimal(cost_price, field="cost_price")
    except ValueError as e:
        raise InvalidInputError(str(e))

    if markup_type == MARKUP_PERCENTAGE:
        price = cost + cost * value / HUNDRED
    else:
        price = cost + value

    price = quantize(price)
    if price < ZERO:
        raise InvalidInputError(f"Markup produces a negative price ({price})")
    return price


def apply_price(
    *,
    product_id: int,
    markup_type: str,
    markup_value,
    price_field: str = "wholesale_price",
) -> Product:
    """
    Recompute one channel price of a product from its cost price.

    Raises:
        NotFoundError: Product does not exist
        InvalidInputError: Bad markup rule or price field
    """
    validate_price_field(price_field)
    validate_markup(markup_type, markup_value)

    def _op():
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if not product:
            raise NotFoundError("Product not found")

        setattr(product, price_field, compute_price(product.cost_price, markup_type, markup_value))
        commit_or_fail("Failed to update price")
        return product

    return run_with_retry(_op)


def bulk_apply_price(
    *,
    markup_type: str,
    markup_value,
    price_field: str = "wholesale_price",
) -> dict:
    """
    Apply one markup rule to every product's cost price.

    All rows are written in a single transaction: a failure on any product
    leaves every price unchanged, and the error names the product that
    blocked the run. Zero cost prices are not special-cased.

    Returns:
        {"updated_count": int, "markup_type": str, "markup_value": str, "price_field": str}
    """
    validate_price_field(price_field)
    value = validate_markup(markup_type, markup_value)

    def _op():
        rows = db.session.query(Product.id, Product.sku, Product.cost_price).all()
        params = []
        for product_id, sku, cost in rows:
            try:
                price = compute_price(cost, markup_type, value)
            except InvalidInputError as e:
                raise InvalidInputError(f"Product {product_id} ({sku}): {e}") from e
            params.append({"pk": product_id, "price": price})
        if params:
            column = getattr(Product.__table__.c, price_field)
            stmt = (
                update(Product.__table__)
                .where(Product.__table__.c.id == bindparam("pk"))
                .values({column: bindparam("price")})
            )
            db.session.execute(stmt, params)
        commit_or_fail("Failed to update prices")
        return len(params)

    updated_count = run_with_retry(_op)
    logger.info(
        "Applied %s markup %s to %s for %d products",
        markup_type, value, price_field, updated_count,
    )
    return {
        "updated_count": updated_count,
        "markup_type": markup_type,
        "markup_value": str(value),
        "price_field": price_field,
    }
