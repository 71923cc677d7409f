# Overview: Fixed-point helpers for every price, cost and payment amount.

"""
All money is carried as ``Decimal`` and persisted in ``Numeric(12, 2)`` columns.
Computed amounts are quantized to two places with the rounding mode named by
``Config.MONEY_ROUNDING`` (banker's rounding unless overridden).
"""

from __future__ import annotations

import decimal
from decimal import Decimal, InvalidOperation

from flask import current_app, has_app_context

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

DEFAULT_ROUNDING = decimal.ROUND_HALF_EVEN


def _rounding() -> str:
    if has_app_context():
        return getattr(decimal, current_app.config.get("MONEY_ROUNDING", ""), DEFAULT_ROUNDING)
    return DEFAULT_ROUNDING


def to_decimal(value, *, field: str = "amount") -> Decimal:
    """
    Convert a JSON/ORM value to Decimal without rounding.

    Floats go through ``str`` so 0.1 stays 0.1. Booleans, NaN and infinities
    are rejected with ValueError.
    """
    if value is None:
        raise ValueError(f"{field} is required")
    if isinstance(value, bool):
        raise ValueError(f"{field} must be a number")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise ValueError(f"{field} must be a number")
    else:
        raise ValueError(f"{field} must be a number")
    if not result.is_finite():
        raise ValueError(f"{field} must be a finite number")
    return result


def quantize(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=_rounding())


def to_money(value, *, field: str = "amount") -> Decimal:
    return quantize(to_decimal(value, field=field))


def money_or_zero(value) -> Decimal:
    """Nullable column value -> Decimal, treating None as zero."""
    if value is None:
        return ZERO
    return to_decimal(value)


def format_money(value) -> str | None:
    if value is None:
        return None
    return f"{quantize(to_decimal(value)):.2f}"
