"""
Values -- Decimal helpers for settlement arithmetic.

All settled quantities (revenue, instructor payment) are whole units of the
single operating currency, rounded half-up exactly once.  Intermediate
values stay unrounded Decimals.
"""

from decimal import ROUND_HALF_UP, Decimal

ZERO = Decimal("0")
_WHOLE_UNIT = Decimal("1")
_CENT = Decimal("0.01")


def round_currency(value: Decimal) -> Decimal:
    """Round to the nearest whole currency unit, half-up."""
    return value.quantize(_WHOLE_UNIT, rounding=ROUND_HALF_UP)


def is_positive(value: Decimal | None) -> bool:
    """True when value is set and strictly greater than zero."""
    return value is not None and value > ZERO


def round_cents(value: Decimal) -> Decimal:
    """Round to two decimal places, half-up. Used for aggregated report figures."""
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)
