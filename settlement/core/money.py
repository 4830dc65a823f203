"""Decimal helpers for rupee amounts and fund units."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any

ZERO = Decimal("0")
HUNDRED = Decimal("100")
PAISE = Decimal("0.01")
UNITS_Q = Decimal("0.00000001")


def to_decimal(value: Any) -> Decimal:
    """Coerce ``None``/int/float/str to Decimal; ``None`` counts as zero."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def q_money(value: Any) -> Decimal:
    return to_decimal(value).quantize(PAISE, rounding=ROUND_HALF_UP)


def q_units(value: Any) -> Decimal:
    return to_decimal(value).quantize(UNITS_Q, rounding=ROUND_HALF_UP)


def floor_zero(value: Decimal) -> Decimal:
    return value if value > ZERO else ZERO


def percent_of(amount: Any, percent: Any) -> Decimal:
    """``amount × percent / 100`` rounded to paise."""
    return q_money(to_decimal(amount) * to_decimal(percent) / HUNDRED)
