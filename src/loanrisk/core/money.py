"""Decimal helpers shared by every monetary calculation."""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any

from .exceptions import InvalidInputError

CENT = Decimal("0.01")
ZERO = Decimal("0")
ONE = Decimal("1")


def to_decimal(value: Any) -> Decimal:
    """Convert ints, floats and strings to Decimal without binary float noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or value is None:
        raise InvalidInputError(f"Not a monetary value: {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise InvalidInputError(f"Not a monetary value: {value!r}") from exc


def quantize_money(value: Any) -> Decimal:
    """Round half-up to two decimals."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def quantize_rate(value: Any, places: int = 6) -> Decimal:
    """Round a ratio or percentage to a fixed number of places."""
    exponent = Decimal(1).scaleb(-places)
    return to_decimal(value).quantize(exponent, rounding=ROUND_HALF_UP)
