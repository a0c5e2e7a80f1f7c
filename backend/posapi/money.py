"""
Money helpers.

Amounts are stored as integer cents and handled in Python as Decimal
quantized to 2 places (ROUND_HALF_UP). Floats never take part in arithmetic;
they only appear at the JSON boundary.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    """
    Convert a wire/DB value to Decimal without binary float artifacts.

    Raises ValueError for booleans, NaN/Infinity, and unparseable input.
    """
    if isinstance(value, bool) or value is None:
        raise ValueError("amount must be a number")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        # repr() round-trips the shortest decimal, e.g. 0.1 -> "0.1"
        result = Decimal(repr(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise ValueError("amount must be a number")
    else:
        raise ValueError("amount must be a number")

    if not result.is_finite():
        raise ValueError("amount must be a finite number")
    return result


def quantize(value: Decimal) -> Decimal:
    """Round to cents. Raises ValueError when the amount is too large to represent."""
    try:
        return value.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError("amount is out of range")


def to_cents(value) -> int:
    return int(quantize(to_decimal(value)) * 100)


def from_cents(cents: int) -> Decimal:
    return quantize(Decimal(cents) / 100)


def cents_to_number(cents: int | None) -> float | None:
    """JSON-number rendering of a stored amount."""
    if cents is None:
        return None
    return float(from_cents(cents))
