# Overview: Service-layer totals calculation for sales (subtotal, tax, discount, total).

"""
Pricing & Totals

All arithmetic is Decimal, rounded to cents with ROUND_HALF_UP:
- subtotal = sum(unit_price * quantity)
- tax      = subtotal * tax_rate
- total    = subtotal + tax - discount

A negative discount, or one larger than subtotal + tax, is rejected
rather than clamped.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from posapi.money import quantize, to_cents, to_decimal
from .errors import ServiceError

TAX_RATE = Decimal("0.10")


class PricingError(ServiceError):
    """Raised when totals cannot be computed for the given inputs."""
    code = "VALIDATION_ERROR"


@dataclass(frozen=True)
class SaleTotals:
    subtotal: Decimal
    tax: Decimal
    discount: Decimal
    total: Decimal

    def to_cents(self) -> dict[str, int]:
        return {
            "subtotal_cents": to_cents(self.subtotal),
            "tax_cents": to_cents(self.tax),
            "discount_cents": to_cents(self.discount),
            "total_cents": to_cents(self.total),
        }


def compute_totals(
    lines: Iterable[tuple],
    *,
    discount=0,
    tax_rate=TAX_RATE,
) -> SaleTotals:
    """
    Compute sale totals from (unit_price, quantity) pairs.

    Raises PricingError for a negative or oversized discount, for
    negative prices/quantities, and for amounts too large to round to cents.
    """
    try:
        discount_dec = quantize(to_decimal(discount))
        rate = to_decimal(tax_rate)
    except ValueError as exc:
        raise PricingError(str(exc), details={"field": "discount_amount"})

    if discount_dec < 0:
        raise PricingError("Discount cannot be negative", details={"discount": str(discount_dec)})
    if rate < 0:
        raise PricingError("Tax rate cannot be negative", details={"tax_rate": str(rate)})

    subtotal = Decimal("0")
    for unit_price, quantity in lines:
        price = to_decimal(unit_price)
        if price < 0 or quantity < 0:
            raise PricingError(
                "Line price and quantity must be non-negative",
                details={"unit_price": str(price), "quantity": quantity},
            )
        subtotal += price * quantity

    try:
        subtotal = quantize(subtotal)
        tax = quantize(subtotal * rate)
    except ValueError as exc:
        raise PricingError(str(exc), details={"subtotal": str(subtotal)})

    if discount_dec > subtotal + tax:
        raise PricingError(
            "Discount exceeds sale total",
            details={"discount": str(discount_dec), "max_discount": str(subtotal + tax)},
        )

    return SaleTotals(
        subtotal=subtotal,
        tax=tax,
        discount=discount_dec,
        total=subtotal + tax - discount_dec,
    )
