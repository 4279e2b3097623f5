"""Decimal rounding helpers shared by scoring and money math."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

CENTS = Decimal("0.01")


def round_half_up(value: Decimal) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_cents(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def percent(part: Decimal, whole: Decimal) -> int:
    """Whole-number percentage; 0 when the whole is 0."""
    if not whole:
        return 0
    return round_half_up(Decimal(part) * 100 / Decimal(whole))
