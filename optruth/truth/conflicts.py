"""Numeric conflict rule shared by the truth matrix and operational summary."""

from __future__ import annotations

from decimal import Decimal

DEFAULT_TOLERANCE = Decimal("0.10")


def has_conflict(
    a: Decimal | int | float | None,
    b: Decimal | int | float | None,
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> bool:
    """True when both values are present and positive and differ by more than
    ``tolerance`` of the larger one.

    Symmetric in ``a`` and ``b``.
    """
    if a is None or b is None:
        return False
    x = Decimal(str(a))
    y = Decimal(str(b))
    if x <= 0 or y <= 0:
        return False
    return abs(x - y) / max(x, y, Decimal("1")) > tolerance
