"""Money helpers."""

from decimal import ROUND_HALF_UP, Decimal

_CENTS = Decimal("0.01")


def money(value: Decimal) -> Decimal:
    """Round to cents, half up."""
    return value.quantize(_CENTS, rounding=ROUND_HALF_UP)
