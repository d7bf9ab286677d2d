"""Decimal helpers for currency amounts."""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")


def to_money(value: Decimal | int | str) -> Decimal:
    """Quantize a value to two fractional digits (half-up)."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_minor_units(value: Decimal) -> int:
    """Convert a currency amount to integer cents."""
    return int((to_money(value) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def format_money(value: Decimal) -> str:
    """Render an amount with exactly two fractional digits."""
    return f"{to_money(value):.2f}"
