"""Unit tests for currency helpers."""

from decimal import Decimal

from src.core.money import format_money, to_minor_units, to_money


class TestToMoney:
    """Tests for to_money."""

    def test_rounds_half_up(self) -> None:
        assert to_money(Decimal("2.345")) == Decimal("2.35")
        assert to_money(Decimal("2.344")) == Decimal("2.34")

    def test_accepts_strings_and_ints(self) -> None:
        assert to_money("10") == Decimal("10.00")
        assert to_money(3) == Decimal("3.00")

    def test_five_percent_discount_ties_round_up(self) -> None:
        """0.50 * 0.05 = 0.025 rounds to 0.03 (half-even would give 0.02)."""
        assert to_money(Decimal("0.50") * Decimal("0.05")) == Decimal("0.03")


class TestMinorUnits:
    """Tests for to_minor_units."""

    def test_converts_to_integer_cents(self) -> None:
        assert to_minor_units(Decimal("47.50")) == 4750
        assert to_minor_units(Decimal("0.01")) == 1

    def test_rounds_before_converting(self) -> None:
        assert to_minor_units(Decimal("19.999")) == 2000


class TestFormatMoney:
    """Tests for format_money."""

    def test_always_two_fractional_digits(self) -> None:
        assert format_money(Decimal("50")) == "50.00"
        assert format_money(Decimal("2.5")) == "2.50"
        assert format_money(Decimal("0")) == "0.00"
