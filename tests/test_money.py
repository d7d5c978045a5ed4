"""Tests for price parsing and formatting."""

from decimal import Decimal

import pytest

from orderdesk.money import format_currency, money_to_str, non_negative, parse_price


class TestParsePrice:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("150 EGP", Decimal("150")),
            ("EGP 1,250.50", Decimal("1250.50")),
            ("99.5", Decimal("99.5")),
            (120, Decimal("120")),
            (12.5, Decimal("12.5")),
            (Decimal("7.25"), Decimal("7.25")),
        ],
    )
    def test_parses_numbers_and_display_strings(self, value, expected):
        assert parse_price(value) == expected

    @pytest.mark.parametrize("value", [None, "", "N/A", "EGP", float("nan"), True])
    def test_unparsable_is_zero(self, value):
        assert parse_price(value) == Decimal("0")

    def test_multiple_dots_keeps_leading_number(self):
        assert parse_price("1.5.2") == Decimal("1.5")

    def test_minus_sign_is_stripped(self):
        # Only digits and "." survive, so a sign is display noise
        assert parse_price("-30 EGP") == Decimal("30")

    @pytest.mark.parametrize(
        "value", ["150 EGP", "1.5.2", "abc", "0.75", 42, 1e-7, 2.5e20, Decimal("1E+2")]
    )
    def test_idempotent(self, value):
        once = parse_price(value)
        assert parse_price(str(once)) == once


class TestNonNegative:
    def test_negative_number_floors_to_zero(self):
        assert non_negative(-5) == Decimal("0")

    def test_negative_string_floors_to_zero(self):
        assert non_negative(" -30 EGP") == Decimal("0")

    def test_positive_passes_through(self):
        assert non_negative("75") == Decimal("75")


class TestFormatting:
    def test_money_to_str_avoids_exponent(self):
        assert money_to_str(Decimal("1E+2")) == "100"

    def test_format_currency(self):
        assert format_currency(Decimal("1250")) == "EGP 1,250.00"

    def test_format_currency_parses_strings(self):
        assert format_currency("60 EGP") == "EGP 60.00"
