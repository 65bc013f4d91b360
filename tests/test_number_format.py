"""
Tests for NumberFormatService.

Covers decimal/grouping inference, symbol placement, integer-only fallback,
failure signalling and rendering.
"""
from __future__ import annotations

from decimal import Decimal

import pytest

from ledger_index.models import NumberFormat
from ledger_index.services.number_format import NumberFormatService


@pytest.fixture
def svc():
    return NumberFormatService()


# ─────────────────────────────────────────────────────────────────────────────
# Number layout
# ─────────────────────────────────────────────────────────────────────────────


class TestInferWithSymbol:
    def test_space_grouping_comma_decimal(self, svc):
        fmt = svc.infer("1 000,00", "EUR")
        assert fmt.format == NumberFormat(",", " ", 2, True)

    def test_comma_grouping_period_decimal(self, svc):
        fmt = svc.infer("1,000.00", "USD")
        assert fmt.format == NumberFormat(".", ",", 2, True)

    def test_symbol_found_before(self, svc):
        fmt = svc.infer("€1.000,00", "€")
        assert fmt.symbol_before is True
        assert fmt.symbol_spacing is False
        assert fmt.format == NumberFormat(",", ".", 2, True)

    def test_symbol_found_after_with_space(self, svc):
        fmt = svc.infer("1.000,00 EUR", "EUR")
        assert fmt.symbol_before is False
        assert fmt.symbol_spacing is True

    def test_absent_code_assumed_after(self, svc):
        fmt = svc.infer("1 000,00", "EUR")
        assert fmt.symbol == "EUR"
        assert fmt.symbol_before is False

    def test_absent_currency_sign_assumed_before(self, svc):
        fmt = svc.infer("1,000.00", "$")
        assert fmt.symbol_before is True
        assert fmt.symbol_spacing is False

    def test_blank_symbol_signals_failure(self, svc):
        assert svc.infer("1.00", "  ") is None


class TestInferNumberFormat:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("1.5", NumberFormat(".", "", 1, False)),
            ("12,3456", NumberFormat(",", "", 4, False)),
            ("1 000", NumberFormat(",", " ", 0, True)),
            ("1.000.000", NumberFormat(",", ".", 0, True)),
            ("1,000,000", NumberFormat(".", ",", 0, True)),
            ("1000", NumberFormat(".", "", 0, False)),
            ("1'000.50", NumberFormat(".", "'", 2, True)),
            (".50", NumberFormat(".", "", 2, False)),
            ("-1,234.5", NumberFormat(".", ",", 1, True)),
            ("0.00000001", NumberFormat(".", "", 8, False)),
            ("1,234.56789", NumberFormat(".", ",", 5, True)),
            ("1.234,567890", NumberFormat(",", ".", 6, True)),
        ],
    )
    def test_layouts(self, svc, text, expected):
        assert svc.infer_number_format(text) == expected

    def test_non_breaking_space_grouping(self, svc):
        fmt = svc.infer_number_format("1\u00a0000,00")
        assert fmt.group_separator == " "
        assert fmt.decimal_mark == ","

    @pytest.mark.parametrize("text", ["", "abc", "1x2"])
    def test_failure_is_none(self, svc, text):
        assert svc.infer_number_format(text) is None


# ─────────────────────────────────────────────────────────────────────────────
# Templates
# ─────────────────────────────────────────────────────────────────────────────


class TestParseTemplate:
    def test_trailing_code(self, svc):
        fmt = svc.parse_template("1 000,00 EUR")
        assert fmt.symbol == "EUR"
        assert fmt.symbol_before is False
        assert fmt.symbol_spacing is True
        assert fmt.format == NumberFormat(",", " ", 2, True)
        assert fmt.template == "1 000,00 EUR"

    def test_leading_currency_sign(self, svc):
        fmt = svc.parse_template("$1,000.00")
        assert fmt.symbol == "$"
        assert fmt.symbol_before is True
        assert fmt.symbol_spacing is False
        assert fmt.format == NumberFormat(".", ",", 2, True)

    def test_leading_code_with_space(self, svc):
        fmt = svc.parse_template("EUR 1.234,56")
        assert fmt.symbol == "EUR"
        assert fmt.symbol_before is True
        assert fmt.symbol_spacing is True
        assert fmt.format == NumberFormat(",", ".", 2, True)

    def test_negative_template(self, svc):
        fmt = svc.parse_template("-$1,000.00")
        assert fmt.symbol == "$"
        assert fmt.format == NumberFormat(".", ",", 2, True)

    def test_quoted_symbol_with_digits(self, svc):
        fmt = svc.parse_template('"AAPL 2030" 10.00')
        assert fmt.symbol == "AAPL 2030"
        assert fmt.symbol_before is True
        assert fmt.symbol_spacing is True
        assert fmt.format == NumberFormat(".", "", 2, False)

    def test_code_with_digits_after(self, svc):
        fmt = svc.parse_template("100 AAPL2")
        assert fmt.symbol == "AAPL2"
        assert fmt.symbol_spacing is True
        assert fmt.format.decimal_places == 0

    def test_surrounding_whitespace(self, svc):
        fmt = svc.parse_template("   1.000,00 EUR  ")
        assert fmt.symbol == "EUR"
        assert fmt.symbol_spacing is True

    @pytest.mark.parametrize("template", ["", "EUR", "1000", "$ 1,000.00 USD"])
    def test_unreadable_template_is_none(self, svc, template):
        assert svc.parse_template(template) is None

    def test_infer_without_symbol_parses_template(self, svc):
        assert svc.infer("$1,000.00") == svc.parse_template("$1,000.00")


# ─────────────────────────────────────────────────────────────────────────────
# Rendering
# ─────────────────────────────────────────────────────────────────────────────


class TestRender:
    def test_grouped_after(self, svc):
        fmt = svc.parse_template("1 000,00 EUR")
        assert svc.render(Decimal("1234567.891"), fmt) == "1 234 567,89 EUR"

    def test_negative_before(self, svc):
        fmt = svc.parse_template("$1,000.00")
        assert svc.render(Decimal("-5"), fmt) == "-$5.00"

    def test_no_decimals(self, svc):
        fmt = svc.parse_template("1000 JPY")
        assert svc.render(Decimal("1234.6"), fmt) == "1235 JPY"

    def test_quoted_symbol_rendered_with_quotes(self, svc):
        fmt = svc.parse_template('"AAPL 2030" 10.00')
        assert svc.render(Decimal("3"), fmt) == '"AAPL 2030" 3.00'

    def test_long_fraction_template(self, svc):
        fmt = svc.parse_template("0.00000001 BTC")
        assert fmt.format == NumberFormat(".", "", 8, False)
        assert svc.render(Decimal("0.5"), fmt) == "0.50000000 BTC"
