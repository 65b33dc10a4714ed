"""Tests for amount parsing."""

from decimal import Decimal

import pytest

from familyledger.utils.amount_parser import parse_amount, parse_money


@pytest.mark.parametrize(
    "text,expected",
    [
        ("123.45", Decimal("123.45")),
        ("$123.45", Decimal("123.45")),
        ("-$123.45", Decimal("-123.45")),
        ("1,234.56", Decimal("1234.56")),
        ("(82.45)", Decimal("-82.45")),
        ("  €7 ", Decimal("7")),
    ],
)
def test_parse_amount(text, expected):
    assert parse_amount(text) == expected


@pytest.mark.parametrize("text", ["", "   ", "abc", "12.3.4", "inf", "NaN"])
def test_parse_amount_rejects(text):
    with pytest.raises(ValueError):
        parse_amount(text)


def test_parse_money_with_code():
    assert parse_money("100.50 eur") == (Decimal("100.50"), "EUR")
    assert parse_money("-2,000JPY") == (Decimal("-2000"), "JPY")


def test_parse_money_without_code():
    assert parse_money("42") == (Decimal("42"), None)


def test_parse_money_code_only():
    with pytest.raises(ValueError):
        parse_money("EUR")
