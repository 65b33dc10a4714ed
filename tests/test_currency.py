"""Tests for currency codes and rounding."""

from decimal import Decimal

import pytest

from familyledger.domain.currency import is_valid_currency, minor_unit, normalize_currency, quantize
from familyledger.domain.errors import ValidationError


def test_valid_codes():
    assert is_valid_currency("USD")
    assert is_valid_currency("JPY")
    assert not is_valid_currency("usd")
    assert not is_valid_currency("XXX")
    assert not is_valid_currency(None)


def test_normalize_currency_uppercases():
    assert normalize_currency(" eur ") == "EUR"


def test_normalize_currency_rejects_unknown():
    with pytest.raises(ValidationError, match="Unknown currency code"):
        normalize_currency("ABC")


def test_minor_units():
    assert minor_unit("USD") == Decimal("0.01")
    assert minor_unit("JPY") == Decimal("1")
    assert minor_unit("KWD") == Decimal("0.001")


def test_quantize_rounds_half_up():
    assert quantize(Decimal("1.005"), "USD") == Decimal("1.01")
    assert quantize(Decimal("1.004"), "USD") == Decimal("1.00")
    assert quantize(Decimal("150.5"), "JPY") == Decimal("151")
