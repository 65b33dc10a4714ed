"""Tests for CLI date filter helper."""

from datetime import date

import click
import pytest

from familyledger.cli.date_filters import resolve_cli_date_range
from familyledger.utils.date_parser import get_date_range


def _ctx() -> click.Context:
    return click.Context(click.Command("test"))


def test_rejects_period_with_start_end(capsys):
    with pytest.raises(click.exceptions.Exit) as excinfo:
        resolve_cli_date_range(_ctx(), start_date="2024-01-01", end_date=None, period="this-month")

    assert excinfo.value.exit_code == 1
    assert "cannot be combined" in capsys.readouterr().err


def test_returns_period_range():
    result = resolve_cli_date_range(_ctx(), start_date=None, end_date=None, period="last-month")

    assert result == get_date_range("last-month")


def test_parses_explicit_dates():
    result = resolve_cli_date_range(_ctx(), start_date="2024-01-01", end_date="2024-01-31")

    assert result == (date(2024, 1, 1), date(2024, 1, 31))


def test_open_ended_range():
    assert resolve_cli_date_range(_ctx(), start_date="2024-01-01", end_date=None) == (date(2024, 1, 1), None)


def test_default_range_when_no_dates():
    default = (date(2024, 1, 1), date(2024, 1, 31))

    assert resolve_cli_date_range(_ctx(), start_date=None, end_date=None, default_range=default) == default


def test_invalid_date_exits(capsys):
    with pytest.raises(click.exceptions.Exit) as excinfo:
        resolve_cli_date_range(_ctx(), start_date="garbage", end_date=None)

    assert excinfo.value.exit_code == 1
    assert "Invalid start date" in capsys.readouterr().err


def test_inverted_range_exits(capsys):
    with pytest.raises(click.exceptions.Exit):
        resolve_cli_date_range(_ctx(), start_date="2024-02-01", end_date="2024-01-01")

    assert "must not be after" in capsys.readouterr().err
