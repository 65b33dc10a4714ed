"""Tests for settings loaded from the environment."""

from decimal import Decimal

import pytest

from familyledger.config import Settings


def test_defaults():
    settings = Settings.from_env({})

    assert settings.database_path is None
    assert settings.transfer_window_days == 3
    assert settings.transfer_epsilon == Decimal("0.01")
    assert settings.retry_attempts == 3
    assert settings.log_level == "WARNING"
    assert settings.sync_stale_after == 21600.0
    assert settings.log_json is False


def test_overrides():
    settings = Settings.from_env(
        {
            "FAMILYLEDGER_DB_PATH": "/tmp/ledger.db",
            "FAMILYLEDGER_TRANSFER_WINDOW_DAYS": "5",
            "FAMILYLEDGER_TRANSFER_EPSILON": "0.5",
            "FAMILYLEDGER_PROVIDER_TIMEOUT": "2.5",
            "FAMILYLEDGER_RETRY_ATTEMPTS": "1",
            "FAMILYLEDGER_LOG_LEVEL": "debug",
            "FAMILYLEDGER_SYNC_STALE_AFTER": "60",
            "FAMILYLEDGER_LOG_JSON": "true",
        }
    )

    assert settings.database_path == "/tmp/ledger.db"
    assert settings.transfer_window_days == 5
    assert settings.transfer_epsilon == Decimal("0.5")
    assert settings.provider_timeout == 2.5
    assert settings.retry_attempts == 1
    assert settings.log_level == "DEBUG"
    assert settings.sync_stale_after == 60.0
    assert settings.log_json is True


def test_empty_values_fall_back_to_defaults():
    assert Settings.from_env({"FAMILYLEDGER_TRANSFER_WINDOW_DAYS": ""}).transfer_window_days == 3


@pytest.mark.parametrize(
    "name,value",
    [
        ("FAMILYLEDGER_TRANSFER_WINDOW_DAYS", "three"),
        ("FAMILYLEDGER_TRANSFER_EPSILON", "a cent"),
        ("FAMILYLEDGER_PROVIDER_TIMEOUT", "soon"),
    ],
)
def test_invalid_values_raise_value_error(name, value):
    with pytest.raises(ValueError):
        Settings.from_env({name: value})


def test_resolve_database_path_prefers_explicit_path(tmp_path):
    path = str(tmp_path / "ledger.db")

    assert Settings(database_path=path).resolve_database_path() == path
