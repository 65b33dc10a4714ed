"""Shared pytest fixtures for familyledger tests."""

import os
import tempfile
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from familyledger.config import Settings
from familyledger.database.factories import create_sqlite_database
from familyledger.domain.entities import AccountKind, NewEntry, TransactionDetail
from familyledger.domain.providers import StaticRateProvider
from familyledger.ledger import build_ledger

TODAY = date(2024, 1, 31)


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    # Create a temporary file for the database
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    # Create database
    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    # Cleanup
    db.disconnect()
    db.session_factory.get_bind().dispose()
    for suffix in ("", "-wal", "-shm"):
        if os.path.exists(db_path + suffix):
            os.unlink(db_path + suffix)


@pytest.fixture
def settings():
    """Settings with fast retries for tests."""
    return Settings(provider_timeout=2.0, retry_attempts=3, retry_backoff=0, retry_max_wait=0)


@pytest.fixture
def rate_provider():
    """In-memory exchange rate provider."""
    return StaticRateProvider()


@pytest.fixture
def ledger(temp_db, settings, rate_provider):
    """All ledger services on the temporary database with a fixed clock."""
    return build_ledger(temp_db, settings, rate_provider=rate_provider, today=lambda: TODAY)


@pytest.fixture
def family_id(ledger):
    """Create a USD family."""
    return ledger.families.create_family("Smith", "USD")


@pytest.fixture
def checking(ledger, family_id):
    """Create a USD checking account."""
    account_id = ledger.accounts.create_account(family_id, "Checking", "USD", AccountKind.DEPOSITORY)
    return ledger.accounts.get_account(account_id)


@pytest.fixture
def savings(ledger, family_id):
    """Create a USD savings account."""
    account_id = ledger.accounts.create_account(family_id, "Savings", "USD", AccountKind.DEPOSITORY)
    return ledger.accounts.get_account(account_id)


@pytest.fixture
def add_txn(ledger):
    """Append a transaction entry and return its ID."""

    def _add(account, day, amount, currency=None, name=None, external_id=None):
        return ledger.entries.append(
            NewEntry(
                account_id=account.id,
                date=day,
                amount=Decimal(str(amount)),
                currency=currency or account.currency,
                detail=TransactionDetail(name=name),
                external_id=external_id,
            )
        )

    return _add


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()


@pytest.fixture
def fixtures_dir():
    """Return the path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"
