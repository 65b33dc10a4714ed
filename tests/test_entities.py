"""Tests for domain entities."""

from datetime import date, datetime, UTC
from decimal import Decimal

import pytest

from familyledger.domain.entities import (
    Account,
    AccountKind,
    AccountStatus,
    Classification,
    Entry,
    EntryKind,
    NewEntry,
    TradeDetail,
    TransactionDetail,
    ValuationDetail,
    kind_of,
)


def _account(kind: AccountKind) -> Account:
    return Account(
        id=1,
        family_id=1,
        name="Test",
        currency="USD",
        kind=kind,
        status=AccountStatus.ACTIVE,
        opening_balance=Decimal("0"),
        created_at=datetime.now(UTC),
    )


@pytest.mark.parametrize(
    "kind",
    [AccountKind.CREDIT_CARD, AccountKind.LOAN, AccountKind.OTHER_LIABILITY],
)
def test_liability_kinds(kind):
    account = _account(kind)
    assert account.classification is Classification.LIABILITY
    assert account.flows_factor == -1


@pytest.mark.parametrize(
    "kind",
    [AccountKind.DEPOSITORY, AccountKind.INVESTMENT, AccountKind.PROPERTY, AccountKind.CRYPTO],
)
def test_asset_kinds(kind):
    account = _account(kind)
    assert account.classification is Classification.ASSET
    assert account.flows_factor == 1


def test_status_accepts_entries():
    assert AccountStatus.ACTIVE.accepts_entries
    assert AccountStatus.DRAFT.accepts_entries
    assert not AccountStatus.DISABLED.accepts_entries
    assert not AccountStatus.PENDING_DELETION.accepts_entries


def test_kind_of_detail():
    assert kind_of(TransactionDetail(name="Rent")) is EntryKind.TRANSACTION
    assert kind_of(ValuationDetail()) is EntryKind.VALUATION
    assert kind_of(TradeDetail("AAPL", Decimal("1"), Decimal("190"))) is EntryKind.TRADE


def test_kind_of_rejects_unknown_detail():
    with pytest.raises(TypeError):
        kind_of("not a detail")


def test_new_entry_kind_follows_detail():
    entry = NewEntry(1, date(2024, 1, 1), Decimal("10"), "USD", ValuationDetail())
    assert entry.kind is EntryKind.VALUATION


def test_entry_classification_and_compensation():
    now = datetime.now(UTC)
    income = Entry(1, 1, date(2024, 1, 1), Decimal("10"), "USD", TransactionDetail(), now)
    expense = Entry(2, 1, date(2024, 1, 1), Decimal("-10"), "USD", TransactionDetail(), now, voids_entry_id=1)

    assert income.classification == "income"
    assert expense.classification == "expense"
    assert not income.is_compensation
    assert expense.is_compensation


def test_entities_are_immutable():
    entry = NewEntry(1, date(2024, 1, 1), Decimal("10"), "USD", TransactionDetail())
    with pytest.raises(AttributeError):
        entry.amount = Decimal("20")
