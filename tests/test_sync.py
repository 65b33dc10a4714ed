"""Tests for SyncOrchestrator and the sync state machine."""

import threading
import time
from datetime import date
from decimal import Decimal

import pytest

from familyledger.database.factories import create_sqlite_database
from familyledger.domain.entities import AccountStatus, SyncableType, SyncStatus
from familyledger.domain.errors import (
    ConcurrentSyncConflict,
    InvalidTransition,
    NotFoundError,
    ProviderError,
    SyncFailed,
    ValidationError,
)
from familyledger.domain.events import SyncFinished
from familyledger.domain.providers import ProviderTransaction
from familyledger.domain.sync import SyncEvent, SyncOrchestrator, transition
from familyledger.utils.locks import CancellationToken


def JAN(day: int) -> date:
    return date(2024, 1, day)


def _txn(external_id, day, amount, name=None):
    return ProviderTransaction(external_id=external_id, date=JAN(day), amount=Decimal(str(amount)), name=name)


class ListProvider:
    """Returns canned transactions per account ID; optionally fails for some accounts."""

    def __init__(self, transactions=None, failing=()):
        self.transactions = transactions or {}
        self.failing = set(failing)
        self.calls = 0

    def fetch_transactions(self, account, start_date, end_date):
        self.calls += 1
        if account.id in self.failing:
            raise ProviderError("bank rejected credentials", retryable=False)
        return [
            t
            for t in self.transactions.get(account.id, [])
            if (start_date is None or t.date >= start_date) and t.date <= end_date
        ]


class TestTransitions:
    def test_allowed_transitions(self):
        assert transition(SyncStatus.PENDING, SyncEvent.START) is SyncStatus.RUNNING
        assert transition(SyncStatus.RUNNING, SyncEvent.COMPLETE) is SyncStatus.COMPLETED
        assert transition(SyncStatus.RUNNING, SyncEvent.FAIL) is SyncStatus.FAILED

    @pytest.mark.parametrize(
        "state,event",
        [
            (SyncStatus.PENDING, SyncEvent.COMPLETE),
            (SyncStatus.PENDING, SyncEvent.FAIL),
            (SyncStatus.RUNNING, SyncEvent.START),
            (SyncStatus.COMPLETED, SyncEvent.START),
            (SyncStatus.FAILED, SyncEvent.COMPLETE),
        ],
    )
    def test_invalid_transitions(self, state, event):
        with pytest.raises(InvalidTransition):
            transition(state, event)


def test_sync_account_appends_recomputes_and_matches(ledger, family_id, checking, savings):
    provider = ListProvider(
        {
            checking.id: [_txn("c1", 2, 1000, "Salary"), _txn("c2", 5, -50, "To savings")],
            savings.id: [_txn("s1", 6, 50, "From checking")],
        }
    )

    sync = ledger.orchestrator.sync_account(checking.id, provider=provider)
    ledger.orchestrator.sync_account(savings.id, provider=provider)

    assert sync.status is SyncStatus.COMPLETED
    assert sync.started_at is not None and sync.completed_at is not None
    assert [e.external_id for e in ledger.entries.list(checking.id)] == ["c1", "c2"]
    assert ledger.calculator.get_balance(checking.id, JAN(31)).balance == Decimal("950")
    assert len(ledger.matcher.list_transfers(family_id)) == 1


def test_resync_skips_known_transactions(ledger, checking):
    provider = ListProvider({checking.id: [_txn("c1", 2, 10), _txn("c2", 3, 20)]})

    ledger.orchestrator.sync_account(checking.id, provider=provider)
    second = ledger.orchestrator.sync_account(checking.id, provider=provider)

    assert second.status is SyncStatus.COMPLETED
    assert len(ledger.entries.list(checking.id)) == 2
    assert [s.id for s in ledger.orchestrator.list_syncs(SyncableType.ACCOUNT, checking.id)] == [second.id, second.id - 1]


def test_window_limits_fetch(ledger, checking):
    provider = ListProvider({checking.id: [_txn("c1", 2, 10), _txn("c2", 20, 20)]})

    sync = ledger.orchestrator.sync_account(checking.id, (JAN(10), JAN(25)), provider=provider)

    assert (sync.window_start, sync.window_end) == (JAN(10), JAN(25))
    assert [e.external_id for e in ledger.entries.list(checking.id)] == ["c2"]


def test_invalid_provider_rows_are_skipped(ledger, checking):
    provider = ListProvider({checking.id: [_txn("zero", 2, 0), _txn("ok", 3, 5)]})

    sync = ledger.orchestrator.sync_account(checking.id, provider=provider)

    assert sync.status is SyncStatus.COMPLETED
    assert [e.external_id for e in ledger.entries.list(checking.id)] == ["ok"]


def test_concurrent_sync_is_rejected(ledger, checking, temp_db):
    started = threading.Event()
    release = threading.Event()
    results = []

    class BlockingProvider:
        def fetch_transactions(self, account, start_date, end_date):
            started.set()
            release.wait(5)
            return [_txn("c1", 2, 10)]

    def first_sync():
        try:
            results.append(ledger.orchestrator.sync_account(checking.id, provider=BlockingProvider()))
        finally:
            temp_db.disconnect()

    worker = threading.Thread(target=first_sync)
    worker.start()
    assert started.wait(5)
    assert ledger.orchestrator.is_running(SyncableType.ACCOUNT, checking.id)

    with pytest.raises(ConcurrentSyncConflict):
        ledger.orchestrator.sync_account(checking.id, provider=ListProvider())

    release.set()
    worker.join(10)

    assert results[0].status is SyncStatus.COMPLETED
    assert len(ledger.entries.list(checking.id)) == 1
    assert not ledger.orchestrator.is_running(SyncableType.ACCOUNT, checking.id)


def test_family_sync_isolates_failures(ledger, family_id, checking, savings):
    provider = ListProvider({checking.id: [_txn("c1", 2, 10)]}, failing={savings.id})

    with pytest.raises(SyncFailed) as excinfo:
        ledger.orchestrator.sync_family(family_id, provider=provider)

    assert list(excinfo.value.failures) == [f"account:{savings.id}"]
    assert "credentials" in excinfo.value.failures[f"account:{savings.id}"]
    assert len(ledger.entries.list(checking.id)) == 1
    assert ledger.orchestrator.latest_sync(SyncableType.ACCOUNT, checking.id).status is SyncStatus.COMPLETED
    failed = ledger.orchestrator.latest_sync(SyncableType.ACCOUNT, savings.id)
    assert failed.status is SyncStatus.FAILED
    assert ledger.orchestrator.latest_sync(SyncableType.FAMILY, family_id).status is SyncStatus.FAILED


def test_family_sync_completes(ledger, family_id, checking, savings):
    provider = ListProvider({checking.id: [_txn("c1", 2, 10)], savings.id: [_txn("s1", 2, 5)]})

    sync = ledger.orchestrator.sync_family(family_id, provider=provider)

    assert sync.status is SyncStatus.COMPLETED
    assert sync.syncable_type is SyncableType.FAMILY


def test_family_sync_skips_disabled_accounts(ledger, family_id, checking, savings):
    ledger.accounts.set_status(savings.id, AccountStatus.DISABLED)
    provider = ListProvider({checking.id: [_txn("c1", 2, 10)]})

    ledger.orchestrator.sync_family(family_id, provider=provider)

    assert provider.calls == 1
    assert ledger.orchestrator.latest_sync(SyncableType.ACCOUNT, savings.id) is None


def test_cancellation_between_steps(ledger, checking):
    token = CancellationToken()

    class CancellingProvider:
        def fetch_transactions(self, account, start_date, end_date):
            token.cancel()
            return [_txn("c1", 2, 10)]

    with pytest.raises(SyncFailed) as excinfo:
        ledger.orchestrator.sync_account(checking.id, provider=CancellingProvider(), cancel=token)

    assert excinfo.value.failures == {f"account:{checking.id}": "cancelled"}
    sync = ledger.orchestrator.latest_sync(SyncableType.ACCOUNT, checking.id)
    assert sync.status is SyncStatus.FAILED
    assert sync.error == "cancelled"
    assert ledger.entries.list(checking.id) == []


def test_cancelled_family_sync(ledger, family_id, checking):
    token = CancellationToken()
    token.cancel()

    with pytest.raises(SyncFailed):
        ledger.orchestrator.sync_family(family_id, provider=ListProvider(), cancel=token)

    sync = ledger.orchestrator.latest_sync(SyncableType.FAMILY, family_id)
    assert sync.status is SyncStatus.FAILED
    assert sync.error == "cancelled"
    assert ledger.orchestrator.latest_sync(SyncableType.ACCOUNT, checking.id) is None


def test_retryable_fetch_failures_are_retried(ledger, checking):
    class FlakyProvider:
        calls = 0

        def fetch_transactions(self, account, start_date, end_date):
            FlakyProvider.calls += 1
            if FlakyProvider.calls == 1:
                raise ProviderError("503 from bank")
            return [_txn("c1", 2, 10)]

    sync = ledger.orchestrator.sync_account(checking.id, provider=FlakyProvider())

    assert sync.status is SyncStatus.COMPLETED
    assert FlakyProvider.calls == 2


def test_provider_timeout_fails_sync(ledger, temp_db, checking):
    class SlowProvider:
        def fetch_transactions(self, account, start_date, end_date):
            time.sleep(0.5)
            return []

    orchestrator = SyncOrchestrator(
        temp_db,
        ledger.entries,
        ledger.calculator,
        ledger.matcher,
        timeout=0.05,
        retry_attempts=2,
        retry_backoff=0,
        retry_max_wait=0,
    )

    with pytest.raises(SyncFailed, match="timed out"):
        orchestrator.sync_account(checking.id, provider=SlowProvider())
    assert orchestrator.latest_sync(SyncableType.ACCOUNT, checking.id).status is SyncStatus.FAILED


def test_failed_sync_leaves_balances_intact(ledger, checking, add_txn):
    add_txn(checking, JAN(1), 100)
    ledger.calculator.recompute(checking.id, (JAN(1), JAN(31)))
    before = ledger.calculator.list_balances(checking.id)

    with pytest.raises(SyncFailed):
        ledger.orchestrator.sync_account(checking.id, provider=ListProvider(failing={checking.id}))

    assert ledger.calculator.list_balances(checking.id) == before


def test_failed_refresh_is_retried_by_next_sync(ledger, checking):
    euro = ProviderTransaction(external_id="e1", date=JAN(2), amount=Decimal("-20"), currency="EUR")
    provider = ListProvider({checking.id: [euro]})

    with pytest.raises(SyncFailed, match="EUR"):
        ledger.orchestrator.sync_account(checking.id, provider=provider)
    failed = ledger.orchestrator.latest_sync(SyncableType.ACCOUNT, checking.id)
    assert (failed.pending_from, failed.pending_to) == (JAN(2), JAN(2))
    assert ledger.calculator.list_balances(checking.id) == []

    # Still carried when the next run fails before appending anything
    with pytest.raises(SyncFailed):
        ledger.orchestrator.sync_account(checking.id, provider=ListProvider(failing={checking.id}))
    assert ledger.orchestrator.latest_sync(SyncableType.ACCOUNT, checking.id).pending_from == JAN(2)

    ledger.normalizer.set_rate("EUR", "USD", JAN(2), Decimal("1.10"))
    sync = ledger.orchestrator.sync_account(checking.id, provider=provider)

    assert sync.status is SyncStatus.COMPLETED
    assert len(ledger.entries.list(checking.id)) == 1
    assert ledger.calculator.get_balance(checking.id, JAN(31)).balance == Decimal("-22.00")

    after = ledger.orchestrator.sync_account(checking.id, provider=provider)
    assert after.pending_from is None


def test_sync_claimed_by_another_process_is_rejected(ledger, checking, temp_db):
    other = create_sqlite_database(database_path=temp_db.database_path)
    other.connect()
    try:
        other.create_sync(SyncableType.ACCOUNT, checking.id)

        with pytest.raises(ConcurrentSyncConflict):
            ledger.orchestrator.sync_account(checking.id, provider=ListProvider())

        assert not ledger.orchestrator.is_running(SyncableType.ACCOUNT, checking.id)
        assert len(ledger.orchestrator.list_syncs(SyncableType.ACCOUNT, checking.id)) == 1
    finally:
        other.disconnect()
        other.session_factory.get_bind().dispose()


def test_stale_claim_is_expired(ledger, checking, temp_db):
    stale_id = temp_db.create_sync(SyncableType.ACCOUNT, checking.id)
    orchestrator = SyncOrchestrator(temp_db, ledger.entries, ledger.calculator, ledger.matcher, stale_after=0)

    sync = orchestrator.sync_account(checking.id, provider=ListProvider())

    assert sync.status is SyncStatus.COMPLETED
    stale = temp_db.get_sync(stale_id)
    assert stale.status is SyncStatus.FAILED
    assert stale.error.startswith("abandoned")


def test_sync_finished_event(ledger, checking):
    seen = []
    ledger.bus.subscribe(SyncFinished, seen.append)

    ledger.orchestrator.sync_account(checking.id, provider=ListProvider())

    assert len(seen) == 1
    assert seen[0].sync.status is SyncStatus.COMPLETED


def test_sync_many_runs_units_independently(ledger, checking, savings):
    provider = ListProvider({checking.id: [_txn("c1", 2, 10)]}, failing={savings.id})
    units = [(SyncableType.ACCOUNT, checking.id), (SyncableType.ACCOUNT, savings.id), (SyncableType.ACCOUNT, 999)]

    outcomes = ledger.orchestrator.sync_many(units, max_workers=2, provider=provider)

    assert outcomes[units[0]].status is SyncStatus.COMPLETED
    assert isinstance(outcomes[units[1]], SyncFailed)
    assert isinstance(outcomes[units[2]], NotFoundError)


def test_missing_provider(ledger, checking):
    with pytest.raises(ValidationError):
        ledger.orchestrator.sync_account(checking.id)


def test_unknown_units(ledger):
    with pytest.raises(NotFoundError):
        ledger.orchestrator.sync_account(999, provider=ListProvider())
    with pytest.raises(NotFoundError):
        ledger.orchestrator.sync_family(999, provider=ListProvider())
