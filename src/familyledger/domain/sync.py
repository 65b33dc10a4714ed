"""Sync orchestrator: ingests provider data and refreshes derived state."""

from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timedelta, UTC
from enum import Enum
from typing import Callable, Iterable, Optional, Union

from familyledger.database.base import Database
from familyledger.domain.balance import BalanceCalculator
from familyledger.domain.entities import (
    Account,
    NewEntry,
    Sync,
    SyncableType,
    SyncStatus,
    TransactionDetail,
)
from familyledger.domain.entry import EntryStore
from familyledger.domain.errors import (
    ConcurrentSyncConflict,
    InvalidEntry,
    InvalidTransition,
    NotFoundError,
    SyncFailed,
    ValidationError,
    account_not_found,
    family_not_found,
)
from familyledger.domain.events import EventBus, SyncFinished
from familyledger.domain.providers import (
    BankDataProvider,
    ProviderTransaction,
    call_with_timeout,
    provider_retrying,
)
from familyledger.domain.transfer import TransferMatcher
from familyledger.logging_config import get_logger
from familyledger.utils.locks import CancellationToken, KeyedLocks

logger = get_logger(__name__)

CANCELLED = "cancelled"
ABANDONED = "abandoned: no progress before the stale timeout"


class SyncEvent(str, Enum):
    START = "start"
    COMPLETE = "complete"
    FAIL = "fail"


TRANSITIONS: dict[tuple[SyncStatus, SyncEvent], SyncStatus] = {
    (SyncStatus.PENDING, SyncEvent.START): SyncStatus.RUNNING,
    (SyncStatus.RUNNING, SyncEvent.COMPLETE): SyncStatus.COMPLETED,
    (SyncStatus.RUNNING, SyncEvent.FAIL): SyncStatus.FAILED,
}


def transition(state: SyncStatus, event: SyncEvent) -> SyncStatus:
    """Next state of a sync, or InvalidTransition if ``event`` is not allowed."""
    try:
        return TRANSITIONS[(state, event)]
    except KeyError:
        raise InvalidTransition(state.value, event.value)


def unit_label(syncable_type: SyncableType, syncable_id: int) -> str:
    return f"{syncable_type.value}:{syncable_id}"


class _Cancelled(Exception):
    pass


def _widen(pending: Optional[tuple[date, date]], start: date, end: date) -> tuple[date, date]:
    if pending is None:
        return start, end
    return min(pending[0], start), max(pending[1], end)


class _Run:
    """Drives one persisted sync record through the state machine."""

    def __init__(self, db: Database, syncable_type: SyncableType, syncable_id: int, window):
        self.db = db
        self.label = unit_label(syncable_type, syncable_id)
        self.window = window
        self.sync_id = db.create_sync(syncable_type, syncable_id, window[0], window[1])
        self.status = SyncStatus.PENDING

    def advance(self, event: SyncEvent, error: Optional[str] = None) -> None:
        self.status = transition(self.status, event)
        now = datetime.now(UTC)
        self.db.update_sync(
            self.sync_id,
            self.status,
            error=error,
            started_at=now if event is SyncEvent.START else None,
            completed_at=now if event is not SyncEvent.START else None,
        )
        logger.info(
            "Sync transition",
            extra={"sync_id": self.sync_id, "unit": self.label, "status": self.status.value},
        )

    def mark_pending(self, pending: tuple[date, date]) -> None:
        self.db.set_sync_pending(self.sync_id, pending[0], pending[1])

    def record(self) -> Sync:
        return self.db.get_sync(self.sync_id)


class SyncOrchestrator:
    """Coordinates ingestion of bank data into the entry store.

    At most one sync runs per unit (account or family) at a time; a request
    for a unit that is already running raises ConcurrentSyncConflict. Threads
    of one process are turned away by an in-memory lock, other processes by
    the database, which holds at most one active sync record per unit.
    """

    def __init__(
        self,
        db: Database,
        entries: EntryStore,
        calculator: BalanceCalculator,
        matcher: TransferMatcher,
        provider: Optional[BankDataProvider] = None,
        bus: Optional[EventBus] = None,
        timeout: float = 10.0,
        retry_attempts: int = 3,
        retry_backoff: float = 1.0,
        retry_max_wait: float = 10.0,
        stale_after: Optional[float] = 6 * 3600,
        today: Callable[[], date] = date.today,
    ):
        """Initialize sync orchestrator.

        Args:
            db: Database instance holding sync records
            entries: Entry store new transactions are appended to
            calculator: Balance calculator run for touched dates
            matcher: Transfer matcher run for the touched window
            provider: Default bank data provider
            bus: Event bus notified when a sync finishes
            timeout: Seconds allowed per provider call
            retry_attempts: Attempts for retryable provider failures
            retry_backoff: Exponential backoff multiplier in seconds
            retry_max_wait: Longest single wait between attempts
            stale_after: Seconds after which another process's unfinished
                sync no longer blocks the unit; None never expires them
            today: Clock used as the default end of the sync window
        """
        self.db = db
        self.entries = entries
        self.calculator = calculator
        self.matcher = matcher
        self.provider = provider
        self.bus = bus or entries.bus
        self.timeout = timeout
        self._retrying = provider_retrying(retry_attempts, retry_backoff, retry_max_wait)
        self.stale_after = stale_after
        self.today = today
        self._running = KeyedLocks()

    def _guard(self, syncable_type: SyncableType, syncable_id: int) -> None:
        if not self._running.try_acquire((syncable_type, syncable_id)):
            logger.warning(
                "Rejected concurrent sync",
                extra={"unit": unit_label(syncable_type, syncable_id)},
            )
            raise ConcurrentSyncConflict(syncable_type.value, syncable_id)

    def _claim(self, syncable_type: SyncableType, syncable_id: int, window) -> _Run:
        """Create the unit's sync record; the database refuses a second active one."""
        if self.stale_after is not None:
            cutoff = datetime.now(UTC) - timedelta(seconds=self.stale_after)
            expired = self.db.expire_syncs(syncable_type, syncable_id, cutoff, ABANDONED)
            if expired:
                logger.warning(
                    "Expired stale syncs",
                    extra={"unit": unit_label(syncable_type, syncable_id), "count": expired},
                )
        try:
            return _Run(self.db, syncable_type, syncable_id, window)
        except ConcurrentSyncConflict:
            logger.warning(
                "Rejected concurrent sync",
                extra={"unit": unit_label(syncable_type, syncable_id), "claimed_elsewhere": True},
            )
            raise

    def _unfinished(self, account_id: int) -> Optional[tuple[date, date]]:
        """Dates a failed previous sync of the account left without a refresh."""
        for sync in self.db.list_syncs(SyncableType.ACCOUNT, account_id):
            if sync.status is SyncStatus.COMPLETED:
                return None
            if sync.status is SyncStatus.FAILED and sync.pending_from is not None:
                return sync.pending_from, sync.pending_to
        return None

    def is_running(self, syncable_type: SyncableType, syncable_id: int) -> bool:
        return self._running.is_held((syncable_type, syncable_id))

    def sync_account(
        self,
        account_id: int,
        window: Optional[tuple[Optional[date], Optional[date]]] = None,
        provider: Optional[BankDataProvider] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> Sync:
        """Fetch, append, recompute and match for one account.

        Args:
            account_id: Account to sync
            window: Inclusive (start, end) passed to the provider. Start
                defaults to everything the provider has, end to today.
            provider: Overrides the default provider for this run
            cancel: Checked between steps

        Returns:
            The completed sync record

        Raises:
            NotFoundError: If the account does not exist
            ConcurrentSyncConflict: If a sync for the account is running
            SyncFailed: If any step failed or the sync was cancelled; the
                failed sync record is persisted first
        """
        account = self.db.get_account(account_id)
        if account is None:
            raise NotFoundError(account_not_found(account_id))
        provider = provider or self.provider
        if provider is None:
            raise ValidationError("No bank data provider configured")

        window = self._window(window)
        self._guard(SyncableType.ACCOUNT, account_id)
        try:
            carried = self._unfinished(account_id)
            run = self._claim(SyncableType.ACCOUNT, account_id, window)
            error = self._run_account(run, account, provider, cancel or CancellationToken(), carried)
        finally:
            self._running.release((SyncableType.ACCOUNT, account_id))

        sync = run.record()
        self.bus.publish(SyncFinished(sync=sync, window_start=run.window[0], window_end=run.window[1]))
        if error is not None:
            raise SyncFailed({run.label: error})
        return sync

    def _window(self, window) -> tuple[Optional[date], date]:
        start, end = window or (None, None)
        end = end or self.today()
        if start is not None and start > end:
            raise ValidationError(f"Sync window start {start.isoformat()} is after end {end.isoformat()}")
        return start, end

    def _run_account(
        self,
        run: _Run,
        account: Account,
        provider: BankDataProvider,
        cancel: CancellationToken,
        carried: Optional[tuple[date, date]] = None,
    ) -> Optional[str]:
        """Run every step; returns the failure message or None on success.

        ``carried`` is the range an earlier failed sync appended entries for
        but did not refresh. It is refreshed together with this run's dates
        and stays recorded on this run until it completes.
        """
        run.advance(SyncEvent.START)
        try:
            pending = carried
            if pending is not None:
                run.mark_pending(pending)
            self._checkpoint(cancel)
            transactions = self._retrying(
                call_with_timeout,
                "bank data fetch",
                self.timeout,
                provider.fetch_transactions,
                account,
                run.window[0],
                run.window[1],
            )
            self._checkpoint(cancel)
            touched = self._ingest(account, transactions)
            if touched:
                pending = _widen(pending, min(touched), max(touched))
                run.mark_pending(pending)
            if pending is not None:
                self._checkpoint(cancel)
                self.calculator.recompute_from(account.id, pending[0])
                self._checkpoint(cancel)
                self.matcher.match(account.family_id, pending)
        except _Cancelled:
            run.advance(SyncEvent.FAIL, error=CANCELLED)
            logger.warning("Sync cancelled", extra={"sync_id": run.sync_id, "unit": run.label})
            return CANCELLED
        except Exception as e:
            run.advance(SyncEvent.FAIL, error=str(e))
            logger.error(
                "Sync failed",
                exc_info=True,
                extra={"sync_id": run.sync_id, "unit": run.label},
            )
            return str(e)

        run.advance(SyncEvent.COMPLETE)
        return None

    @staticmethod
    def _checkpoint(cancel: CancellationToken) -> None:
        if cancel.cancelled:
            raise _Cancelled()

    def _ingest(self, account: Account, transactions: list[ProviderTransaction]) -> list[date]:
        """Append transactions not seen before. Returns the dates that changed."""
        touched = []
        skipped = 0
        for txn in transactions:
            if self.entries.exists(account.id, txn.external_id):
                continue
            try:
                self.entries.append(
                    NewEntry(
                        account_id=account.id,
                        date=txn.date,
                        amount=txn.amount,
                        currency=txn.currency or account.currency,
                        detail=TransactionDetail(name=txn.name, notes=txn.notes),
                        external_id=txn.external_id,
                    )
                )
            except InvalidEntry as e:
                skipped += 1
                logger.warning(
                    "Skipped provider transaction",
                    extra={"account_id": account.id, "external_id": txn.external_id, "error": str(e)},
                )
                continue
            touched.append(txn.date)

        logger.info(
            "Ingested provider transactions",
            extra={
                "account_id": account.id,
                "received": len(transactions),
                "appended": len(touched),
                "skipped": skipped,
            },
        )
        return touched

    def sync_family(
        self,
        family_id: int,
        window: Optional[tuple[Optional[date], Optional[date]]] = None,
        provider: Optional[BankDataProvider] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> Sync:
        """Sync every account of a family that accepts entries.

        Each account runs as its own unit with its own sync record; one
        account failing does not stop the others.

        Raises:
            NotFoundError: If the family does not exist
            ConcurrentSyncConflict: If a sync for the family is running
            SyncFailed: With every failed account, after all accounts ran
        """
        if self.db.get_family(family_id) is None:
            raise NotFoundError(family_not_found(family_id))
        cancel = cancel or CancellationToken()

        window = self._window(window)
        self._guard(SyncableType.FAMILY, family_id)
        try:
            run = self._claim(SyncableType.FAMILY, family_id, window)
            run.advance(SyncEvent.START)
            failures: dict[str, str] = {}
            for account in self.db.list_accounts(family_id):
                if cancel.cancelled:
                    break
                if not account.status.accepts_entries:
                    continue
                try:
                    self.sync_account(account.id, run.window, provider=provider, cancel=cancel)
                except SyncFailed as e:
                    failures.update(e.failures)
                except (ConcurrentSyncConflict, ValidationError) as e:
                    failures[unit_label(SyncableType.ACCOUNT, account.id)] = str(e)

            if cancel.cancelled:
                failures[run.label] = CANCELLED
                run.advance(SyncEvent.FAIL, error=CANCELLED)
            elif failures:
                run.advance(SyncEvent.FAIL, error=str(SyncFailed(failures)))
            else:
                run.advance(SyncEvent.COMPLETE)
        finally:
            self._running.release((SyncableType.FAMILY, family_id))

        sync = run.record()
        self.bus.publish(SyncFinished(sync=sync, window_start=run.window[0], window_end=run.window[1]))
        if failures:
            raise SyncFailed(failures)
        return sync

    def sync_many(
        self,
        units: Iterable[tuple[SyncableType, int]],
        max_workers: int = 4,
        provider: Optional[BankDataProvider] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> dict[tuple[SyncableType, int], Union[Sync, Exception]]:
        """Run independent units concurrently on a thread pool.

        Returns:
            Each unit mapped to its sync record, or to the exception it raised
        """
        units = list(units)
        cancel = cancel or CancellationToken()

        def run_unit(unit: tuple[SyncableType, int]) -> Union[Sync, Exception]:
            syncable_type, syncable_id = unit
            try:
                if syncable_type is SyncableType.FAMILY:
                    return self.sync_family(syncable_id, provider=provider, cancel=cancel)
                return self.sync_account(syncable_id, provider=provider, cancel=cancel)
            except (SyncFailed, ConcurrentSyncConflict, NotFoundError, ValidationError) as e:
                return e
            finally:
                # Release this worker thread's session
                self.db.disconnect()

        with ThreadPoolExecutor(max_workers=max(1, max_workers), thread_name_prefix="familyledger-sync") as pool:
            outcomes = list(pool.map(run_unit, units))
        return dict(zip(units, outcomes))

    def latest_sync(self, syncable_type: SyncableType, syncable_id: int) -> Optional[Sync]:
        syncs = self.db.list_syncs(syncable_type, syncable_id)
        return syncs[0] if syncs else None

    def list_syncs(self, syncable_type: SyncableType, syncable_id: int) -> list[Sync]:
        """Sync records of a unit, newest first."""
        return self.db.list_syncs(syncable_type, syncable_id)
