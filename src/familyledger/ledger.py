"""Wiring of the ledger services around one database."""

from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

from familyledger.config import Settings
from familyledger.database.base import Database
from familyledger.domain.account import AccountService
from familyledger.domain.balance import BalanceCalculator
from familyledger.domain.balance_sheet import BalanceSheetService
from familyledger.domain.entry import EntryStore
from familyledger.domain.events import EventBus
from familyledger.domain.exchange import CurrencyNormalizer
from familyledger.domain.family import FamilyService
from familyledger.domain.jobs import DrainResult, FollowUpScheduler, JobQueue
from familyledger.domain.providers import BankDataProvider, ExchangeRateProvider
from familyledger.domain.sync import SyncOrchestrator
from familyledger.domain.transfer import TransferMatcher
from familyledger.utils.locks import KeyedLocks


@dataclass
class Ledger:
    """All ledger services sharing one database, event bus and lock table."""

    db: Database
    settings: Settings
    families: FamilyService
    accounts: AccountService
    normalizer: CurrencyNormalizer
    bus: EventBus
    queue: JobQueue
    entries: EntryStore
    calculator: BalanceCalculator
    matcher: TransferMatcher
    orchestrator: SyncOrchestrator
    balance_sheet: BalanceSheetService

    def run_follow_ups(self) -> DrainResult:
        """Run queued balance recomputes and transfer matches once."""
        return self.queue.run_pending()


def build_ledger(
    db: Database,
    settings: Optional[Settings] = None,
    rate_provider: Optional[ExchangeRateProvider] = None,
    bank_provider: Optional[BankDataProvider] = None,
    today: Callable[[], date] = date.today,
) -> Ledger:
    """Create the ledger services and subscribe follow-up work to entry events.

    Args:
        db: Database instance
        settings: Runtime settings (defaults when None)
        rate_provider: Optional exchange rate provider
        bank_provider: Default bank data provider for syncs
        today: Clock shared by every service
    """
    settings = settings or Settings()
    locks = KeyedLocks()
    bus = EventBus()
    queue = JobQueue()

    normalizer = CurrencyNormalizer(
        db,
        provider=rate_provider,
        timeout=settings.provider_timeout,
        retry_attempts=settings.retry_attempts,
        retry_backoff=settings.retry_backoff,
        retry_max_wait=settings.retry_max_wait,
    )
    entries = EntryStore(db, bus=bus, locks=locks, today=today)
    calculator = BalanceCalculator(db, normalizer, locks=locks, today=today)
    matcher = TransferMatcher(
        db,
        normalizer,
        window_days=settings.transfer_window_days,
        epsilon=settings.transfer_epsilon,
        locks=locks,
    )
    orchestrator = SyncOrchestrator(
        db,
        entries,
        calculator,
        matcher,
        provider=bank_provider,
        bus=bus,
        timeout=settings.provider_timeout,
        retry_attempts=settings.retry_attempts,
        retry_backoff=settings.retry_backoff,
        retry_max_wait=settings.retry_max_wait,
        stale_after=settings.sync_stale_after,
        today=today,
    )
    FollowUpScheduler(queue, calculator, matcher).subscribe(bus)

    return Ledger(
        db=db,
        settings=settings,
        families=FamilyService(db),
        accounts=AccountService(db),
        normalizer=normalizer,
        bus=bus,
        queue=queue,
        entries=entries,
        calculator=calculator,
        matcher=matcher,
        orchestrator=orchestrator,
        balance_sheet=BalanceSheetService(db, normalizer),
    )
