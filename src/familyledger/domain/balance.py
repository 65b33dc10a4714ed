"""Balance calculator: derives daily balances from the entry log."""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Callable, Optional

from familyledger.database.base import Database
from familyledger.domain.entities import Account, Balance, Entry, EntryKind
from familyledger.domain.entry import DateRange, effective_entries
from familyledger.domain.errors import NotFoundError, ValidationError, account_not_found
from familyledger.domain.exchange import CurrencyNormalizer
from familyledger.logging_config import get_logger
from familyledger.utils.date_parser import iter_dates
from familyledger.utils.locks import KeyedLocks

logger = get_logger(__name__)

ZERO = Decimal("0")


class _DayFlows:
    """One day's entries reduced to inflows, outflows and an optional valuation."""

    def __init__(self) -> None:
        self.inflows = ZERO
        self.outflows = ZERO
        self.valuation: Optional[Decimal] = None

    def end_balance(self, start: Decimal, flows_factor: int) -> Decimal:
        if self.valuation is not None:
            return self.valuation
        return start + flows_factor * (self.inflows - self.outflows)


class BalanceCalculator:
    """Computes one Balance row per (account, date).

    The starting point of any range is replayed from the entry log, so the
    result never depends on previously persisted balance rows and running the
    calculator twice yields identical rows.
    """

    def __init__(
        self,
        db: Database,
        normalizer: CurrencyNormalizer,
        locks: Optional[KeyedLocks] = None,
        today: Callable[[], date] = date.today,
    ):
        """Initialize balance calculator.

        Args:
            db: Database instance
            normalizer: Converts entries into the account currency
            locks: Serializes recomputes of the same account
            today: Clock used as the default end of a range
        """
        self.db = db
        self.normalizer = normalizer
        self.locks = locks or KeyedLocks()
        self.today = today

    def recompute(self, account_id: int, date_range: Optional[DateRange] = None) -> list[Balance]:
        """Recompute and persist balances for a date range.

        Args:
            account_id: Account ID
            date_range: Inclusive (start, end). Start defaults to the first
                entry date, end to today.

        Returns:
            Balance rows in ascending date order

        Raises:
            NotFoundError: If the account does not exist
            ValidationError: If start is after end
            RateUnavailable: If an entry cannot be normalized; no rows change
        """
        account = self.db.get_account(account_id)
        if account is None:
            raise NotFoundError(account_not_found(account_id))

        start, end = date_range or (None, None)
        end = end or self.today()
        if start is None:
            start = self.db.earliest_entry_date(account_id) or end
        if start > end:
            raise ValidationError(f"Range start {start.isoformat()} is after end {end.isoformat()}")

        with self.locks.hold(("balance", account_id)):
            entries = effective_entries(self.db.list_entries(account_id=account_id, end_date=end))
            days = self._reduce_by_day(account, entries)

            running = account.opening_balance
            for day in sorted(d for d in days if d < start):
                running = days[day].end_balance(running, account.flows_factor)

            balances = []
            for day in iter_dates(start, end):
                flows = days.get(day) or _DayFlows()
                end_balance = flows.end_balance(running, account.flows_factor)
                balances.append(
                    Balance(
                        account_id=account_id,
                        date=day,
                        currency=account.currency,
                        start_balance=running,
                        inflows=flows.inflows,
                        outflows=flows.outflows,
                        balance=end_balance,
                        flows_factor=account.flows_factor,
                    )
                )
                running = end_balance

            self.db.replace_balances(account_id, start, end, balances)

        logger.info(
            "Recomputed balances",
            extra={"account_id": account_id, "start": start, "end": end, "rows": len(balances)},
        )
        return balances

    def _reduce_by_day(self, account: Account, entries: list[Entry]) -> dict[date, _DayFlows]:
        days: dict[date, _DayFlows] = defaultdict(_DayFlows)
        for entry in entries:
            amount = self.normalizer.normalize(
                entry.amount, entry.currency, account.currency, entry.date
            )
            flows = days[entry.date]
            match entry.kind:
                case EntryKind.VALUATION:
                    # Entries are in insertion order, so the day's last valuation wins
                    flows.valuation = amount
                case EntryKind.TRANSACTION | EntryKind.TRADE:
                    if amount > 0:
                        flows.inflows += amount
                    else:
                        flows.outflows += -amount
        return days

    def recompute_from(self, account_id: int, from_date: date) -> list[Balance]:
        """Recompute every balance from ``from_date`` through today.

        Used after a back-dated entry arrives; rows before ``from_date`` are
        left untouched.
        """
        end = max(from_date, self.today())
        return self.recompute(account_id, (from_date, end))

    def get_balance(self, account_id: int, on_date: date) -> Optional[Balance]:
        """Latest persisted balance on or before ``on_date``."""
        return self.db.get_balance_on_or_before(account_id, on_date)

    def list_balances(
        self, account_id: int, date_range: Optional[DateRange] = None
    ) -> list[Balance]:
        start, end = date_range or (None, None)
        return self.db.list_balances(account_id, start, end)
