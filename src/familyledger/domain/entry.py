"""Entry store: the append-only ledger log."""

from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional

from familyledger.database.base import Database
from familyledger.domain.currency import AMOUNT_SCALE, QUANTITY_SCALE, RATE_SCALE, is_valid_currency
from familyledger.domain.entities import Account, Entry, EntryKind, NewEntry
from familyledger.domain.errors import (
    ConflictError,
    InvalidEntry,
    NotFoundError,
    account_not_found,
    duplicate_external_id,
    entry_not_found,
    unknown_currency,
)
from familyledger.domain.events import EntryAppended, EntryVoided, EventBus
from familyledger.logging_config import get_logger
from familyledger.utils.locks import KeyedLocks

logger = get_logger(__name__)

DateRange = tuple[Optional[date], Optional[date]]


class EntryStore:
    """Append-only store of dated, signed monetary events.

    Entries are never updated or deleted. Corrections are made with
    :meth:`void`, which appends a compensating entry. Writes to one account
    are serialized through a per-account lock, and an event is published on
    ``bus`` after each successful commit.
    """

    def __init__(
        self,
        db: Database,
        bus: Optional[EventBus] = None,
        locks: Optional[KeyedLocks] = None,
        today: Callable[[], date] = date.today,
    ):
        """Initialize entry store.

        Args:
            db: Database instance
            bus: Event bus notified after commits
            locks: Per-account write locks, shared with other writers
            today: Clock used to reject future-dated entries
        """
        self.db = db
        self.bus = bus or EventBus()
        self.locks = locks or KeyedLocks()
        self.today = today

    def append(self, entry: NewEntry) -> int:
        """Validate and append an entry.

        Args:
            entry: Entry to append

        Returns:
            Entry ID

        Raises:
            InvalidEntry: If the entry fails validation; nothing is persisted
        """
        with self.locks.hold(entry.account_id):
            account = self._validate(entry)
            try:
                entry_id = self.db.insert_entry(entry)
            except ConflictError as e:
                raise InvalidEntry(str(e))

        stored = self.db.get_entry(entry_id)
        logger.info(
            "Appended entry",
            extra={
                "entry_id": entry_id,
                "account_id": entry.account_id,
                "kind": entry.kind.value,
                "date": entry.date,
            },
        )
        self.bus.publish(EntryAppended(entry=stored, family_id=account.family_id))
        return entry_id

    def _validate(self, entry: NewEntry) -> Account:
        account = self.db.get_account(entry.account_id)
        if account is None:
            raise InvalidEntry(account_not_found(entry.account_id))
        if not account.status.accepts_entries:
            raise InvalidEntry(
                f"Account {account.id} is {account.status.value} and does not accept entries"
            )

        if not isinstance(entry.date, date):
            raise InvalidEntry("Entry date is required")
        if entry.date > self.today():
            raise InvalidEntry(f"Entry date {entry.date.isoformat()} is in the future")

        try:
            amount = Decimal(entry.amount)
        except (InvalidOperation, TypeError, ValueError):
            raise InvalidEntry(f"Invalid amount: {entry.amount!r}")
        if not amount.is_finite():
            raise InvalidEntry(f"Invalid amount: {entry.amount!r}")
        _check_scale(amount, AMOUNT_SCALE, "Amount")

        match entry.kind:
            case EntryKind.TRANSACTION:
                if amount == 0:
                    raise InvalidEntry("Transaction amount cannot be zero")
            case EntryKind.TRADE:
                _check_scale(entry.detail.quantity, QUANTITY_SCALE, "Trade quantity")
                _check_scale(entry.detail.price, RATE_SCALE, "Trade price")
                if entry.detail.quantity == 0:
                    raise InvalidEntry("Trade quantity cannot be zero")
                if entry.detail.price < 0:
                    raise InvalidEntry("Trade price cannot be negative")
            case EntryKind.VALUATION:
                pass

        if not is_valid_currency(entry.currency):
            raise InvalidEntry(unknown_currency(entry.currency))

        if entry.external_id is not None and self.db.entry_exists(entry.account_id, entry.external_id):
            raise InvalidEntry(duplicate_external_id(entry.external_id, entry.account_id))
        return account

    def void(self, entry_id: int, reason: str) -> Entry:
        """Cancel an entry by appending its compensating entry.

        The compensation has the original's date, currency and kind with the
        amount negated, and points back at the original. Transfers that
        referenced the original are dropped from the transfer index.

        Raises:
            NotFoundError: If the entry does not exist
            InvalidEntry: If the entry is a compensation or already voided
        """
        original = self.db.get_entry(entry_id)
        if original is None:
            raise NotFoundError(entry_not_found(entry_id))
        if original.is_compensation:
            raise InvalidEntry(f"Entry {entry_id} is a compensating entry and cannot be voided")

        with self.locks.hold(original.account_id):
            if self.db.get_compensation(entry_id) is not None:
                raise InvalidEntry(f"Entry {entry_id} has already been voided")
            compensation = NewEntry(
                account_id=original.account_id,
                date=original.date,
                amount=-original.amount,
                currency=original.currency,
                detail=original.detail,
            )
            try:
                compensation_id = self.db.insert_entry(
                    compensation, voids_entry_id=entry_id, void_reason=reason
                )
            except ConflictError as e:
                raise InvalidEntry(str(e))
            removed = self.db.delete_transfers_for_entry(entry_id)

        stored = self.db.get_entry(compensation_id)
        account = self.db.get_account(original.account_id)
        logger.info(
            "Voided entry",
            extra={
                "entry_id": entry_id,
                "compensation_id": compensation_id,
                "transfers_removed": removed,
                "reason": reason,
            },
        )
        self.bus.publish(
            EntryVoided(original=original, compensation=stored, family_id=account.family_id)
        )
        return stored

    def get(self, entry_id: int) -> Optional[Entry]:
        return self.db.get_entry(entry_id)

    def exists(self, account_id: int, external_id: str) -> bool:
        """Check whether a provider transaction was already appended to the account."""
        return self.db.entry_exists(account_id, external_id)

    def list(
        self,
        account_id: int,
        date_range: Optional[DateRange] = None,
        kind: Optional[EntryKind] = None,
        min_amount: Optional[Decimal] = None,
        max_amount: Optional[Decimal] = None,
        search: Optional[str] = None,
    ) -> list[Entry]:
        """List an account's entries ordered by date, then insertion order.

        Args:
            account_id: Account ID
            date_range: Inclusive (start, end); either bound may be None
            kind: Only entries of this kind
            min_amount: Minimum signed amount
            max_amount: Maximum signed amount
            search: Case-insensitive substring of name or notes

        Raises:
            NotFoundError: If the account does not exist
        """
        if self.db.get_account(account_id) is None:
            raise NotFoundError(account_not_found(account_id))
        start, end = date_range or (None, None)
        return self.db.list_entries(
            account_id=account_id,
            start_date=start,
            end_date=end,
            kind=kind,
            min_amount=min_amount,
            max_amount=max_amount,
            search=search,
        )

    def list_family(
        self,
        family_id: int,
        date_range: Optional[DateRange] = None,
        kind: Optional[EntryKind] = None,
        min_amount: Optional[Decimal] = None,
        max_amount: Optional[Decimal] = None,
        search: Optional[str] = None,
    ) -> list[Entry]:
        """List entries across every account of a family, same ordering as :meth:`list`."""
        start, end = date_range or (None, None)
        return self.db.list_entries(
            family_id=family_id,
            start_date=start,
            end_date=end,
            kind=kind,
            min_amount=min_amount,
            max_amount=max_amount,
            search=search,
        )


def _check_scale(value: Decimal, places: int, label: str) -> None:
    """Reject values with more decimal places than storage keeps."""
    value = Decimal(value)
    if not value.is_finite():
        raise InvalidEntry(f"Invalid {label.lower()}: {value}")
    exponent = value.normalize().as_tuple().exponent
    if exponent < -places:
        raise InvalidEntry(f"{label} {value} has more than {places} decimal places")


def effective_entries(entries: list[Entry]) -> list[Entry]:
    """Drop voided entries and their compensations, keeping order.

    Only pairs where both sides are in ``entries`` cancel out.
    """
    voided = {e.voids_entry_id for e in entries if e.voids_entry_id is not None}
    present = {e.id for e in entries}
    return [
        e
        for e in entries
        if e.id not in voided and not (e.voids_entry_id is not None and e.voids_entry_id in present)
    ]
