"""Abstract database interface."""

from abc import ABC, abstractmethod
from typing import Iterable, Optional
from datetime import date, datetime
from decimal import Decimal

from familyledger.domain.entities import (
    Family,
    Account,
    AccountKind,
    AccountStatus,
    NewEntry,
    Entry,
    EntryKind,
    Balance,
    ExchangeRate,
    Transfer,
    Sync,
    SyncableType,
    SyncStatus,
)


class Database(ABC):
    """Abstract database interface for familyledger.

    Entries have no update or delete operations: the ledger is append-only.
    They only disappear when their owning account or family is deleted.
    """

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    # Family operations
    @abstractmethod
    def create_family(self, name: str, currency: str) -> int:
        """Create a family. Returns family ID."""
        pass

    @abstractmethod
    def get_family(self, family_id: int) -> Optional[Family]:
        """Get family by ID."""
        pass

    @abstractmethod
    def list_families(self) -> list[Family]:
        """List all families."""
        pass

    @abstractmethod
    def delete_family(self, family_id: int) -> None:
        """Delete a family and everything it owns."""
        pass

    # Account operations
    @abstractmethod
    def create_account(
        self,
        family_id: int,
        name: str,
        currency: str,
        kind: AccountKind,
        status: AccountStatus = AccountStatus.ACTIVE,
        opening_balance: Decimal = Decimal("0"),
        institution_name: Optional[str] = None,
    ) -> int:
        """Create an account. Returns account ID."""
        pass

    @abstractmethod
    def get_account(self, account_id: int) -> Optional[Account]:
        """Get account by ID."""
        pass

    @abstractmethod
    def list_accounts(self, family_id: Optional[int] = None) -> list[Account]:
        """List accounts, optionally limited to one family."""
        pass

    @abstractmethod
    def update_account(
        self,
        account_id: int,
        name: Optional[str] = None,
        status: Optional[AccountStatus] = None,
        institution_name: Optional[str] = None,
    ) -> None:
        """Update mutable account fields."""
        pass

    @abstractmethod
    def delete_account(self, account_id: int) -> None:
        """Delete an account with its entries, balances and transfers."""
        pass

    # Entry operations
    @abstractmethod
    def insert_entry(
        self,
        entry: NewEntry,
        voids_entry_id: Optional[int] = None,
        void_reason: Optional[str] = None,
    ) -> int:
        """Insert an entry. Returns entry ID."""
        pass

    @abstractmethod
    def get_entry(self, entry_id: int) -> Optional[Entry]:
        """Get entry by ID."""
        pass

    @abstractmethod
    def entry_exists(self, account_id: int, external_id: str) -> bool:
        """Check if an entry with the external ID exists for the account."""
        pass

    @abstractmethod
    def get_compensation(self, entry_id: int) -> Optional[Entry]:
        """Get the compensating entry that voids ``entry_id``, if any."""
        pass

    @abstractmethod
    def list_entries(
        self,
        account_id: Optional[int] = None,
        family_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        kind: Optional[EntryKind] = None,
        min_amount: Optional[Decimal] = None,
        max_amount: Optional[Decimal] = None,
        search: Optional[str] = None,
    ) -> list[Entry]:
        """List entries ordered by date, then insertion order."""
        pass

    @abstractmethod
    def earliest_entry_date(self, account_id: int) -> Optional[date]:
        """Date of the oldest entry of an account."""
        pass

    # Balance operations
    @abstractmethod
    def replace_balances(
        self, account_id: int, start_date: date, end_date: date, balances: Iterable[Balance]
    ) -> None:
        """Atomically replace every balance row of the account in [start, end]."""
        pass

    @abstractmethod
    def list_balances(
        self, account_id: int, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> list[Balance]:
        """List balances ordered by date."""
        pass

    @abstractmethod
    def get_balance_on_or_before(self, account_id: int, on_date: date) -> Optional[Balance]:
        """Latest balance row dated on or before ``on_date``."""
        pass

    # Exchange rate operations
    @abstractmethod
    def get_exchange_rate(
        self, from_currency: str, to_currency: str, on_date: date
    ) -> Optional[ExchangeRate]:
        """Get the cached rate for the exact date."""
        pass

    @abstractmethod
    def insert_exchange_rate_if_absent(self, rate: ExchangeRate) -> bool:
        """Store a rate unless one exists for the key. Returns True if inserted."""
        pass

    @abstractmethod
    def upsert_exchange_rate(self, rate: ExchangeRate) -> None:
        """Store a rate, replacing any existing one for the key."""
        pass

    @abstractmethod
    def list_exchange_rates(
        self, from_currency: Optional[str] = None, to_currency: Optional[str] = None
    ) -> list[ExchangeRate]:
        """List cached rates ordered by pair and date."""
        pass

    # Transfer operations
    @abstractmethod
    def create_transfers(self, pairs: Iterable[tuple[int, int]]) -> list[Transfer]:
        """Atomically create transfers from (outflow_entry_id, inflow_entry_id) pairs."""
        pass

    @abstractmethod
    def get_transfer(self, transfer_id: int) -> Optional[Transfer]:
        """Get transfer by ID."""
        pass

    @abstractmethod
    def list_transfers(self, family_id: int) -> list[Transfer]:
        """List transfers whose entries belong to the family."""
        pass

    @abstractmethod
    def delete_transfer(self, transfer_id: int) -> None:
        """Delete a transfer (the entries are untouched)."""
        pass

    @abstractmethod
    def delete_transfers_for_entry(self, entry_id: int) -> int:
        """Delete transfers referencing an entry. Returns count deleted."""
        pass

    @abstractmethod
    def reject_transfer_pair(self, outflow_entry_id: int, inflow_entry_id: int) -> None:
        """Remember that a pair must not be matched again."""
        pass

    @abstractmethod
    def list_rejected_pairs(self, family_id: int) -> set[tuple[int, int]]:
        """Rejected (outflow_entry_id, inflow_entry_id) pairs of the family."""
        pass

    # Sync operations
    @abstractmethod
    def create_sync(
        self,
        syncable_type: SyncableType,
        syncable_id: int,
        window_start: Optional[date] = None,
        window_end: Optional[date] = None,
    ) -> int:
        """Claim a unit with a pending sync record. Returns sync ID.

        Raises:
            ConflictError: If the unit already has a pending or running sync
        """
        pass

    @abstractmethod
    def update_sync(
        self,
        sync_id: int,
        status: SyncStatus,
        error: Optional[str] = None,
        started_at: Optional[datetime] = None,
        completed_at: Optional[datetime] = None,
    ) -> None:
        """Record a sync status change."""
        pass

    @abstractmethod
    def set_sync_pending(self, sync_id: int, pending_from: date, pending_to: date) -> None:
        """Record the dates a sync still has to refresh derived state for."""
        pass

    @abstractmethod
    def expire_syncs(
        self, syncable_type: SyncableType, syncable_id: int, before: datetime, error: str
    ) -> int:
        """Fail a unit's pending or running syncs created before ``before``. Returns count."""
        pass

    @abstractmethod
    def get_sync(self, sync_id: int) -> Optional[Sync]:
        """Get sync by ID."""
        pass

    @abstractmethod
    def list_syncs(self, syncable_type: SyncableType, syncable_id: int) -> list[Sync]:
        """List syncs of a unit, newest first."""
        pass
