"""Domain model entities for familyledger.

These are pure data classes representing business concepts, independent of
database schema. Services and the database layer exchange these, never ORM
rows.

Sign convention: a positive entry amount is money flowing into the account,
a negative amount is money flowing out of it.
"""

from dataclasses import dataclass
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Optional, Union


class AccountKind(str, Enum):
    """Closed set of account kinds."""

    DEPOSITORY = "depository"
    INVESTMENT = "investment"
    CRYPTO = "crypto"
    PROPERTY = "property"
    VEHICLE = "vehicle"
    CREDIT_CARD = "credit_card"
    LOAN = "loan"
    OTHER_ASSET = "other_asset"
    OTHER_LIABILITY = "other_liability"

    @property
    def classification(self) -> "Classification":
        if self in _LIABILITY_KINDS:
            return Classification.LIABILITY
        return Classification.ASSET


class Classification(str, Enum):
    ASSET = "asset"
    LIABILITY = "liability"

    @property
    def flows_factor(self) -> int:
        """How a day's net inflow moves the balance of this classification."""
        return 1 if self is Classification.ASSET else -1


_LIABILITY_KINDS = frozenset(
    {AccountKind.CREDIT_CARD, AccountKind.LOAN, AccountKind.OTHER_LIABILITY}
)


class AccountStatus(str, Enum):
    ACTIVE = "active"
    DRAFT = "draft"
    DISABLED = "disabled"
    PENDING_DELETION = "pending_deletion"

    @property
    def accepts_entries(self) -> bool:
        return self in (AccountStatus.ACTIVE, AccountStatus.DRAFT)


class EntryKind(str, Enum):
    TRANSACTION = "transaction"
    VALUATION = "valuation"
    TRADE = "trade"


class SyncStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class SyncableType(str, Enum):
    ACCOUNT = "account"
    FAMILY = "family"


@dataclass(frozen=True)
class Family:
    """Household tenant owning all accounts."""

    id: int
    name: str
    currency: str
    created_at: datetime


@dataclass(frozen=True)
class Account:
    """Account domain entity."""

    id: int
    family_id: int
    name: str
    currency: str
    kind: AccountKind
    status: AccountStatus
    opening_balance: Decimal
    created_at: datetime
    institution_name: Optional[str] = None

    @property
    def classification(self) -> Classification:
        return self.kind.classification

    @property
    def flows_factor(self) -> int:
        return self.classification.flows_factor


@dataclass(frozen=True)
class TransactionDetail:
    """Payload of a Transaction entry."""

    name: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class ValuationDetail:
    """Payload of a Valuation entry. The entry amount is the absolute account value."""

    name: Optional[str] = None


@dataclass(frozen=True)
class TradeDetail:
    """Payload of a Trade entry. The entry amount is the cash effect of the trade."""

    ticker: str
    quantity: Decimal
    price: Decimal


EntryDetail = Union[TransactionDetail, ValuationDetail, TradeDetail]


def kind_of(detail: EntryDetail) -> EntryKind:
    """Return the entry kind tag for a detail payload."""
    match detail:
        case TransactionDetail():
            return EntryKind.TRANSACTION
        case ValuationDetail():
            return EntryKind.VALUATION
        case TradeDetail():
            return EntryKind.TRADE
    raise TypeError(f"Unknown entry detail type: {type(detail).__name__}")


@dataclass(frozen=True)
class NewEntry:
    """An entry that has not been appended yet."""

    account_id: int
    date: date
    amount: Decimal
    currency: str
    detail: EntryDetail
    external_id: Optional[str] = None

    @property
    def kind(self) -> EntryKind:
        return kind_of(self.detail)


@dataclass(frozen=True)
class Entry:
    """Immutable ledger entry.

    Compensating entries carry ``voids_entry_id`` pointing at the entry they
    cancel, and the negated amount.
    """

    id: int
    account_id: int
    date: date
    amount: Decimal
    currency: str
    detail: EntryDetail
    created_at: datetime
    external_id: Optional[str] = None
    voids_entry_id: Optional[int] = None
    void_reason: Optional[str] = None

    @property
    def kind(self) -> EntryKind:
        return kind_of(self.detail)

    @property
    def is_compensation(self) -> bool:
        return self.voids_entry_id is not None

    @property
    def classification(self) -> str:
        """``income`` for inflows, ``expense`` for outflows."""
        return "income" if self.amount > 0 else "expense"


@dataclass(frozen=True)
class Balance:
    """Derived end-of-day balance of one account."""

    account_id: int
    date: date
    currency: str
    start_balance: Decimal
    inflows: Decimal
    outflows: Decimal
    balance: Decimal
    flows_factor: int


@dataclass(frozen=True)
class ExchangeRate:
    from_currency: str
    to_currency: str
    date: date
    rate: Decimal
    source: str


@dataclass(frozen=True)
class Transfer:
    """Matched pair of entries moving money between a family's own accounts."""

    id: int
    outflow_entry_id: int
    inflow_entry_id: int
    created_at: datetime


@dataclass(frozen=True)
class Sync:
    """Persisted record of one sync run for an account or a family."""

    id: int
    syncable_type: SyncableType
    syncable_id: int
    status: SyncStatus
    created_at: datetime
    window_start: Optional[date] = None
    window_end: Optional[date] = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    pending_from: Optional[date] = None
    pending_to: Optional[date] = None
