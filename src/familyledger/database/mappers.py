"""Mapper functions to convert between domain models and SQLAlchemy models.

Entries are stored in a single table; the kind column selects which
nullable columns form the entry's detail payload.
"""

from decimal import Decimal

from familyledger.domain import entities as domain
from familyledger.database.models import (
    Family as ORMFamily,
    Account as ORMAccount,
    Entry as ORMEntry,
    Balance as ORMBalance,
    ExchangeRate as ORMExchangeRate,
    Transfer as ORMTransfer,
    Sync as ORMSync,
)


def _decimal(value) -> Decimal:
    """Coerce a Numeric column value to Decimal (SQLite may hand back floats)."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def family_to_domain(orm_family: ORMFamily) -> domain.Family:
    """Convert SQLAlchemy Family model to domain Family entity."""
    return domain.Family(
        id=orm_family.id,
        name=orm_family.name,
        currency=orm_family.currency,
        created_at=orm_family.created_at,
    )


def account_to_domain(orm_account: ORMAccount) -> domain.Account:
    """Convert SQLAlchemy Account model to domain Account entity."""
    return domain.Account(
        id=orm_account.id,
        family_id=orm_account.family_id,
        name=orm_account.name,
        currency=orm_account.currency,
        kind=domain.AccountKind(orm_account.kind),
        status=domain.AccountStatus(orm_account.status),
        opening_balance=_decimal(orm_account.opening_balance),
        created_at=orm_account.created_at,
        institution_name=orm_account.institution_name,
    )


def detail_to_domain(orm_entry: ORMEntry) -> domain.EntryDetail:
    """Build the tagged detail payload from an entry row."""
    match domain.EntryKind(orm_entry.kind):
        case domain.EntryKind.TRANSACTION:
            return domain.TransactionDetail(name=orm_entry.name, notes=orm_entry.notes)
        case domain.EntryKind.VALUATION:
            return domain.ValuationDetail(name=orm_entry.name)
        case domain.EntryKind.TRADE:
            return domain.TradeDetail(
                ticker=orm_entry.ticker,
                quantity=_decimal(orm_entry.quantity),
                price=_decimal(orm_entry.price),
            )


def detail_to_columns(detail: domain.EntryDetail) -> dict:
    """Flatten a detail payload into entry row columns."""
    match detail:
        case domain.TransactionDetail(name=name, notes=notes):
            return {"kind": domain.EntryKind.TRANSACTION.value, "name": name, "notes": notes}
        case domain.ValuationDetail(name=name):
            return {"kind": domain.EntryKind.VALUATION.value, "name": name}
        case domain.TradeDetail(ticker=ticker, quantity=quantity, price=price):
            return {
                "kind": domain.EntryKind.TRADE.value,
                "ticker": ticker,
                "quantity": quantity,
                "price": price,
            }
    raise TypeError(f"Unknown entry detail type: {type(detail).__name__}")


def entry_to_domain(orm_entry: ORMEntry) -> domain.Entry:
    """Convert SQLAlchemy Entry model to domain Entry entity."""
    return domain.Entry(
        id=orm_entry.id,
        account_id=orm_entry.account_id,
        date=orm_entry.date,
        amount=_decimal(orm_entry.amount),
        currency=orm_entry.currency,
        detail=detail_to_domain(orm_entry),
        created_at=orm_entry.created_at,
        external_id=orm_entry.external_id,
        voids_entry_id=orm_entry.voids_entry_id,
        void_reason=orm_entry.void_reason,
    )


def balance_to_domain(orm_balance: ORMBalance) -> domain.Balance:
    """Convert SQLAlchemy Balance model to domain Balance entity."""
    return domain.Balance(
        account_id=orm_balance.account_id,
        date=orm_balance.date,
        currency=orm_balance.currency,
        start_balance=_decimal(orm_balance.start_balance),
        inflows=_decimal(orm_balance.inflows),
        outflows=_decimal(orm_balance.outflows),
        balance=_decimal(orm_balance.balance),
        flows_factor=orm_balance.flows_factor,
    )


def exchange_rate_to_domain(orm_rate: ORMExchangeRate) -> domain.ExchangeRate:
    """Convert SQLAlchemy ExchangeRate model to domain ExchangeRate entity."""
    return domain.ExchangeRate(
        from_currency=orm_rate.from_currency,
        to_currency=orm_rate.to_currency,
        date=orm_rate.date,
        rate=_decimal(orm_rate.rate),
        source=orm_rate.source,
    )


def transfer_to_domain(orm_transfer: ORMTransfer) -> domain.Transfer:
    """Convert SQLAlchemy Transfer model to domain Transfer entity."""
    return domain.Transfer(
        id=orm_transfer.id,
        outflow_entry_id=orm_transfer.outflow_entry_id,
        inflow_entry_id=orm_transfer.inflow_entry_id,
        created_at=orm_transfer.created_at,
    )


def sync_to_domain(orm_sync: ORMSync) -> domain.Sync:
    """Convert SQLAlchemy Sync model to domain Sync entity."""
    return domain.Sync(
        id=orm_sync.id,
        syncable_type=domain.SyncableType(orm_sync.syncable_type),
        syncable_id=orm_sync.syncable_id,
        status=domain.SyncStatus(orm_sync.status),
        created_at=orm_sync.created_at,
        window_start=orm_sync.window_start,
        window_end=orm_sync.window_end,
        error=orm_sync.error,
        started_at=orm_sync.started_at,
        completed_at=orm_sync.completed_at,
        pending_from=orm_sync.pending_from,
        pending_to=orm_sync.pending_to,
    )
