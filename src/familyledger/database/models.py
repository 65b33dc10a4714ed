"""SQLAlchemy models for the familyledger database."""

from datetime import datetime, UTC
from decimal import Decimal

from sqlalchemy import (
    Column,
    Integer,
    String,
    ForeignKey,
    DateTime,
    Date,
    Numeric,
    Index,
    UniqueConstraint,
    CheckConstraint,
    create_engine,
    event,
    text,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, scoped_session, Session
from sqlalchemy.types import TypeDecorator

from familyledger.domain.currency import AMOUNT_SCALE, QUANTITY_SCALE, RATE_SCALE

Base = declarative_base()


class DecimalAmount(TypeDecorator):
    """Decimal value in a NUMERIC column.

    SQLite keeps NUMERIC values as REAL. Results are read back as the shortest
    decimal that round-trips the stored value, so what was written is what
    comes back for up to 15 significant digits.
    """

    impl = Numeric
    cache_ok = True

    def __init__(self, precision: int, scale: int):
        super().__init__(precision=precision, scale=scale, asdecimal=False)

    def process_result_value(self, value, dialect):
        if value is None or isinstance(value, Decimal):
            return value
        return Decimal(repr(value))


# Monetary amounts and rates; never binary floating point in Python code.
Money = DecimalAmount(28, AMOUNT_SCALE)
Rate = DecimalAmount(24, RATE_SCALE)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Family(Base):
    """Household tenant model."""

    __tablename__ = "families"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    currency = Column(String(3), nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    accounts = relationship("Account", back_populates="family", cascade="all, delete-orphan")


class Account(Base):
    """Account model."""

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True)
    family_id = Column(Integer, ForeignKey("families.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    currency = Column(String(3), nullable=False)
    kind = Column(String, nullable=False)
    status = Column(String, nullable=False, default="active")
    opening_balance = Column(Money, nullable=False, default=0)
    institution_name = Column(String, nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    __table_args__ = (UniqueConstraint("family_id", "name", name="uq_family_account_name"),)

    family = relationship("Family", back_populates="accounts")
    entries = relationship("Entry", back_populates="account", cascade="all, delete-orphan")
    balances = relationship("Balance", back_populates="account", cascade="all, delete-orphan")


class Entry(Base):
    """Append-only ledger entry model.

    Kind-specific columns (name/notes, ticker/quantity/price) are nullable and
    only populated for the matching kind.
    """

    __tablename__ = "entries"

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    date = Column(Date, nullable=False)
    amount = Column(Money, nullable=False)
    currency = Column(String(3), nullable=False)
    kind = Column(String, nullable=False)
    name = Column(String, nullable=True)
    notes = Column(String, nullable=True)
    ticker = Column(String, nullable=True)
    quantity = Column(DecimalAmount(24, QUANTITY_SCALE), nullable=True)
    price = Column(Rate, nullable=True)
    external_id = Column(String, nullable=True)
    voids_entry_id = Column(Integer, ForeignKey("entries.id"), nullable=True, unique=True)
    void_reason = Column(String, nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("account_id", "external_id", name="uq_account_external_id"),
        Index("ix_entries_account_date", "account_id", "date"),
    )

    account = relationship("Account", back_populates="entries")


class Balance(Base):
    """Derived daily balance model. One row per (account, date)."""

    __tablename__ = "balances"

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    date = Column(Date, nullable=False)
    currency = Column(String(3), nullable=False)
    start_balance = Column(Money, nullable=False)
    inflows = Column(Money, nullable=False)
    outflows = Column(Money, nullable=False)
    balance = Column(Money, nullable=False)
    flows_factor = Column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("account_id", "date", name="uq_balance_account_date"),
        CheckConstraint("flows_factor IN (-1, 1)", name="ck_balance_flows_factor"),
        Index("ix_balances_account_date", "account_id", "date"),
    )

    account = relationship("Account", back_populates="balances")


class ExchangeRate(Base):
    """Cached exchange rate keyed by (from, to, date)."""

    __tablename__ = "exchange_rates"

    id = Column(Integer, primary_key=True)
    from_currency = Column(String(3), nullable=False)
    to_currency = Column(String(3), nullable=False)
    date = Column(Date, nullable=False)
    rate = Column(Rate, nullable=False)
    source = Column(String, nullable=False, default="manual")
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("from_currency", "to_currency", "date", name="uq_exchange_rate_key"),
        CheckConstraint("rate > 0", name="ck_exchange_rate_positive"),
    )


class Transfer(Base):
    """Matched outflow/inflow pair. Each entry belongs to at most one transfer."""

    __tablename__ = "transfers"

    id = Column(Integer, primary_key=True)
    outflow_entry_id = Column(Integer, ForeignKey("entries.id"), nullable=False, unique=True)
    inflow_entry_id = Column(Integer, ForeignKey("entries.id"), nullable=False, unique=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)


class RejectedTransfer(Base):
    """Entry pair a user rejected as a transfer; never proposed again."""

    __tablename__ = "rejected_transfers"

    id = Column(Integer, primary_key=True)
    outflow_entry_id = Column(Integer, ForeignKey("entries.id"), nullable=False)
    inflow_entry_id = Column(Integer, ForeignKey("entries.id"), nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("outflow_entry_id", "inflow_entry_id", name="uq_rejected_transfer_pair"),
    )


class Sync(Base):
    """Sync run record for an account or a family."""

    __tablename__ = "syncs"

    id = Column(Integer, primary_key=True)
    syncable_type = Column(String, nullable=False)
    syncable_id = Column(Integer, nullable=False)
    status = Column(String, nullable=False, default="pending")
    error = Column(String, nullable=True)
    window_start = Column(Date, nullable=True)
    window_end = Column(Date, nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    # Dates whose balances and transfers this run has yet to refresh
    pending_from = Column(Date, nullable=True)
    pending_to = Column(Date, nullable=True)

    __table_args__ = (
        Index("ix_syncs_syncable", "syncable_type", "syncable_id"),
        # At most one pending or running sync per unit, across processes
        Index(
            "uq_syncs_active_unit",
            "syncable_type",
            "syncable_id",
            unique=True,
            sqlite_where=text("status IN ('pending', 'running')"),
            postgresql_where=text("status IN ('pending', 'running')"),
        ),
    )


def create_session_factory(database_url: str) -> scoped_session[Session]:
    """Create a thread-local SQLAlchemy session registry.

    Each thread gets its own session, so services can be shared across the
    worker threads of a sync run.
    """
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": 30}
    engine = create_engine(database_url, echo=False, connect_args=connect_args)
    if database_url.startswith("sqlite"):

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

    Base.metadata.create_all(engine)
    return scoped_session(sessionmaker(bind=engine))
