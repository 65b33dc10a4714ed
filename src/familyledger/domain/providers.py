"""External data providers and the plumbing to call them safely.

Bank-data and rate providers are external collaborators. Every call goes
through :func:`call_with_timeout` and a tenacity retry policy so a slow or
flaky provider can never block a sync indefinitely.
"""

import csv
import hashlib
import threading
from concurrent.futures import Future, TimeoutError as FutureTimeout
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Protocol, TypeVar

from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_exponential

from familyledger.domain.entities import Account
from familyledger.domain.errors import ProviderError, ProviderTimeout, ValidationError
from familyledger.logging_config import get_logger
from familyledger.utils.amount_parser import parse_amount
from familyledger.utils.date_parser import parse_date

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ProviderTransaction:
    """One transaction as reported by a bank-data provider.

    ``amount`` follows the ledger sign convention: positive is money into
    the account.
    """

    external_id: str
    date: date
    amount: Decimal
    currency: Optional[str] = None
    name: Optional[str] = None
    notes: Optional[str] = None


class BankDataProvider(Protocol):
    """Source of raw transactions for an account (bank feed, file import)."""

    def fetch_transactions(
        self, account: Account, start_date: Optional[date], end_date: date
    ) -> list[ProviderTransaction]:
        ...


class ExchangeRateProvider(Protocol):
    """Source of exchange rates. Returns None when it has no rate for the key."""

    def fetch_rate(self, from_currency: str, to_currency: str, on_date: date) -> Optional[Decimal]:
        ...


def call_with_timeout(operation: str, timeout: float, func: Callable[..., T], *args: Any) -> T:
    """Run ``func(*args)`` on its own daemon thread and wait at most ``timeout`` seconds.

    A call that times out is abandoned, not interrupted: its thread runs to
    completion in the background and the result is discarded. Abandoned
    calls hold no shared worker, so they cannot delay later calls or
    interpreter exit.

    Raises:
        ProviderTimeout: If the call does not finish in time (retryable)
    """
    future: Future = Future()

    def run() -> None:
        future.set_running_or_notify_cancel()
        try:
            result = func(*args)
        except BaseException as e:
            future.set_exception(e)
        else:
            future.set_result(result)

    threading.Thread(target=run, name="familyledger-provider", daemon=True).start()
    try:
        return future.result(timeout=timeout)
    except FutureTimeout:
        logger.warning("Provider call timed out", extra={"operation": operation, "timeout": timeout})
        raise ProviderTimeout(operation, timeout)


def is_retryable(error: BaseException) -> bool:
    """Provider failures flagged retryable, and timeouts, are retried."""
    return isinstance(error, ProviderError) and error.retryable


def _log_retry(retry_state) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Retrying provider call after failure",
        extra={"attempt": retry_state.attempt_number, "error": str(error)},
    )


def provider_retrying(attempts: int, backoff: float, max_wait: float) -> Retrying:
    """Bounded exponential backoff policy for retryable provider errors."""
    return Retrying(
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait_exponential(multiplier=backoff, max=max_wait),
        retry=retry_if_exception(is_retryable),
        before_sleep=_log_retry,
        reraise=True,
    )


class StaticRateProvider:
    """In-memory rate provider keyed by (from, to, date)."""

    name = "static"

    def __init__(self, rates: Optional[Mapping[tuple[str, str, date], Decimal]] = None):
        self.rates: dict[tuple[str, str, date], Decimal] = dict(rates or {})
        self.calls = 0

    def add(self, from_currency: str, to_currency: str, on_date: date, rate: Decimal) -> None:
        self.rates[(from_currency, to_currency, on_date)] = rate

    def fetch_rate(self, from_currency: str, to_currency: str, on_date: date) -> Optional[Decimal]:
        self.calls += 1
        return self.rates.get((from_currency, to_currency, on_date))


class CSVStatementProvider:
    """Bank data provider backed by a CSV statement file (manual import).

    Args:
        csv_file_path: Path to the CSV file
        column_map: Maps ledger fields (date, amount, external_id, name,
            notes, currency) to CSV column headers. ``date`` and ``amount``
            are required. Without an ``external_id`` column a stable ID is
            derived from the row contents.
        negate_amounts: Flip signs for statements where spending is positive
    """

    REQUIRED_FIELDS = ("date", "amount")

    def __init__(
        self,
        csv_file_path: str,
        column_map: Optional[Mapping[str, str]] = None,
        negate_amounts: bool = False,
    ):
        self.csv_path = Path(csv_file_path)
        self.column_map = dict(
            column_map or {"date": "Date", "amount": "Amount", "name": "Description"}
        )
        self.negate_amounts = negate_amounts
        self.errors: list[str] = []

        missing = [f for f in self.REQUIRED_FIELDS if f not in self.column_map]
        if missing:
            raise ValidationError(f"Column mapping is missing required fields: {', '.join(missing)}")

    def fetch_transactions(
        self, account: Account, start_date: Optional[date], end_date: date
    ) -> list[ProviderTransaction]:
        """Read rows inside [start_date, end_date]. Bad rows are collected in ``errors``."""
        if not self.csv_path.exists():
            raise ProviderError(f"CSV file not found: {self.csv_path}", retryable=False)

        self.errors = []
        results: list[ProviderTransaction] = []
        seen: dict[str, int] = {}

        with open(self.csv_path, "r", encoding="utf-8-sig", newline="") as f:
            sample = f.read(1024)
            f.seek(0)
            try:
                delimiter = csv.Sniffer().sniff(sample, delimiters=",;\t|").delimiter
            except csv.Error:
                delimiter = ","
            reader = csv.DictReader(f, delimiter=delimiter)

            if reader.fieldnames is None:
                raise ProviderError("CSV file has no columns", retryable=False)
            required_columns = {self.column_map[field] for field in self.REQUIRED_FIELDS}
            missing_columns = required_columns - set(reader.fieldnames)
            if missing_columns:
                raise ProviderError(
                    f"CSV file missing required columns: {', '.join(sorted(missing_columns))}",
                    retryable=False,
                )

            for row_num, row in enumerate(reader, start=2):
                values = {
                    field: (row.get(column) or "").strip() or None
                    for field, column in self.column_map.items()
                }
                if not values.get("date"):
                    self.errors.append(f"Row {row_num}: Missing date")
                    continue
                if not values.get("amount"):
                    self.errors.append(f"Row {row_num}: Missing amount")
                    continue
                try:
                    txn_date = parse_date(values["date"])
                    amount = parse_amount(values["amount"])
                except ValueError as e:
                    self.errors.append(f"Row {row_num}: {e}")
                    continue

                if self.negate_amounts:
                    amount = -amount
                if start_date is not None and txn_date < start_date:
                    continue
                if txn_date > end_date:
                    continue

                external_id = values.get("external_id") or self._derive_id(
                    account.id, txn_date, amount, values.get("name")
                )
                # Identical rows on the same day are distinct transactions
                occurrence = seen.get(external_id, 0)
                seen[external_id] = occurrence + 1
                if occurrence:
                    external_id = f"{external_id}-{occurrence}"

                results.append(
                    ProviderTransaction(
                        external_id=external_id,
                        date=txn_date,
                        amount=amount,
                        currency=(values.get("currency") or "").upper() or None,
                        name=values.get("name"),
                        notes=values.get("notes"),
                    )
                )

        return results

    @staticmethod
    def _derive_id(account_id: int, txn_date: date, amount: Decimal, name: Optional[str]) -> str:
        raw = f"{account_id}|{txn_date.isoformat()}|{amount}|{name or ''}"
        return "csv-" + hashlib.sha256(raw.encode("utf-8")).hexdigest()[:16]
