"""Currency normalization domain service."""

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional

from familyledger.database.base import Database
from familyledger.domain.currency import normalize_currency, quantize
from familyledger.domain.entities import ExchangeRate
from familyledger.domain.errors import ProviderError, RateUnavailable, ValidationError
from familyledger.domain.providers import ExchangeRateProvider, call_with_timeout, provider_retrying
from familyledger.logging_config import get_logger
from familyledger.utils.locks import KeyedLocks

logger = get_logger(__name__)


class CurrencyNormalizer:
    """Converts amounts between currencies using dated exchange rates.

    Lookup order is: exact-date cached rate, then the provider (whose answer
    is written through to the cache), then :class:`RateUnavailable`. Rates are
    never interpolated across dates.
    """

    def __init__(
        self,
        db: Database,
        provider: Optional[ExchangeRateProvider] = None,
        timeout: float = 10.0,
        retry_attempts: int = 3,
        retry_backoff: float = 1.0,
        retry_max_wait: float = 10.0,
    ):
        """Initialize currency normalizer.

        Args:
            db: Database instance holding the rate cache
            provider: Optional external rate provider
            timeout: Seconds allowed per provider call
            retry_attempts: Attempts for retryable provider failures
            retry_backoff: Exponential backoff multiplier in seconds
            retry_max_wait: Longest single wait between attempts
        """
        self.db = db
        self.provider = provider
        self.timeout = timeout
        self._retrying = provider_retrying(retry_attempts, retry_backoff, retry_max_wait)
        self._fill_locks = KeyedLocks()

    def normalize(
        self, amount: Decimal, from_currency: str, to_currency: str, on_date: date
    ) -> Decimal:
        """Convert ``amount`` into ``to_currency`` using the rate for ``on_date``.

        Returns the amount unchanged when both currencies are the same.

        Raises:
            RateUnavailable: If no rate is cached and none can be fetched
        """
        if from_currency == to_currency:
            return amount
        rate = self.get_rate(from_currency, to_currency, on_date)
        return quantize(amount * rate, to_currency)

    def convert_many(
        self, amounts: Iterable[tuple[Decimal, str]], to_currency: str, on_date: date
    ) -> Decimal:
        """Sum (amount, currency) pairs after normalizing each into ``to_currency``."""
        total = Decimal("0")
        for amount, currency in amounts:
            total += self.normalize(amount, currency, to_currency, on_date)
        return total

    def get_rate(self, from_currency: str, to_currency: str, on_date: date) -> Decimal:
        """Return the rate for the exact (from, to, date) key.

        Raises:
            RateUnavailable: If no rate is cached and none can be fetched
        """
        from_currency = normalize_currency(from_currency)
        to_currency = normalize_currency(to_currency)
        if from_currency == to_currency:
            return Decimal("1")

        cached = self.db.get_exchange_rate(from_currency, to_currency, on_date)
        if cached is not None:
            return cached.rate

        if self.provider is None:
            raise RateUnavailable(from_currency, to_currency, on_date, reason="no rate provider configured")

        # One fetch per key; concurrent callers wait and then hit the cache
        with self._fill_locks.hold((from_currency, to_currency, on_date)):
            cached = self.db.get_exchange_rate(from_currency, to_currency, on_date)
            if cached is not None:
                return cached.rate
            return self._fetch_and_cache(from_currency, to_currency, on_date)

    def _fetch_and_cache(self, from_currency: str, to_currency: str, on_date: date) -> Decimal:
        try:
            fetched = self._retrying(
                call_with_timeout,
                "exchange rate fetch",
                self.timeout,
                self.provider.fetch_rate,
                from_currency,
                to_currency,
                on_date,
            )
        except ProviderError as e:
            logger.warning(
                "Rate provider failed",
                extra={"from": from_currency, "to": to_currency, "date": on_date, "error": str(e)},
            )
            raise RateUnavailable(from_currency, to_currency, on_date, retryable=e.retryable, reason=str(e))

        if fetched is None:
            raise RateUnavailable(from_currency, to_currency, on_date, reason="provider has no rate")
        rate = self._coerce_rate(fetched)

        source = getattr(self.provider, "name", type(self.provider).__name__)
        inserted = self.db.insert_exchange_rate_if_absent(
            ExchangeRate(from_currency, to_currency, on_date, rate, source)
        )
        if not inserted:
            # Another writer stored the key first; its value wins
            existing = self.db.get_exchange_rate(from_currency, to_currency, on_date)
            if existing is not None:
                return existing.rate
        logger.info(
            "Cached exchange rate",
            extra={"from": from_currency, "to": to_currency, "date": on_date, "rate": rate},
        )
        return rate

    @staticmethod
    def _coerce_rate(value) -> Decimal:
        try:
            rate = value if isinstance(value, Decimal) else Decimal(str(value))
        except InvalidOperation:
            raise ValidationError(f"Provider returned a non-numeric rate: {value!r}")
        if not rate.is_finite() or rate <= 0:
            raise ValidationError(f"Exchange rate must be positive, got {rate}")
        return rate

    def set_rate(
        self,
        from_currency: str,
        to_currency: str,
        on_date: date,
        rate: Decimal,
        source: str = "manual",
    ) -> None:
        """Record a rate by hand, replacing any cached value for the key.

        Raises:
            ValidationError: If currencies are unknown or identical, or the rate is not positive
        """
        from_currency = normalize_currency(from_currency)
        to_currency = normalize_currency(to_currency)
        if from_currency == to_currency:
            raise ValidationError("Cannot set a rate between a currency and itself")
        self.db.upsert_exchange_rate(
            ExchangeRate(from_currency, to_currency, on_date, self._coerce_rate(rate), source)
        )

    def list_rates(
        self, from_currency: Optional[str] = None, to_currency: Optional[str] = None
    ) -> list[ExchangeRate]:
        """List cached rates, optionally filtered by currency pair."""
        return self.db.list_exchange_rates(
            normalize_currency(from_currency) if from_currency else None,
            normalize_currency(to_currency) if to_currency else None,
        )
