"""Tests for CurrencyNormalizer."""

import threading
import time
from datetime import date
from decimal import Decimal

import pytest

from familyledger.domain.errors import ProviderError, RateUnavailable, ValidationError
from familyledger.domain.exchange import CurrencyNormalizer
from familyledger.domain.providers import StaticRateProvider

DAY = date(2024, 1, 15)


class FlakyProvider:
    """Fails with a retryable error a number of times before answering."""

    name = "flaky"

    def __init__(self, failures: int, rate: Decimal, retryable: bool = True):
        self.failures = failures
        self.rate = rate
        self.retryable = retryable
        self.calls = 0

    def fetch_rate(self, from_currency, to_currency, on_date):
        self.calls += 1
        if self.calls <= self.failures:
            raise ProviderError("rate service unavailable", retryable=self.retryable)
        return self.rate


class SlowProvider:
    name = "slow"

    def __init__(self, delay: float, rate: Decimal = Decimal("1.10")):
        self.delay = delay
        self.rate = rate
        self.calls = 0
        self._lock = threading.Lock()

    def fetch_rate(self, from_currency, to_currency, on_date):
        with self._lock:
            self.calls += 1
        time.sleep(self.delay)
        return self.rate


def _normalizer(db, provider=None, **kwargs):
    kwargs.setdefault("retry_backoff", 0)
    kwargs.setdefault("retry_max_wait", 0)
    return CurrencyNormalizer(db, provider=provider, **kwargs)


def test_fetches_and_caches_missing_rate(temp_db):
    provider = StaticRateProvider({("EUR", "USD", DAY): Decimal("1.10")})
    normalizer = _normalizer(temp_db, provider)

    assert normalizer.normalize(Decimal("100"), "EUR", "USD", DAY) == Decimal("110.00")
    assert normalizer.normalize(Decimal("100"), "EUR", "USD", DAY) == Decimal("110.00")

    assert provider.calls == 1
    cached = temp_db.get_exchange_rate("EUR", "USD", DAY)
    assert cached.rate == Decimal("1.10")
    assert cached.source == "static"


def test_same_currency_is_identity_without_lookup(temp_db):
    provider = StaticRateProvider()
    normalizer = _normalizer(temp_db, provider)

    assert normalizer.normalize(Decimal("12.345"), "USD", "USD", DAY) == Decimal("12.345")
    assert provider.calls == 0


def test_no_provider_and_no_cache_raises(temp_db):
    normalizer = _normalizer(temp_db)

    with pytest.raises(RateUnavailable) as excinfo:
        normalizer.normalize(Decimal("1"), "EUR", "USD", DAY)
    assert excinfo.value.from_currency == "EUR"
    assert excinfo.value.on_date == DAY
    assert not excinfo.value.retryable


def test_rates_are_not_interpolated_across_dates(temp_db):
    normalizer = _normalizer(temp_db, StaticRateProvider())
    normalizer.set_rate("EUR", "USD", date(2024, 1, 14), Decimal("1.09"))

    with pytest.raises(RateUnavailable):
        normalizer.normalize(Decimal("1"), "EUR", "USD", DAY)


def test_provider_without_rate_raises(temp_db):
    normalizer = _normalizer(temp_db, StaticRateProvider())

    with pytest.raises(RateUnavailable, match="provider has no rate"):
        normalizer.get_rate("GBP", "USD", DAY)


def test_retryable_failures_are_retried(temp_db):
    provider = FlakyProvider(failures=2, rate=Decimal("0.85"))
    normalizer = _normalizer(temp_db, provider, retry_attempts=3)

    assert normalizer.get_rate("USD", "EUR", DAY) == Decimal("0.85")
    assert provider.calls == 3


def test_retries_are_bounded(temp_db):
    provider = FlakyProvider(failures=10, rate=Decimal("0.85"))
    normalizer = _normalizer(temp_db, provider, retry_attempts=2)

    with pytest.raises(RateUnavailable) as excinfo:
        normalizer.get_rate("USD", "EUR", DAY)
    assert excinfo.value.retryable
    assert provider.calls == 2
    assert temp_db.get_exchange_rate("USD", "EUR", DAY) is None


def test_permanent_failures_are_not_retried(temp_db):
    provider = FlakyProvider(failures=10, rate=Decimal("0.85"), retryable=False)
    normalizer = _normalizer(temp_db, provider, retry_attempts=3)

    with pytest.raises(RateUnavailable) as excinfo:
        normalizer.get_rate("USD", "EUR", DAY)
    assert not excinfo.value.retryable
    assert provider.calls == 1


def test_slow_provider_times_out_as_retryable(temp_db):
    provider = SlowProvider(delay=0.5)
    normalizer = _normalizer(temp_db, provider, timeout=0.05, retry_attempts=1)

    with pytest.raises(RateUnavailable) as excinfo:
        normalizer.get_rate("EUR", "USD", DAY)
    assert excinfo.value.retryable
    assert "timed out" in str(excinfo.value)


def test_concurrent_lookups_share_one_fetch(temp_db):
    provider = SlowProvider(delay=0.1)
    normalizer = _normalizer(temp_db, provider)
    results = []

    def lookup():
        results.append(normalizer.get_rate("EUR", "USD", DAY))
        temp_db.disconnect()

    threads = [threading.Thread(target=lookup) for _ in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results == [Decimal("1.10")] * 5
    assert provider.calls == 1


def test_set_rate_overrides_cache(temp_db):
    normalizer = _normalizer(temp_db)
    normalizer.set_rate("eur", "usd", DAY, Decimal("1.10"))
    normalizer.set_rate("EUR", "USD", DAY, Decimal("1.12"))

    assert normalizer.get_rate("EUR", "USD", DAY) == Decimal("1.12")
    rates = normalizer.list_rates("EUR")
    assert len(rates) == 1
    assert rates[0].source == "manual"


@pytest.mark.parametrize("bad_rate", [Decimal("0"), Decimal("-1")])
def test_set_rate_rejects_non_positive(temp_db, bad_rate):
    normalizer = _normalizer(temp_db)
    with pytest.raises(ValidationError):
        normalizer.set_rate("EUR", "USD", DAY, bad_rate)


def test_set_rate_rejects_same_currency(temp_db):
    with pytest.raises(ValidationError):
        _normalizer(temp_db).set_rate("USD", "USD", DAY, Decimal("1"))


def test_convert_many_sums_in_target_currency(temp_db):
    normalizer = _normalizer(temp_db)
    normalizer.set_rate("EUR", "USD", DAY, Decimal("1.10"))
    normalizer.set_rate("GBP", "USD", DAY, Decimal("1.25"))

    total = normalizer.convert_many(
        [(Decimal("100"), "EUR"), (Decimal("10"), "GBP"), (Decimal("5"), "USD")], "USD", DAY
    )
    assert total == Decimal("127.50")


def test_result_is_rounded_to_target_minor_unit(temp_db):
    normalizer = _normalizer(temp_db)
    normalizer.set_rate("USD", "JPY", DAY, Decimal("147.333"))

    assert normalizer.normalize(Decimal("10"), "USD", "JPY", DAY) == Decimal("1473")
