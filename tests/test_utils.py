"""Tests for name resolution and locking helpers."""

import threading

import pytest

from familyledger.domain.errors import NotFoundError
from familyledger.utils import CancellationToken, KeyedLocks, resolve_account, resolve_family


class TestResolvers:
    def test_resolve_family_by_name_or_id(self, ledger, family_id):
        assert resolve_family(ledger.families, "Smith") == family_id
        assert resolve_family(ledger.families, str(family_id)) == family_id
        assert resolve_family(ledger.families, family_id) == family_id

    def test_resolve_unknown_family(self, ledger, family_id):
        with pytest.raises(NotFoundError):
            resolve_family(ledger.families, "Jones")
        with pytest.raises(NotFoundError):
            resolve_family(ledger.families, "999")

    def test_resolve_account(self, ledger, family_id, checking):
        assert resolve_account(ledger.accounts, family_id, "Checking") == checking.id
        assert resolve_account(ledger.accounts, family_id, str(checking.id)) == checking.id

    def test_account_of_other_family_is_not_resolved(self, ledger, checking):
        other = ledger.families.create_family("Adams", "USD")

        with pytest.raises(NotFoundError):
            resolve_account(ledger.accounts, other, checking.id)
        with pytest.raises(NotFoundError):
            resolve_account(ledger.accounts, other, "Checking")


class TestKeyedLocks:
    def test_try_acquire_is_exclusive_per_key(self):
        locks = KeyedLocks()

        assert locks.try_acquire("a")
        assert not locks.try_acquire("a")
        assert locks.try_acquire("b")
        assert locks.is_held("a")

        locks.release("a")
        assert not locks.is_held("a")

    def test_hold_serializes_writers(self):
        locks = KeyedLocks()
        counter = {"value": 0}

        def bump():
            for _ in range(200):
                with locks.hold("counter"):
                    current = counter["value"]
                    counter["value"] = current + 1

        threads = [threading.Thread(target=bump) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert counter["value"] == 800


def test_cancellation_token():
    token = CancellationToken()
    assert not token.cancelled
    token.cancel()
    assert token.cancelled
