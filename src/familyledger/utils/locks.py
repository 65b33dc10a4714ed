"""In-process locking helpers."""

import threading
from contextlib import contextmanager
from typing import Hashable, Iterator


class KeyedLocks:
    """A lazily populated family of locks, one per key.

    Used for the single-writer-per-account discipline, the at-most-one
    running sync per unit guard, and rate cache fills.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[Hashable, threading.Lock] = {}

    def _lock_for(self, key: Hashable) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        """Block until the lock for ``key`` is free, hold it for the block."""
        lock = self._lock_for(key)
        with lock:
            yield

    def try_acquire(self, key: Hashable) -> bool:
        """Acquire the lock for ``key`` without waiting. Returns False if held."""
        return self._lock_for(key).acquire(blocking=False)

    def release(self, key: Hashable) -> None:
        self._lock_for(key).release()

    def is_held(self, key: Hashable) -> bool:
        return self._lock_for(key).locked()


class CancellationToken:
    """Cooperative cancellation flag checked between sync steps."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()
