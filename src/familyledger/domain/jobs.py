"""Follow-up work queue and the subscriptions that feed it.

The queue stands in for an external background job runner: work is enqueued
now and run later by whoever drains it. Jobs must be idempotent because a
failed job stays queued and runs again on the next drain.
"""

import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Callable, Hashable, Optional

from familyledger.domain.events import EntryAppended, EntryVoided, EventBus
from familyledger.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class Job:
    key: Hashable
    func: Callable[[], Any]
    attempts: int = 0
    last_error: Optional[str] = None


@dataclass
class DrainResult:
    succeeded: int = 0
    failed: list[str] = field(default_factory=list)
    dead: list[str] = field(default_factory=list)


class JobQueue:
    """FIFO of keyed jobs. Enqueueing a key that is already pending is a no-op.

    Args:
        max_attempts: Attempts before a job is moved to ``dead_letters``
    """

    def __init__(self, max_attempts: int = 5):
        self.max_attempts = max_attempts
        self._lock = threading.Lock()
        self._pending: "OrderedDict[Hashable, Job]" = OrderedDict()
        self.dead_letters: list[Job] = []

    def enqueue(self, key: Hashable, func: Callable[[], Any]) -> bool:
        """Queue ``func`` under ``key``. Returns False if the key was already pending."""
        with self._lock:
            if key in self._pending:
                return False
            self._pending[key] = Job(key=key, func=func)
            return True

    def pending_keys(self) -> list[Hashable]:
        with self._lock:
            return list(self._pending)

    def run_pending(self) -> DrainResult:
        """Run every job pending at call time once.

        A job is taken off the queue while it runs, so the same key can be
        enqueued again meanwhile. A failed job goes back on the queue unless
        a newer job with its key is already waiting.
        """
        result = DrainResult()
        with self._lock:
            batch = list(self._pending.values())
            self._pending.clear()

        for job in batch:
            job.attempts += 1
            try:
                job.func()
            except Exception as e:
                job.last_error = str(e)
                if job.attempts >= self.max_attempts:
                    self.dead_letters.append(job)
                    result.dead.append(str(job.key))
                    logger.error(
                        "Job exhausted its attempts",
                        exc_info=True,
                        extra={"job": str(job.key), "attempts": job.attempts},
                    )
                else:
                    with self._lock:
                        self._pending.setdefault(job.key, job)
                    result.failed.append(str(job.key))
                    logger.warning(
                        "Job failed; will retry on next drain",
                        exc_info=True,
                        extra={"job": str(job.key), "attempts": job.attempts},
                    )
                continue
            result.succeeded += 1

        return result


class FollowUpScheduler:
    """Turns committed entry events into recompute and transfer-match jobs.

    Recompute requests for the same account coalesce to the earliest date;
    match requests for the same family coalesce to the union of windows. A
    running job takes its request off the table, so requests arriving while
    it runs are served by the next drain, and a failed job puts its request
    back.
    """

    def __init__(self, queue: JobQueue, calculator, matcher):
        self.queue = queue
        self.calculator = calculator
        self.matcher = matcher
        self._lock = threading.Lock()
        self._recompute_from: dict[int, date] = {}
        self._match_window: dict[int, tuple[date, date]] = {}

    def subscribe(self, bus: EventBus) -> None:
        bus.subscribe(EntryAppended, self.on_entry_appended)
        bus.subscribe(EntryVoided, self.on_entry_voided)

    def on_entry_appended(self, event: EntryAppended) -> None:
        self.schedule_recompute(event.entry.account_id, event.entry.date)
        self.schedule_match(event.family_id, event.entry.date, event.entry.date)

    def on_entry_voided(self, event: EntryVoided) -> None:
        day = event.original.date
        self.schedule_recompute(event.original.account_id, day)
        # The voided entry's transfer is gone; its counterpart can pair again
        self.schedule_match(event.family_id, *widen((day, day), self.matcher.window_days))

    def schedule_recompute(self, account_id: int, from_date: date) -> None:
        with self._lock:
            current = self._recompute_from.get(account_id)
            if current is None or from_date < current:
                self._recompute_from[account_id] = from_date
        self.queue.enqueue(("recompute", account_id), lambda: self._run_recompute(account_id))

    def schedule_match(self, family_id: int, start: date, end: date) -> None:
        with self._lock:
            current = self._match_window.get(family_id)
            if current is not None:
                start, end = min(start, current[0]), max(end, current[1])
            self._match_window[family_id] = (start, end)
        self.queue.enqueue(("match", family_id), lambda: self._run_match(family_id))

    def _run_recompute(self, account_id: int) -> None:
        with self._lock:
            from_date = self._recompute_from.pop(account_id, None)
        if from_date is None:
            return
        try:
            self.calculator.recompute_from(account_id, from_date)
        except Exception:
            with self._lock:
                current = self._recompute_from.get(account_id)
                if current is None or from_date < current:
                    self._recompute_from[account_id] = from_date
            raise

    def _run_match(self, family_id: int) -> None:
        with self._lock:
            window = self._match_window.pop(family_id, None)
        if window is None:
            return
        try:
            self.matcher.match(family_id, window)
        except Exception:
            with self._lock:
                current = self._match_window.get(family_id)
                if current is not None:
                    window = min(window[0], current[0]), max(window[1], current[1])
                self._match_window[family_id] = window
            raise


def widen(window: tuple[date, date], days: int) -> tuple[date, date]:
    """Extend a date window by ``days`` on both sides."""
    return window[0] - timedelta(days=days), window[1] + timedelta(days=days)
