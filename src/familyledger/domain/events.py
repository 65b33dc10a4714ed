"""In-process domain events.

Writers publish an event after their commit succeeds; subscribers decide what
follow-up work to schedule. The storage write itself never triggers
recomputation.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

from familyledger.domain.entities import Entry, Sync
from familyledger.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class EntryAppended:
    entry: Entry
    family_id: int


@dataclass(frozen=True)
class EntryVoided:
    original: Entry
    compensation: Entry
    family_id: int


@dataclass(frozen=True)
class SyncFinished:
    sync: Sync
    window_start: Optional[date] = None
    window_end: Optional[date] = None


Handler = Callable[[object], None]


class EventBus:
    """Synchronous publish/subscribe dispatcher keyed by event type."""

    def __init__(self) -> None:
        self._handlers: dict[type, list[Handler]] = defaultdict(list)

    def subscribe(self, event_type: type, handler: Handler) -> None:
        self._handlers[event_type].append(handler)

    def publish(self, event: object) -> None:
        """Deliver an event to every subscriber of its type.

        A failing subscriber is logged and does not stop delivery to the
        others; the write that produced the event is already committed.
        """
        for handler in list(self._handlers.get(type(event), [])):
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Event handler failed",
                    extra={"event_type": type(event).__name__, "handler": getattr(handler, "__name__", repr(handler))},
                )
