"""Transfer matcher: pairs opposite entries across a family's accounts."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from familyledger.database.base import Database
from familyledger.domain.entities import Entry, EntryKind, Transfer
from familyledger.domain.entry import effective_entries
from familyledger.domain.errors import (
    NotFoundError,
    RateUnavailable,
    ValidationError,
    family_not_found,
    transfer_not_found,
)
from familyledger.domain.exchange import CurrencyNormalizer
from familyledger.domain.jobs import widen
from familyledger.logging_config import get_logger
from familyledger.utils.locks import KeyedLocks

logger = get_logger(__name__)


@dataclass(frozen=True)
class _Candidate:
    outflow: Entry
    inflow: Entry
    date_delta: int
    amount_delta: Decimal

    @property
    def rank(self) -> tuple:
        return (self.date_delta, self.amount_delta, self.outflow.id, self.inflow.id)


class TransferMatcher:
    """Finds transfers between the accounts of one family.

    Args:
        db: Database instance
        normalizer: Converts amounts into the family currency
        window_days: Largest date difference between the two sides
        epsilon: Largest normalized amount difference between the two sides
        locks: Serializes matching runs of the same family
    """

    def __init__(
        self,
        db: Database,
        normalizer: CurrencyNormalizer,
        window_days: int,
        epsilon: Decimal,
        locks: Optional[KeyedLocks] = None,
    ):
        if window_days < 0:
            raise ValidationError("Transfer window cannot be negative")
        if epsilon < 0:
            raise ValidationError("Transfer epsilon cannot be negative")
        self.db = db
        self.normalizer = normalizer
        self.window_days = window_days
        self.epsilon = Decimal(epsilon)
        self.locks = locks or KeyedLocks()

    def match(self, family_id: int, date_window: tuple[date, date]) -> set[Transfer]:
        """Pair unclaimed outflows and inflows dated around ``date_window``.

        The window is widened by ``window_days`` on each side so a pair that
        straddles its edge is still found. Existing transfers are never
        changed, so running this again adds nothing.

        Returns:
            Every transfer whose entries fall in the widened window, including
            ones created by earlier runs

        Raises:
            NotFoundError: If the family does not exist
            ValidationError: If the window is inverted
        """
        family = self.db.get_family(family_id)
        if family is None:
            raise NotFoundError(family_not_found(family_id))
        start, end = date_window
        if start > end:
            raise ValidationError(f"Window start {start.isoformat()} is after end {end.isoformat()}")
        search_start, search_end = widen((start, end), self.window_days)

        with self.locks.hold(("match", family_id)):
            entries = [
                e
                for e in effective_entries(
                    self.db.list_entries(
                        family_id=family_id, start_date=search_start, end_date=search_end
                    )
                )
                if e.kind is EntryKind.TRANSACTION
            ]
            entry_ids = {e.id for e in entries}
            existing = [
                t
                for t in self.db.list_transfers(family_id)
                if t.outflow_entry_id in entry_ids or t.inflow_entry_id in entry_ids
            ]
            claimed = {t.outflow_entry_id for t in existing} | {t.inflow_entry_id for t in existing}
            rejected = self.db.list_rejected_pairs(family_id)

            normalized = self._normalize_all(
                [e for e in entries if e.id not in claimed], family.currency
            )
            outflows = [e for e in normalized if normalized[e] < 0]
            inflows = [e for e in normalized if normalized[e] > 0]

            candidates = []
            for out in outflows:
                for inflow in inflows:
                    if out.account_id == inflow.account_id:
                        continue
                    if (out.id, inflow.id) in rejected:
                        continue
                    date_delta = abs((inflow.date - out.date).days)
                    if date_delta > self.window_days:
                        continue
                    amount_delta = abs(-normalized[out] - normalized[inflow])
                    if amount_delta > self.epsilon:
                        continue
                    candidates.append(_Candidate(out, inflow, date_delta, amount_delta))

            used: set[int] = set()
            pairs = []
            for candidate in sorted(candidates, key=lambda c: c.rank):
                if candidate.outflow.id in used or candidate.inflow.id in used:
                    continue
                used.update((candidate.outflow.id, candidate.inflow.id))
                pairs.append((candidate.outflow.id, candidate.inflow.id))

            created = self.db.create_transfers(pairs) if pairs else []

        if created:
            logger.info(
                "Matched transfers",
                extra={"family_id": family_id, "created": len(created), "start": start, "end": end},
            )
        return set(existing) | set(created)

    def _normalize_all(self, entries: list[Entry], currency: str) -> dict[Entry, Decimal]:
        normalized = {}
        for entry in entries:
            try:
                normalized[entry] = self.normalizer.normalize(
                    entry.amount, entry.currency, currency, entry.date
                )
            except RateUnavailable as e:
                # Left unmatched until a rate exists and matching runs again
                logger.warning(
                    "Skipping entry without exchange rate",
                    extra={"entry_id": entry.id, "error": str(e)},
                )
        return normalized

    def list_transfers(self, family_id: int) -> list[Transfer]:
        return self.db.list_transfers(family_id)

    def unmatch(self, transfer_id: int) -> Transfer:
        """Remove a transfer. Its entries may be paired again by a later match."""
        transfer = self._require_transfer(transfer_id)
        self.db.delete_transfer(transfer_id)
        logger.info("Removed transfer", extra={"transfer_id": transfer_id})
        return transfer

    def reject(self, transfer_id: int) -> Transfer:
        """Remove a transfer and remember its pair so it is never proposed again."""
        transfer = self._require_transfer(transfer_id)
        self.db.reject_transfer_pair(transfer.outflow_entry_id, transfer.inflow_entry_id)
        self.db.delete_transfer(transfer_id)
        logger.info(
            "Rejected transfer",
            extra={
                "transfer_id": transfer_id,
                "outflow_entry_id": transfer.outflow_entry_id,
                "inflow_entry_id": transfer.inflow_entry_id,
            },
        )
        return transfer

    def _require_transfer(self, transfer_id: int) -> Transfer:
        transfer = self.db.get_transfer(transfer_id)
        if transfer is None:
            raise NotFoundError(transfer_not_found(transfer_id))
        return transfer
