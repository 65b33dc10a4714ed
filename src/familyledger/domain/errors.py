"""Shared domain error messages and error types."""

from datetime import date
from typing import Optional


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations."""


class InvalidEntry(ValidationError):
    """Entry rejected at append or void time. Never retried."""


class InvalidTransition(DomainError):
    """Sync state machine received an event not allowed in its current state."""

    def __init__(self, state: str, event: str):
        self.state = state
        self.event = event
        super().__init__(f"Cannot apply '{event}' to a sync in state '{state}'")


class RateUnavailable(DomainError):
    """No exchange rate could be found or fetched for a (from, to, date) key."""

    def __init__(
        self,
        from_currency: str,
        to_currency: str,
        on_date: date,
        retryable: bool = False,
        reason: Optional[str] = None,
    ):
        self.from_currency = from_currency
        self.to_currency = to_currency
        self.on_date = on_date
        self.retryable = retryable
        message = f"No exchange rate for {from_currency}->{to_currency} on {on_date.isoformat()}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ProviderError(DomainError):
    """An external provider call failed."""

    def __init__(self, message: str, retryable: bool = True):
        self.retryable = retryable
        super().__init__(message)


class ProviderTimeout(ProviderError):
    """An external provider call exceeded its time budget."""

    def __init__(self, operation: str, timeout: float):
        self.operation = operation
        self.timeout = timeout
        super().__init__(f"{operation} timed out after {timeout:g}s", retryable=True)


class SyncFailed(DomainError):
    """One or more sync units failed.

    ``failures`` maps a unit label (e.g. ``account:3``) to its error message.
    """

    def __init__(self, failures: dict[str, str]):
        self.failures = dict(failures)
        summary = "; ".join(f"{unit}: {msg}" for unit, msg in sorted(self.failures.items()))
        super().__init__(f"Sync failed for {len(self.failures)} unit(s): {summary}")


class ConcurrentSyncConflict(ConflictError):
    """A sync was requested for a unit that already has one running."""

    def __init__(self, syncable_type: str, syncable_id: int):
        self.syncable_type = syncable_type
        self.syncable_id = syncable_id
        super().__init__(
            f"A sync is already running for {syncable_type} {syncable_id}; try again later"
        )


def family_not_found(family_id: int) -> str:
    """Return message for missing family."""
    return f"Family {family_id} not found"


def account_not_found(account_id: int) -> str:
    """Return message for missing account."""
    return f"Account {account_id} not found"


def entry_not_found(entry_id: int) -> str:
    """Return message for missing entry."""
    return f"Entry {entry_id} not found"


def transfer_not_found(transfer_id: int) -> str:
    """Return message for missing transfer."""
    return f"Transfer {transfer_id} not found"


def duplicate_account_name(name: str, family_id: int) -> str:
    """Return message for a duplicate account name inside a family."""
    return f"Account with name '{name}' already exists in family {family_id}"


def duplicate_external_id(external_id: str, account_id: int) -> str:
    """Return message for duplicate provider transaction ID."""
    return f"Entry with external_id '{external_id}' already exists for account {account_id}"


def unknown_currency(code: str) -> str:
    """Return message for an unrecognized currency code."""
    return f"Unknown currency code '{code}'"
