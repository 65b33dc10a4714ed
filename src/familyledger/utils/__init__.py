"""Utility functions for familyledger."""

from familyledger.utils.date_parser import parse_date
from familyledger.utils.amount_parser import parse_amount
from familyledger.utils.account_resolver import resolve_account, resolve_family
from familyledger.utils.locks import KeyedLocks, CancellationToken

__all__ = [
    "parse_date",
    "parse_amount",
    "resolve_account",
    "resolve_family",
    "KeyedLocks",
    "CancellationToken",
]
