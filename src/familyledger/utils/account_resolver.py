"""Utilities for resolving family and account names to IDs."""

from typing import TYPE_CHECKING

from familyledger.domain.errors import NotFoundError

if TYPE_CHECKING:
    from familyledger.domain.account import AccountService
    from familyledger.domain.family import FamilyService


def _as_id(value: str | int) -> int | None:
    if isinstance(value, int):
        return value
    if value.strip().isdigit():
        return int(value)
    return None


def resolve_family(family_service: "FamilyService", family: str | int) -> int:
    """Resolve a family name or ID to a family ID.

    Raises:
        NotFoundError: If no family matches
    """
    family_id = _as_id(family)
    if family_id is not None:
        if family_service.get_family(family_id) is None:
            raise NotFoundError(f"Family ID {family_id} not found")
        return family_id

    for fam in family_service.list_families():
        if fam.name == family:
            return fam.id

    raise NotFoundError(f"Family '{family}' not found")


def resolve_account(account_service: "AccountService", family_id: int, account: str | int) -> int:
    """Resolve an account name or ID to an account ID.

    IDs are only accepted when the account belongs to ``family_id``.

    Raises:
        NotFoundError: If the account is not found in the family
    """
    account_id = _as_id(account)
    if account_id is not None:
        found = account_service.get_account(account_id)
        if found is None or found.family_id != family_id:
            raise NotFoundError(f"Account ID {account_id} not found in family {family_id}")
        return account_id

    for acc in account_service.list_accounts(family_id):
        if acc.name == account:
            return acc.id

    raise NotFoundError(f"Account '{account}' not found in family {family_id}")
