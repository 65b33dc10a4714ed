"""Account domain service."""

from decimal import Decimal
from typing import Optional, Union

from familyledger.database.base import Database
from familyledger.domain.currency import normalize_currency
from familyledger.domain.entities import Account as AccountEntity, AccountKind, AccountStatus
from familyledger.domain.errors import (
    ConflictError,
    NotFoundError,
    ValidationError,
    account_not_found,
    duplicate_account_name,
    family_not_found,
)


def _enum_value(enum_cls, value, label: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Invalid {label} '{value}'. Choose one of: {choices}")


class AccountService:
    """Service for managing accounts."""

    def __init__(self, db: Database):
        """Initialize account service.

        Args:
            db: Database instance
        """
        self.db = db

    def create_account(
        self,
        family_id: int,
        name: str,
        currency: str,
        kind: Union[AccountKind, str],
        opening_balance: Decimal = Decimal("0"),
        status: Union[AccountStatus, str] = AccountStatus.ACTIVE,
        institution_name: Optional[str] = None,
    ) -> int:
        """Create a new account.

        Args:
            family_id: Owning family ID
            name: Account name, unique within the family
            currency: Account currency (ISO 4217)
            kind: Account kind
            opening_balance: Balance before the first entry
            status: Initial lifecycle status
            institution_name: Optional bank or institution name

        Returns:
            Account ID

        Raises:
            NotFoundError: If the family does not exist
            ValidationError: If name, currency, kind or status are invalid
            ConflictError: If account name already exists in the family
        """
        if self.db.get_family(family_id) is None:
            raise NotFoundError(family_not_found(family_id))
        name = (name or "").strip()
        if not name:
            raise ValidationError("Account name cannot be empty")

        # Check if account with same name exists
        for acc in self.db.list_accounts(family_id):
            if acc.name == name:
                raise ConflictError(duplicate_account_name(name, family_id))

        return self.db.create_account(
            family_id=family_id,
            name=name,
            currency=normalize_currency(currency),
            kind=_enum_value(AccountKind, kind, "account kind"),
            status=_enum_value(AccountStatus, status, "account status"),
            opening_balance=Decimal(opening_balance),
            institution_name=institution_name,
        )

    def get_account(self, account_id: int) -> Optional[AccountEntity]:
        """Get account by ID.

        Args:
            account_id: Account ID

        Returns:
            Account entity or None if not found
        """
        return self.db.get_account(account_id)

    def require_account(self, account_id: int) -> AccountEntity:
        """Get account by ID, raising NotFoundError if it does not exist."""
        account = self.db.get_account(account_id)
        if account is None:
            raise NotFoundError(account_not_found(account_id))
        return account

    def list_accounts(self, family_id: Optional[int] = None) -> list[AccountEntity]:
        """List accounts, optionally limited to one family."""
        return self.db.list_accounts(family_id)

    def rename_account(
        self, account_id: int, name: str, institution_name: Optional[str] = None
    ) -> None:
        """Rename an account.

        Args:
            account_id: Account ID to rename
            name: New account name
            institution_name: Optional new institution name (if None, it is not updated)

        Raises:
            NotFoundError: If account not found
            ConflictError: If name already exists in the family
        """
        account = self.require_account(account_id)
        name = (name or "").strip()
        if not name:
            raise ValidationError("Account name cannot be empty")

        # Check for duplicate names (excluding current account)
        for acc in self.db.list_accounts(account.family_id):
            if acc.id != account_id and acc.name == name:
                raise ConflictError(duplicate_account_name(name, account.family_id))

        self.db.update_account(account_id, name=name, institution_name=institution_name)

    def set_status(self, account_id: int, status: Union[AccountStatus, str]) -> AccountStatus:
        """Move an account to another lifecycle status.

        Disabled and pending-deletion accounts reject new entries.
        """
        self.require_account(account_id)
        new_status = _enum_value(AccountStatus, status, "account status")
        self.db.update_account(account_id, status=new_status)
        return new_status

    def delete_account(self, account_id: int) -> None:
        """Delete an account with its entries, balances and transfers.

        Raises:
            NotFoundError: If account not found
        """
        self.require_account(account_id)
        self.db.delete_account(account_id)
