"""Family-wide balance sheet built from account balances."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from familyledger.database.base import Database
from familyledger.domain.entities import AccountStatus, Classification
from familyledger.domain.errors import NotFoundError, family_not_found
from familyledger.domain.exchange import CurrencyNormalizer


@dataclass(frozen=True)
class AccountLine:
    account_id: int
    name: str
    classification: Classification
    currency: str
    balance: Decimal
    normalized: Decimal


@dataclass(frozen=True)
class NetWorth:
    """Assets and liabilities of a family on one date, in the family currency."""

    family_id: int
    date: date
    currency: str
    assets: Decimal
    liabilities: Decimal
    lines: list[AccountLine] = field(default_factory=list)

    @property
    def net_worth(self) -> Decimal:
        return self.assets - self.liabilities


class BalanceSheetService:
    """Aggregates persisted balances across a family's accounts."""

    def __init__(self, db: Database, normalizer: CurrencyNormalizer):
        self.db = db
        self.normalizer = normalizer

    def net_worth(self, family_id: int, on_date: date) -> NetWorth:
        """Compute net worth from each account's latest balance on or before ``on_date``.

        Accounts without a balance row count as their opening balance.
        Accounts pending deletion are left out.

        Raises:
            NotFoundError: If the family does not exist
            RateUnavailable: If an account balance cannot be normalized
        """
        family = self.db.get_family(family_id)
        if family is None:
            raise NotFoundError(family_not_found(family_id))

        assets = Decimal("0")
        liabilities = Decimal("0")
        lines = []
        for account in self.db.list_accounts(family_id):
            if account.status is AccountStatus.PENDING_DELETION:
                continue
            row = self.db.get_balance_on_or_before(account.id, on_date)
            balance = row.balance if row is not None else account.opening_balance
            normalized = self.normalizer.normalize(balance, account.currency, family.currency, on_date)
            if account.classification is Classification.ASSET:
                assets += normalized
            else:
                liabilities += normalized
            lines.append(
                AccountLine(
                    account_id=account.id,
                    name=account.name,
                    classification=account.classification,
                    currency=account.currency,
                    balance=balance,
                    normalized=normalized,
                )
            )

        return NetWorth(
            family_id=family_id,
            date=on_date,
            currency=family.currency,
            assets=assets,
            liabilities=liabilities,
            lines=lines,
        )
