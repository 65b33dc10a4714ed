"""Domain layer for familyledger application."""

_SERVICES = {
    "FamilyService": "familyledger.domain.family",
    "AccountService": "familyledger.domain.account",
    "CurrencyNormalizer": "familyledger.domain.exchange",
    "EntryStore": "familyledger.domain.entry",
    "BalanceCalculator": "familyledger.domain.balance",
    "TransferMatcher": "familyledger.domain.transfer",
    "SyncOrchestrator": "familyledger.domain.sync",
    "BalanceSheetService": "familyledger.domain.balance_sheet",
}

__all__ = list(_SERVICES)


# Services import the database layer, which imports domain.entities; resolve
# them lazily so importing entities does not pull the services in.
def __getattr__(name):
    if name in _SERVICES:
        import importlib

        return getattr(importlib.import_module(_SERVICES[name]), name)
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
