"""Runtime settings read from FAMILYLEDGER_* environment variables."""

import os
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Mapping, Optional

ENV_PREFIX = "FAMILYLEDGER_"


@dataclass(frozen=True)
class Settings:
    """Ledger settings.

    Attributes:
        database_path: SQLite database file
        transfer_window_days: Max days between the two sides of a transfer
        transfer_epsilon: Max difference between normalized transfer amounts
        provider_timeout: Seconds allowed for one external provider call
        retry_attempts: Total attempts for a retryable provider call
        retry_backoff: Multiplier (seconds) for exponential backoff between attempts
        retry_max_wait: Upper bound (seconds) of a single backoff wait
        sync_stale_after: Seconds before an unfinished sync stops blocking its unit
        log_level: Level name for the familyledger logger
        log_json: Emit JSON lines instead of plain text
    """

    database_path: Optional[str] = None
    transfer_window_days: int = 3
    transfer_epsilon: Decimal = Decimal("0.01")
    provider_timeout: float = 10.0
    retry_attempts: int = 3
    retry_backoff: float = 1.0
    retry_max_wait: float = 10.0
    sync_stale_after: float = 6 * 3600.0
    log_level: str = "WARNING"
    log_json: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from environment variables, falling back to defaults."""
        env = os.environ if environ is None else environ
        defaults = cls()

        def get(name: str) -> Optional[str]:
            value = env.get(ENV_PREFIX + name)
            return value if value not in (None, "") else None

        try:
            return cls(
                database_path=get("DB_PATH"),
                transfer_window_days=int(get("TRANSFER_WINDOW_DAYS") or defaults.transfer_window_days),
                transfer_epsilon=Decimal(get("TRANSFER_EPSILON") or defaults.transfer_epsilon),
                provider_timeout=float(get("PROVIDER_TIMEOUT") or defaults.provider_timeout),
                retry_attempts=int(get("RETRY_ATTEMPTS") or defaults.retry_attempts),
                retry_backoff=float(get("RETRY_BACKOFF") or defaults.retry_backoff),
                retry_max_wait=float(get("RETRY_MAX_WAIT") or defaults.retry_max_wait),
                sync_stale_after=float(get("SYNC_STALE_AFTER") or defaults.sync_stale_after),
                log_level=(get("LOG_LEVEL") or defaults.log_level).upper(),
                log_json=(get("LOG_JSON") or "0").lower() in ("1", "true", "yes"),
            )
        except ArithmeticError as e:
            raise ValueError(f"Invalid {ENV_PREFIX}TRANSFER_EPSILON: {e}")

    def resolve_database_path(self) -> str:
        """Return the database path, defaulting to ~/.familyledger/familyledger.db."""
        if self.database_path is not None:
            return self.database_path
        db_dir = Path.home() / ".familyledger"
        db_dir.mkdir(exist_ok=True)
        return str(db_dir / "familyledger.db")
