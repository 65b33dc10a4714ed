"""Database factory functions for creating database instances."""

from typing import Optional

from familyledger.config import Settings
from familyledger.database.sqlalchemy_db import SQLAlchemyDatabase


def create_sqlite_database(database_path: Optional[str] = None) -> SQLAlchemyDatabase:
    """Create a SQLite database instance.

    Args:
        database_path: Path to SQLite database file. If None, checks the
            FAMILYLEDGER_DB_PATH environment variable, then defaults to
            ~/.familyledger/familyledger.db

    Returns:
        SQLAlchemyDatabase instance configured for SQLite
    """
    if database_path is None:
        database_path = Settings.from_env().resolve_database_path()

    return SQLAlchemyDatabase(f"sqlite:///{database_path}")
