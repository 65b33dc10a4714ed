"""Database layer for familyledger application."""

from familyledger.database.base import Database
from familyledger.database.factories import create_sqlite_database

__all__ = ["Database", "create_sqlite_database"]
