"""Database factory functions for creating database instances."""

from typing import Optional

from finledger.config import Settings
from finledger.database.sqlalchemy_db import SQLAlchemyDatabase


def create_sqlite_database(database_path: Optional[str] = None) -> SQLAlchemyDatabase:
    """Create a SQLite database instance.

    Args:
        database_path: Path to SQLite database file. If None, checks FINLEDGER_DB_PATH
            environment variable, then defaults to ~/.finledger/finledger.db

    Returns:
        SQLAlchemyDatabase instance configured for SQLite
    """
    if database_path is None:
        path = Settings.from_env().database_path
        path.parent.mkdir(parents=True, exist_ok=True)
        database_path = str(path)

    database_url = f"sqlite:///{database_path}"
    return SQLAlchemyDatabase(database_url)


def create_memory_database() -> SQLAlchemyDatabase:
    """Create an in-memory SQLite database, useful for scratch projections."""
    return SQLAlchemyDatabase("sqlite://")
