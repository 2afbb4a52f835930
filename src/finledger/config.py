"""Configuration management for finledger."""

import os
from dataclasses import dataclass, field
from pathlib import Path


def default_database_path() -> Path:
    """Return the default SQLite file location (~/.finledger/finledger.db)."""
    return Path.home() / ".finledger" / "finledger.db"


@dataclass
class Settings:
    """Runtime settings for the CLI and database factory."""

    database_path: Path = field(default_factory=default_database_path)
    log_level: str = "WARNING"
    log_format: str = "standard"

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings from environment variables."""
        db_path = os.getenv("FINLEDGER_DB_PATH")
        return cls(
            database_path=Path(db_path) if db_path else default_database_path(),
            log_level=os.getenv("FINLEDGER_LOG_LEVEL", "WARNING"),
            log_format=os.getenv("FINLEDGER_LOG_FORMAT", "standard"),
        )
