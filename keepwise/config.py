"""
Centralized configuration using Pydantic Settings.

All settings are loaded from environment variables with KEEPWISE_ prefix.
Example: KEEPWISE_LOG_LEVEL=DEBUG
"""

from pathlib import Path
from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)


class Settings(BaseSettings):
    """Keepwise configuration settings."""

    model_config = SettingsConfigDict(
        env_prefix="KEEPWISE_",
        env_file=".env",
        env_file_encoding="utf-8"
    )

    # Storage
    storage_path: Optional[str] = None  # Auto-detect if not set
    database_url: Optional[str] = None  # Overrides storage_path when set
    db_name: str = "keepwise.db"

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # Sessions
    auth_secret: str = "change-me"
    session_ttl_seconds: int = Field(default=7 * 24 * 3600, gt=0)

    # Recent memories
    recent_default_limit: int = Field(default=10, ge=1)
    recent_max_limit: int = Field(default=100, ge=1)

    # Metadata extraction
    metadata_timeout: float = Field(default=10.0, gt=0)
    metadata_user_agent: str = DEFAULT_USER_AGENT
    metadata_max_bytes: int = 2_000_000  # 2MB of markup is plenty for <head>

    # HTTP server
    host: str = "127.0.0.1"
    port: int = 8000

    def get_storage_path(self) -> str:
        """
        Determine the directory holding the SQLite database.

        Priority:
        1. storage_path setting (explicit override via KEEPWISE_STORAGE_PATH)
        2. <cwd>/.keepwise/storage
        """
        if self.storage_path:
            storage = Path(self.storage_path)
        else:
            storage = Path.cwd() / ".keepwise" / "storage"

        storage.mkdir(parents=True, exist_ok=True)
        return str(storage)

    def get_database_url(self) -> str:
        """Async SQLAlchemy URL for the store."""
        if self.database_url:
            return self.database_url
        db_path = Path(self.get_storage_path()) / self.db_name
        return f"sqlite+aiosqlite:///{db_path}"


# Singleton instance
settings = Settings()
