"""Tests for settings."""

from pathlib import Path

from keepwise.config import Settings


def test_env_prefix(monkeypatch):
    monkeypatch.setenv("KEEPWISE_LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("KEEPWISE_RECENT_DEFAULT_LIMIT", "25")
    settings = Settings()
    assert settings.log_level == "DEBUG"
    assert settings.recent_default_limit == 25


def test_explicit_database_url_wins(temp_storage):
    settings = Settings(storage_path=temp_storage, database_url="postgresql+asyncpg://u:p@db/keepwise")
    assert settings.get_database_url() == "postgresql+asyncpg://u:p@db/keepwise"


def test_storage_path_is_created(temp_storage):
    target = Path(temp_storage) / "nested" / "storage"
    settings = Settings(storage_path=str(target), database_url=None)
    assert settings.get_storage_path() == str(target)
    assert target.is_dir()
    assert settings.get_database_url() == f"sqlite+aiosqlite:///{target / 'keepwise.db'}"


def test_defaults():
    settings = Settings(_env_file=None)
    assert settings.recent_default_limit == 10
    assert "Mozilla" in settings.metadata_user_agent
