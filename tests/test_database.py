"""Tests for database configuration."""

import pytest
from sqlalchemy import text

from keepwise.config import Settings
from keepwise.database import DatabaseManager, create_database


class TestSQLitePragmas:
    """Test SQLite PRAGMA settings."""

    @pytest.mark.asyncio
    async def test_wal_mode_enabled(self, db):
        """Verify WAL mode is enabled."""
        async with db.get_session() as session:
            result = await session.execute(text("PRAGMA journal_mode"))
            assert result.scalar().lower() == "wal"

    @pytest.mark.asyncio
    async def test_foreign_keys_enabled(self, db):
        """Verify foreign keys are enabled (cascades depend on it)."""
        async with db.get_session() as session:
            result = await session.execute(text("PRAGMA foreign_keys"))
            assert result.scalar() == 1


class TestSessions:

    @pytest.mark.asyncio
    async def test_tables_created(self, db):
        async with db.get_session() as session:
            result = await session.execute(
                text("SELECT name FROM sqlite_master WHERE type='table'")
            )
            tables = {row[0] for row in result}

        assert {"memories", "link_details", "idea_details", "idea_files",
                "tags", "categories", "memory_tags"} <= tables

    @pytest.mark.asyncio
    async def test_rollback_on_error(self, db):
        """Writes inside a failing session block are not committed."""
        from keepwise.models import Tag
        from sqlalchemy import select

        with pytest.raises(RuntimeError):
            async with db.get_session() as session:
                session.add(Tag(name="never-saved"))
                await session.flush()
                raise RuntimeError("boom")

        async with db.get_session() as session:
            result = await session.execute(select(Tag).where(Tag.name == "never-saved"))
            assert result.scalar_one_or_none() is None

    @pytest.mark.asyncio
    async def test_init_db_is_idempotent(self, db):
        await db.init_db()
        await db.init_db()

    @pytest.mark.asyncio
    async def test_close_allows_reopen(self, temp_storage):
        db = DatabaseManager(f"sqlite+aiosqlite:///{temp_storage}/reopen.db")
        await db.init_db()
        await db.close()
        await db.init_db()
        async with db.get_session() as session:
            result = await session.execute(text("SELECT 1"))
            assert result.scalar() == 1
        await db.close()


def test_create_database_uses_storage_path(temp_storage):
    settings = Settings(storage_path=temp_storage, database_url=None)
    db = create_database(settings)
    assert db.db_url.endswith("keepwise.db")
    assert temp_storage in db.db_url
    assert db.is_sqlite
