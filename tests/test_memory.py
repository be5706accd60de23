"""Tests for the memory management system."""

import pytest
from sqlalchemy import select, func

from keepwise.errors import AuthenticationError, NotFoundOrForbidden, PersistenceError
from keepwise.models import IdeaDetail, IdeaFile, LinkDetail, Memory, Tag
from keepwise.schemas import AttachmentInput, IdeaInput, LinkInput


def link(**overrides):
    data = {"title": "T", "url": "https://x.com"}
    data.update(overrides)
    return LinkInput(**data)


def idea(**overrides):
    data = {"title": "An idea", "content": "Write it down"}
    data.update(overrides)
    return IdeaInput(**data)


async def _count(db, column, *where):
    async with db.get_session() as session:
        stmt = select(func.count(column))
        for clause in where:
            stmt = stmt.where(clause)
        return (await session.execute(stmt)).scalar()


class TestCreate:
    """Test saving links and ideas."""

    @pytest.mark.asyncio
    async def test_link_round_trip(self, memory_manager):
        """A saved link comes straight back from recent memories."""
        await memory_manager.create_link("user1", link(tags="x,y"))

        recent = await memory_manager.recent_memories("user1")

        assert len(recent) == 1
        assert recent[0]["kind"] == "LINK"
        assert recent[0]["tags"] == ["x", "y"]
        assert recent[0]["url"] == "https://x.com"
        assert recent[0]["title"] == "T"

    @pytest.mark.asyncio
    async def test_create_link_returns_projection(self, memory_manager):
        result = await memory_manager.create_link("user1", link(
            description="Desc",
            author="Ann",
            source="Blog",
            personalNotes="Read later",
            category="Work",
            priority="HIGH",
        ))

        assert result["id"]
        assert result["category"] == "Work"
        assert result["priority"] == "HIGH"
        assert result["personalNotes"] == "Read later"
        assert result["author"] == "Ann"
        assert result["createdAt"] == result["updatedAt"]

    @pytest.mark.asyncio
    async def test_create_idea_with_attachments(self, memory_manager):
        result = await memory_manager.create_idea("user1", idea(
            attachments=[AttachmentInput(name="plan.pdf", url="https://files.example/plan.pdf",
                                         type="application/pdf", size=2048)]
        ))

        assert result["kind"] == "IDEA"
        assert result["content"] == "Write it down"
        assert result["attachments"] == [{
            "name": "plan.pdf",
            "url": "https://files.example/plan.pdf",
            "type": "application/pdf",
            "size": 2048,
        }]
        assert "url" not in result

    @pytest.mark.asyncio
    async def test_exactly_one_detail_row(self, memory_manager, db):
        saved = await memory_manager.create_link("user1", link())

        assert await _count(db, LinkDetail.id, LinkDetail.memory_id == saved["id"]) == 1
        assert await _count(db, IdeaDetail.id, IdeaDetail.memory_id == saved["id"]) == 0

    @pytest.mark.asyncio
    async def test_requires_owner(self, memory_manager):
        with pytest.raises(AuthenticationError):
            await memory_manager.create_link("", link())


class TestUpdate:
    """Test editing saved memories."""

    @pytest.mark.asyncio
    async def test_tags_replaced_wholesale(self, memory_manager):
        saved = await memory_manager.create_link("user1", link(tags="x,y"))

        updated = await memory_manager.update_link("user1", saved["id"], link(tags="z"))

        assert updated["tags"] == ["z"]
        recent = await memory_manager.recent_memories("user1")
        assert recent[0]["tags"] == ["z"]

    @pytest.mark.asyncio
    async def test_old_tags_stay_in_store(self, memory_manager, db):
        saved = await memory_manager.create_link("user1", link(tags="x,y"))
        await memory_manager.update_link("user1", saved["id"], link(tags="z"))

        assert await _count(db, Tag.id) == 3

    @pytest.mark.asyncio
    async def test_update_edits_detail_in_place(self, memory_manager, db):
        saved = await memory_manager.create_link("user1", link(description="old"))

        updated = await memory_manager.update_link("user1", saved["id"], link(
            title="New title", url="https://example.org/new", description="new"
        ))

        assert updated["id"] == saved["id"]
        assert updated["title"] == "New title"
        assert updated["url"] == "https://example.org/new"
        assert updated["description"] == "new"
        assert updated["updatedAt"] >= saved["updatedAt"]
        assert await _count(db, LinkDetail.id) == 1

    @pytest.mark.asyncio
    async def test_missing_category_clears_it(self, memory_manager):
        saved = await memory_manager.create_link("user1", link(category="Work"))
        assert saved["category"] == "Work"

        updated = await memory_manager.update_link("user1", saved["id"], link())

        assert updated["category"] is None

    @pytest.mark.asyncio
    async def test_update_idea_keeps_files_unless_given(self, memory_manager, db):
        saved = await memory_manager.create_idea("user1", idea(
            attachments=[AttachmentInput(name="a.txt", url="https://f.example/a.txt", type="text/plain", size=3)]
        ))

        kept = await memory_manager.update_idea("user1", saved["id"], idea(content="Revised"))
        assert kept["content"] == "Revised"
        assert [a["name"] for a in kept["attachments"]] == ["a.txt"]

        replaced = await memory_manager.update_idea("user1", saved["id"], idea(
            attachments=[AttachmentInput(name="b.txt", url="https://f.example/b.txt", type="text/plain", size=4)]
        ))
        assert [a["name"] for a in replaced["attachments"]] == ["b.txt"]
        assert await _count(db, IdeaFile.id) == 1

    @pytest.mark.asyncio
    async def test_other_owner_cannot_update(self, memory_manager):
        saved = await memory_manager.create_link("user1", link(tags="x"))

        with pytest.raises(NotFoundOrForbidden):
            await memory_manager.update_link("user2", saved["id"], link(title="Hijacked"))

        recent = await memory_manager.recent_memories("user1")
        assert recent[0]["title"] == "T"
        assert recent[0]["tags"] == ["x"]

    @pytest.mark.asyncio
    async def test_wrong_kind_is_not_found(self, memory_manager):
        saved = await memory_manager.create_link("user1", link())

        with pytest.raises(NotFoundOrForbidden):
            await memory_manager.update_idea("user1", saved["id"], idea())

    @pytest.mark.asyncio
    async def test_unknown_id_is_not_found(self, memory_manager):
        with pytest.raises(NotFoundOrForbidden):
            await memory_manager.update_link("user1", "does-not-exist", link())


class TestDelete:
    """Test deleting memories."""

    @pytest.mark.asyncio
    async def test_delete_cascades_detail_and_files_but_keeps_shared_tags(self, memory_manager, db):
        doomed = await memory_manager.create_idea("user1", idea(
            tags="shared, only-here",
            category="Work",
            attachments=[AttachmentInput(name="a.txt", url="https://f.example/a.txt", type="text/plain", size=3)]
        ))
        survivor = await memory_manager.create_link("user1", link(tags="shared", category="Work"))

        await memory_manager.delete_idea("user1", doomed["id"])

        assert await _count(db, Memory.id, Memory.id == doomed["id"]) == 0
        assert await _count(db, IdeaDetail.id) == 0
        assert await _count(db, IdeaFile.id) == 0
        assert await _count(db, Tag.id, Tag.name == "shared") == 1
        assert await _count(db, Tag.id, Tag.name == "only-here") == 1

        remaining = await memory_manager.recent_memories("user1")
        assert [m["id"] for m in remaining] == [survivor["id"]]
        assert remaining[0]["tags"] == ["shared"]
        assert remaining[0]["category"] == "Work"

    @pytest.mark.asyncio
    async def test_delete_link(self, memory_manager, db):
        saved = await memory_manager.create_link("user1", link())

        await memory_manager.delete_link("user1", saved["id"])

        assert await _count(db, LinkDetail.id) == 0
        assert await memory_manager.recent_memories("user1") == []

    @pytest.mark.asyncio
    async def test_other_owner_cannot_delete(self, memory_manager):
        saved = await memory_manager.create_link("user1", link())

        with pytest.raises(NotFoundOrForbidden):
            await memory_manager.delete_link("user2", saved["id"])

        assert len(await memory_manager.recent_memories("user1")) == 1

    @pytest.mark.asyncio
    async def test_delete_wrong_kind(self, memory_manager):
        saved = await memory_manager.create_idea("user1", idea())

        with pytest.raises(NotFoundOrForbidden):
            await memory_manager.delete_link("user1", saved["id"])


class TestRecent:
    """Test the recent memories projection query."""

    @pytest.mark.asyncio
    async def test_most_recently_updated_first(self, memory_manager):
        first = await memory_manager.create_link("user1", link(title="first"))
        second = await memory_manager.create_idea("user1", idea(title="second"))

        recent = await memory_manager.recent_memories("user1")
        assert [m["id"] for m in recent] == [second["id"], first["id"]]

        await memory_manager.update_link("user1", first["id"], link(title="first, edited"))

        recent = await memory_manager.recent_memories("user1")
        assert [m["id"] for m in recent] == [first["id"], second["id"]]

    @pytest.mark.asyncio
    async def test_limit(self, memory_manager):
        for i in range(12):
            await memory_manager.create_idea("user1", idea(title=f"idea {i}"))

        assert len(await memory_manager.recent_memories("user1")) == 10
        assert len(await memory_manager.recent_memories("user1", limit=3)) == 3
        assert len(await memory_manager.recent_memories("user1", limit=0)) == 10

    @pytest.mark.asyncio
    async def test_limit_above_max_is_rejected(self, db):
        from keepwise.errors import ValidationError
        from keepwise.memory import MemoryManager

        manager = MemoryManager(db, default_limit=2, max_limit=5)
        for i in range(6):
            await manager.create_idea("user1", idea(title=f"idea {i}"))

        assert len(await manager.recent_memories("user1", limit=5)) == 5
        with pytest.raises(ValidationError) as exc:
            await manager.recent_memories("user1", limit=6)
        assert "limit" in exc.value.field_errors

        with pytest.raises(ValidationError):
            await manager.list_memories("user1", limit=6)
        assert len(await manager.list_memories("user1")) == 5

    @pytest.mark.asyncio
    async def test_scoped_to_owner(self, memory_manager):
        await memory_manager.create_link("user1", link(title="mine"))
        await memory_manager.create_link("user2", link(title="theirs"))

        recent = await memory_manager.recent_memories("user1")
        assert [m["title"] for m in recent] == ["mine"]

    @pytest.mark.asyncio
    async def test_store_failure_is_persistence_error(self, memory_manager, db):
        await db.close()
        db.db_url = "sqlite+aiosqlite:////nonexistent-dir/for/sure/keepwise.db"

        with pytest.raises(PersistenceError):
            await memory_manager.recent_memories("user1")


class TestGetAndList:

    @pytest.mark.asyncio
    async def test_get_memory(self, memory_manager):
        saved = await memory_manager.create_link("user1", link(tags="x"))

        found = await memory_manager.get_memory("user1", saved["id"])
        assert found == saved

        with pytest.raises(NotFoundOrForbidden):
            await memory_manager.get_memory("user2", saved["id"])

    @pytest.mark.asyncio
    async def test_filters(self, memory_manager):
        await memory_manager.create_link("user1", link(
            title="Async SQLAlchemy", personalNotes="great guide", tags="python", priority="HIGH"
        ))
        await memory_manager.create_idea("user1", idea(
            title="Garden plan", content="Plant tomatoes", tags="home", priority="LOW"
        ))
        await memory_manager.create_link("user2", link(title="Async elsewhere"))

        assert [m["title"] for m in await memory_manager.list_memories("user1", search="async")] == ["Async SQLAlchemy"]
        assert [m["title"] for m in await memory_manager.list_memories("user1", search="GUIDE")] == ["Async SQLAlchemy"]
        assert [m["title"] for m in await memory_manager.list_memories("user1", search="tomato")] == ["Garden plan"]
        assert [m["title"] for m in await memory_manager.list_memories("user1", search="hom")] == ["Garden plan"]
        assert [m["title"] for m in await memory_manager.list_memories("user1", kind="idea")] == ["Garden plan"]
        assert [m["title"] for m in await memory_manager.list_memories("user1", priority="HIGH")] == ["Async SQLAlchemy"]
        assert [m["title"] for m in await memory_manager.list_memories("user1", tag="python")] == ["Async SQLAlchemy"]
        assert len(await memory_manager.list_memories("user1")) == 2

    @pytest.mark.asyncio
    async def test_date_range(self, memory_manager):
        from datetime import date, timedelta

        await memory_manager.create_idea("user1", idea())
        today = date.today()

        assert len(await memory_manager.list_memories("user1", created_from=today - timedelta(days=1))) == 1
        assert len(await memory_manager.list_memories("user1", created_to=today + timedelta(days=1))) == 1
        assert await memory_manager.list_memories("user1", created_from=today + timedelta(days=2)) == []
        assert await memory_manager.list_memories("user1", created_to=today - timedelta(days=2)) == []

    @pytest.mark.asyncio
    async def test_invalid_kind_filter(self, memory_manager):
        from keepwise.errors import ValidationError

        with pytest.raises(ValidationError) as exc:
            await memory_manager.list_memories("user1", kind="NOTE")
        assert "kind" in exc.value.field_errors

    @pytest.mark.asyncio
    async def test_search_wildcards_are_literal(self, memory_manager):
        await memory_manager.create_link("user1", link(title="Unrelated"))
        await memory_manager.create_idea("user1", idea(title="100% done", content="finished"))
        await memory_manager.create_idea("user1", idea(title="snake_case names", content="style"))

        assert [m["title"] for m in await memory_manager.list_memories("user1", search="%")] == ["100% done"]
        assert [m["title"] for m in await memory_manager.list_memories("user1", search="_")] == ["snake_case names"]
        assert await memory_manager.list_memories("user1", search="a_e") == []
