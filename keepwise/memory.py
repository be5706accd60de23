"""
Memory Manager - Saving, editing and reading links and ideas.

This module handles:
- The upsert transaction: category + header + tags + exactly one detail row
- Ownership and kind checks for edits and deletes
- Recent memories for the save page
- Filtered listing for the database table

Every mutating call runs inside a single DatabaseManager.get_session()
block, so either all of its writes commit or none do.
"""

import logging
from contextlib import asynccontextmanager
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import select, or_, desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from .database import DatabaseManager
from .errors import AuthenticationError, NotFoundOrForbidden, PersistenceError, ValidationError
from .models import IdeaDetail, IdeaFile, LinkDetail, Memory, MemoryKind, Priority, Tag
from .projection import project_memory, project_memories
from .reconcile import parse_tag_string, resolve_category, resolve_tags
from .schemas import AttachmentInput, IdeaInput, LinkInput

logger = logging.getLogger(__name__)

DEFAULT_RECENT_LIMIT = 10

DateLike = Union[date, datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _naive_utc(value: datetime) -> datetime:
    """Match the naive-UTC values SQLite stores."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _range_start(value: DateLike) -> datetime:
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    return _naive_utc(value)


def _range_end(value: DateLike) -> datetime:
    """Exclusive upper bound; a bare date covers the whole day."""
    if not isinstance(value, datetime):
        return datetime.combine(value + timedelta(days=1), time.min)
    return _naive_utc(value) + timedelta(microseconds=1)


def _with_relations(stmt):
    return stmt.options(
        selectinload(Memory.tags),
        selectinload(Memory.category),
        selectinload(Memory.link),
        selectinload(Memory.idea).selectinload(IdeaDetail.files),
    )


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _build_files(attachments: List[AttachmentInput]) -> List[IdeaFile]:
    return [
        IdeaFile(name=a.name, url=a.url, type=a.type, size=a.size)
        for a in attachments
    ]


class MemoryManager:
    """
    Manages memories for authenticated owners.

    Usage:
        manager = MemoryManager(db)
        saved = await manager.create_link("user_1", LinkInput(title="T", url="https://x.com"))
        recent = await manager.recent_memories("user_1")
    """

    def __init__(self, db: DatabaseManager, default_limit: int = DEFAULT_RECENT_LIMIT, max_limit: int = 100):
        self.db = db
        self.default_limit = default_limit
        self.max_limit = max_limit

    @asynccontextmanager
    async def _transaction(self, action: str):
        """get_session() with store failures turned into PersistenceError."""
        try:
            async with self.db.get_session() as session:
                yield session
        except SQLAlchemyError as e:
            logger.error(f"Failed to {action}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to {action}") from e

    @staticmethod
    def _require_owner(owner_id: Optional[str]) -> str:
        if not owner_id:
            raise AuthenticationError("Sign in required")
        return owner_id

    async def _load_owned(self, session, owner_id: str, memory_id: str, kind: MemoryKind) -> Memory:
        """Load a memory with its relations, or raise NotFoundOrForbidden."""
        result = await session.execute(
            _with_relations(select(Memory).where(Memory.id == memory_id))
        )
        memory = result.scalar_one_or_none()

        if memory is None:
            logger.info(f"Memory {memory_id} not found")
            raise NotFoundOrForbidden()
        if memory.owner_id != owner_id:
            logger.warning(f"Owner {owner_id} tried to touch memory {memory_id} of another owner")
            raise NotFoundOrForbidden()
        if memory.kind != kind or memory.detail is None:
            logger.info(f"Memory {memory_id} is {memory.kind.value}, expected {kind.value}")
            raise NotFoundOrForbidden()

        return memory

    async def _create(self, owner_id: str, data, kind: MemoryKind) -> Dict[str, Any]:
        owner_id = self._require_owner(owner_id)
        tag_names = parse_tag_string(data.tags)

        async with self._transaction(f"save {kind.value.lower()}") as session:
            category = await resolve_category(session, data.category, owner_id)
            tags = await resolve_tags(session, tag_names)

            now = _utcnow()
            memory = Memory(
                title=data.title,
                kind=kind,
                priority=data.priority,
                owner_id=owner_id,
                category=category,
                tags=tags,
                created_at=now,
                updated_at=now,
            )

            if kind == MemoryKind.LINK:
                memory.link = LinkDetail(
                    url=data.url,
                    description=data.description,
                    author=data.author,
                    source=data.source,
                    personal_notes=data.personal_notes,
                )
            else:
                memory.idea = IdeaDetail(
                    content=data.content,
                    files=_build_files(data.attachments or []),
                )

            session.add(memory)
            await session.flush()

            logger.info(f"Saved {kind.value} memory {memory.id} for {owner_id}")
            return project_memory(memory)

    async def _update(self, owner_id: str, memory_id: str, data, kind: MemoryKind) -> Dict[str, Any]:
        owner_id = self._require_owner(owner_id)
        tag_names = parse_tag_string(data.tags)

        async with self._transaction(f"update {kind.value.lower()}") as session:
            memory = await self._load_owned(session, owner_id, memory_id, kind)

            # Tags are replaced wholesale, never diffed
            memory.tags.clear()
            await session.flush()

            category = await resolve_category(session, data.category, owner_id)
            tags = await resolve_tags(session, tag_names)

            memory.title = data.title
            memory.priority = data.priority
            memory.category = category
            memory.tags.extend(tags)
            memory.updated_at = _utcnow()

            if kind == MemoryKind.LINK:
                link = memory.link
                link.url = data.url
                link.description = data.description
                link.author = data.author
                link.source = data.source
                link.personal_notes = data.personal_notes
            else:
                idea = memory.idea
                idea.content = data.content
                if data.attachments is not None:
                    idea.files = _build_files(data.attachments)

            await session.flush()

            logger.info(f"Updated {kind.value} memory {memory.id}")
            return project_memory(memory)

    async def _delete(self, owner_id: str, memory_id: str, kind: MemoryKind) -> None:
        owner_id = self._require_owner(owner_id)

        async with self._transaction(f"delete {kind.value.lower()}") as session:
            memory = await self._load_owned(session, owner_id, memory_id, kind)
            # Detail and files cascade; tags and category stay
            await session.delete(memory)
            await session.flush()

        logger.info(f"Deleted {kind.value} memory {memory_id}")

    # -- Links -------------------------------------------------------------

    async def create_link(self, owner_id: str, data: LinkInput) -> Dict[str, Any]:
        return await self._create(owner_id, data, MemoryKind.LINK)

    async def update_link(self, owner_id: str, memory_id: str, data: LinkInput) -> Dict[str, Any]:
        return await self._update(owner_id, memory_id, data, MemoryKind.LINK)

    async def delete_link(self, owner_id: str, memory_id: str) -> None:
        await self._delete(owner_id, memory_id, MemoryKind.LINK)

    # -- Ideas -------------------------------------------------------------

    async def create_idea(self, owner_id: str, data: IdeaInput) -> Dict[str, Any]:
        return await self._create(owner_id, data, MemoryKind.IDEA)

    async def update_idea(self, owner_id: str, memory_id: str, data: IdeaInput) -> Dict[str, Any]:
        return await self._update(owner_id, memory_id, data, MemoryKind.IDEA)

    async def delete_idea(self, owner_id: str, memory_id: str) -> None:
        await self._delete(owner_id, memory_id, MemoryKind.IDEA)

    # -- Reads -------------------------------------------------------------

    def resolve_limit(self, limit: Optional[int], default: Optional[int] = None) -> int:
        """
        Missing or non-positive limits fall back to the default; limits above
        max_limit are rejected rather than truncated.
        """
        if not limit or limit < 1:
            return self.default_limit if default is None else default
        if limit > self.max_limit:
            raise ValidationError("Invalid limit", {"limit": f"Must be at most {self.max_limit}"})
        return limit

    async def get_memory(self, owner_id: str, memory_id: str) -> Dict[str, Any]:
        owner_id = self._require_owner(owner_id)

        async with self._transaction("load memory") as session:
            result = await session.execute(
                _with_relations(
                    select(Memory).where(
                        Memory.id == memory_id,
                        Memory.owner_id == owner_id
                    )
                )
            )
            memory = result.scalar_one_or_none()
            if memory is None:
                raise NotFoundOrForbidden()
            return project_memory(memory)

    async def recent_memories(self, owner_id: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        The owner's memories, most recently updated first.

        Args:
            owner_id: Authenticated owner
            limit: Maximum results (default 10, at most max_limit)

        Returns:
            Flattened projections, see keepwise.projection
        """
        owner_id = self._require_owner(owner_id)
        limit = self.resolve_limit(limit)

        async with self._transaction("load recent memories") as session:
            result = await session.execute(
                _with_relations(
                    select(Memory)
                    .where(Memory.owner_id == owner_id)
                    .order_by(desc(Memory.updated_at), desc(Memory.created_at))
                    .limit(limit)
                )
            )
            return project_memories(result.scalars().unique().all())

    async def list_memories(
        self,
        owner_id: str,
        search: Optional[str] = None,
        kind: Optional[Union[MemoryKind, str]] = None,
        priority: Optional[Union[Priority, str]] = None,
        tag: Optional[str] = None,
        created_from: Optional[DateLike] = None,
        created_to: Optional[DateLike] = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """
        Filtered listing backing the database table.

        Args:
            search: Case-insensitive match on title, notes, description,
                idea content or any tag name
            kind: LINK or IDEA
            priority: LOW, MEDIUM or HIGH
            tag: Exact tag name the memory must carry
            created_from: Inclusive lower bound on creation time
            created_to: Inclusive upper bound (a bare date covers the day)
            limit: Maximum results (at most max_limit; default max_limit)
        """
        owner_id = self._require_owner(owner_id)

        try:
            kind = MemoryKind(kind.upper() if isinstance(kind, str) else kind) if kind else None
        except ValueError:
            raise ValidationError("Invalid filter", {"kind": "Must be LINK or IDEA"})
        try:
            priority = Priority(priority.upper() if isinstance(priority, str) else priority) if priority else None
        except ValueError:
            raise ValidationError("Invalid filter", {"priority": "Must be LOW, MEDIUM or HIGH"})

        stmt = (
            select(Memory)
            .outerjoin(LinkDetail, LinkDetail.memory_id == Memory.id)
            .outerjoin(IdeaDetail, IdeaDetail.memory_id == Memory.id)
            .where(Memory.owner_id == owner_id)
        )

        if search and search.strip():
            pattern = f"%{_escape_like(search.strip())}%"
            stmt = stmt.where(or_(
                Memory.title.ilike(pattern, escape="\\"),
                LinkDetail.personal_notes.ilike(pattern, escape="\\"),
                LinkDetail.description.ilike(pattern, escape="\\"),
                IdeaDetail.content.ilike(pattern, escape="\\"),
                Memory.tags.any(Tag.name.ilike(pattern, escape="\\")),
            ))
        if kind:
            stmt = stmt.where(Memory.kind == kind)
        if priority:
            stmt = stmt.where(Memory.priority == priority)
        if tag:
            stmt = stmt.where(Memory.tags.any(Tag.name == tag))
        if created_from:
            stmt = stmt.where(Memory.created_at >= _range_start(created_from))
        if created_to:
            stmt = stmt.where(Memory.created_at < _range_end(created_to))

        limit = self.resolve_limit(limit, default=self.max_limit)
        stmt = stmt.order_by(desc(Memory.updated_at), desc(Memory.created_at)).limit(limit)

        async with self._transaction("list memories") as session:
            result = await session.execute(_with_relations(stmt))
            return project_memories(result.scalars().unique().all())
