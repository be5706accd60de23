"""
Keepwise Models - Schema for saved links, ideas and their organization.

Tables:
- memories: The envelope shared by every saved item (title, kind, priority, owner)
- link_details: One-to-one detail row for LINK memories
- idea_details: One-to-one detail row for IDEA memories
- idea_files: Attachment descriptors owned by an idea
- tags: Global tag names (many-to-many with memories)
- categories: Per-owner category names (one-to-many with memories)
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Text, DateTime, Enum, ForeignKey, Table, UniqueConstraint, Index
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.orm import relationship as orm_relationship


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class MemoryKind(str, enum.Enum):
    LINK = "LINK"
    IDEA = "IDEA"


class Priority(str, enum.Enum):
    """How likely the owner is to come back to a memory."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


memory_tags = Table(
    "memory_tags",
    Base.metadata,
    Column("memory_id", String(36), ForeignKey("memories.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", String(36), ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


class Memory(Base):
    """
    A memory is anything the owner saved: a link or an idea.

    Exactly one detail row exists per memory and it matches `kind`:
    - LINK -> LinkDetail (memory.link)
    - IDEA -> IdeaDetail (memory.idea)

    The kind never changes after creation, so updates always edit the
    existing detail row in place.
    """
    __tablename__ = "memories"

    id = Column(String(36), primary_key=True, default=_new_id)

    title = Column(String(255), nullable=False)
    kind = Column(Enum(MemoryKind, name="memory_kind"), nullable=False, index=True)
    priority = Column(Enum(Priority, name="memory_priority"), nullable=False, default=Priority.MEDIUM)

    # Identity issued by the auth collaborator
    owner_id = Column(String, nullable=False, index=True)

    category_id = Column(String(36), ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True)

    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

    category = orm_relationship("Category", back_populates="memories")
    tags = orm_relationship("Tag", secondary=memory_tags, back_populates="memories", order_by="Tag.name")
    link = orm_relationship(
        "LinkDetail", back_populates="memory", uselist=False,
        cascade="all, delete-orphan", passive_deletes=True
    )
    idea = orm_relationship(
        "IdeaDetail", back_populates="memory", uselist=False,
        cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        Index('ix_memories_owner_updated', 'owner_id', 'updated_at'),
    )

    @property
    def detail(self):
        """The detail row matching this memory's kind."""
        return self.link if self.kind == MemoryKind.LINK else self.idea


class LinkDetail(Base):
    __tablename__ = "link_details"

    id = Column(String(36), primary_key=True, default=_new_id)
    memory_id = Column(String(36), ForeignKey("memories.id", ondelete="CASCADE"), nullable=False, unique=True)

    url = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    author = Column(String, nullable=True)
    source = Column(String, nullable=True)
    personal_notes = Column(Text, nullable=True)

    memory = orm_relationship("Memory", back_populates="link")


class IdeaDetail(Base):
    __tablename__ = "idea_details"

    id = Column(String(36), primary_key=True, default=_new_id)
    memory_id = Column(String(36), ForeignKey("memories.id", ondelete="CASCADE"), nullable=False, unique=True)

    content = Column(Text, nullable=True)

    memory = orm_relationship("Memory", back_populates="idea")
    files = orm_relationship(
        "IdeaFile", back_populates="idea", order_by="IdeaFile.created_at",
        cascade="all, delete-orphan", passive_deletes=True
    )


class IdeaFile(Base):
    """
    Attachment descriptor. The bytes live in external file storage;
    only name, location, media type and size are kept here.
    """
    __tablename__ = "idea_files"

    id = Column(String(36), primary_key=True, default=_new_id)
    idea_id = Column(String(36), ForeignKey("idea_details.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String, nullable=False)
    url = Column(Text, nullable=False)
    type = Column(String, nullable=False)
    size = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=_utcnow, nullable=False)

    idea = orm_relationship("IdeaDetail", back_populates="files")


class Tag(Base):
    """
    Tags are global reference data: unique by name, shared across owners,
    and never deleted together with a memory.
    """
    __tablename__ = "tags"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String, nullable=False, unique=True)

    memories = orm_relationship("Memory", secondary=memory_tags, back_populates="tags")


class Category(Base):
    """Categories are scoped per owner: unique on (name, owner_id)."""
    __tablename__ = "categories"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String, nullable=False)
    owner_id = Column(String, nullable=False, index=True)

    created_at = Column(DateTime, default=_utcnow, nullable=False)

    memories = orm_relationship("Memory", back_populates="category")

    __table_args__ = (
        UniqueConstraint('name', 'owner_id', name='uq_categories_name_owner'),
    )
