"""
Reconciliation of free-text names to stable rows.

- Tags: global, find-or-create by exact (case-sensitive) name
- Categories: per owner, find-or-create by (name, owner_id)

Both run inside the caller's session so they share its transaction.
Creation happens in a SAVEPOINT: if a concurrent request inserted the same
name first, the unique constraint fires, the savepoint is rolled back and
the existing row is read instead.
"""

import logging
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Category, Tag

logger = logging.getLogger(__name__)


def parse_tag_string(raw: Optional[str]) -> List[str]:
    """
    Split a comma-separated tag string into clean names.

    "a, b ,,c" -> ["a", "b", "c"]. Order of first appearance is kept and
    repeated names collapse to one.
    """
    if not raw:
        return []

    names: List[str] = []
    seen = set()
    for part in raw.split(","):
        name = part.strip()
        if name and name not in seen:
            seen.add(name)
            names.append(name)
    return names


async def _find_tag(session: AsyncSession, name: str) -> Optional[Tag]:
    result = await session.execute(select(Tag).where(Tag.name == name))
    return result.scalar_one_or_none()


async def resolve_tags(session: AsyncSession, names: Iterable[str]) -> List[Tag]:
    """
    Find or create a Tag row for each name.

    Names are trimmed and empties dropped; the returned list holds one
    row per distinct name.
    """
    tags: List[Tag] = []
    seen = set()

    for raw_name in names:
        name = raw_name.strip() if raw_name else ""
        if not name or name in seen:
            continue
        seen.add(name)

        tag = await _find_tag(session, name)
        if tag is None:
            try:
                async with session.begin_nested():
                    tag = Tag(name=name)
                    session.add(tag)
                logger.debug(f"Created tag {name!r}")
            except IntegrityError:
                tag = await _find_tag(session, name)
                if tag is None:
                    raise
        tags.append(tag)

    return tags


async def _find_category(session: AsyncSession, name: str, owner_id: str) -> Optional[Category]:
    result = await session.execute(
        select(Category).where(
            Category.name == name,
            Category.owner_id == owner_id
        )
    )
    return result.scalar_one_or_none()


async def resolve_category(
    session: AsyncSession,
    name: Optional[str],
    owner_id: str
) -> Optional[Category]:
    """
    Find or create the owner's category called `name`.

    Returns None when no name is given, which clears the association.
    """
    name = name.strip() if name else ""
    if not name:
        return None

    category = await _find_category(session, name, owner_id)
    if category is not None:
        return category

    try:
        async with session.begin_nested():
            category = Category(name=name, owner_id=owner_id)
            session.add(category)
        logger.debug(f"Created category {name!r} for {owner_id}")
    except IntegrityError:
        category = await _find_category(session, name, owner_id)
        if category is None:
            raise
    return category
