"""
Flatten Memory rows into the shape the client renders.

One record per memory, with the kind-specific fields spread in:

    {id, title, kind, priority, tags, category, createdAt, updatedAt,
     url, description, author, source, personalNotes}        # LINK
    {id, title, kind, priority, tags, category, createdAt, updatedAt,
     content, attachments: [{name, url, type, size}]}         # IDEA

Tag names are sorted. Relationships (tags, category, link, idea.files) must
already be loaded.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from .models import Memory, MemoryKind


def _iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    # SQLite hands back naive datetimes; they were written as UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def project_memory(memory: Memory) -> Dict[str, Any]:
    record: Dict[str, Any] = {
        "id": memory.id,
        "title": memory.title,
        "kind": memory.kind.value,
        "priority": memory.priority.value if memory.priority else None,
        "tags": sorted(tag.name for tag in memory.tags),
        "category": memory.category.name if memory.category else None,
        "createdAt": _iso(memory.created_at),
        "updatedAt": _iso(memory.updated_at),
    }

    if memory.kind == MemoryKind.LINK and memory.link is not None:
        link = memory.link
        record.update({
            "url": link.url,
            "description": link.description,
            "author": link.author,
            "source": link.source,
            "personalNotes": link.personal_notes,
        })
    elif memory.kind == MemoryKind.IDEA and memory.idea is not None:
        idea = memory.idea
        record.update({
            "content": idea.content,
            "attachments": [
                {
                    "name": f.name,
                    "url": f.url,
                    "type": f.type,
                    "size": f.size,
                }
                for f in idea.files
            ],
        })

    return record


def project_memories(memories: Iterable[Memory]) -> List[Dict[str, Any]]:
    """Project a result set, keeping the first occurrence of each id."""
    seen = set()
    records = []
    for memory in memories:
        if memory.id in seen:
            continue
        seen.add(memory.id)
        records.append(project_memory(memory))
    return records
