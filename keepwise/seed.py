"""
Demo data for a fresh database.

Creates five categories, ten tags, three ideas (one with an attachment) and
three links for a single owner, going through MemoryManager so the same
reconciliation rules apply as for real saves.
"""

import logging
from typing import Any, Dict, List

from .memory import MemoryManager
from .reconcile import resolve_category, resolve_tags
from .schemas import AttachmentInput, IdeaInput, LinkInput

logger = logging.getLogger(__name__)

DEMO_CATEGORIES = ["Programming", "Technology", "Business", "Personal", "Research"]

DEMO_TAGS = [
    "javascript", "react", "nextjs", "prisma", "typescript",
    "productivity", "health", "learning", "business", "technology",
]

DEMO_IDEAS = [
    IdeaInput(
        title="Add third-party authentication",
        content="Look into delegating sign-in to an identity provider so we never manage passwords ourselves.",
        category="Programming",
        tags="react, nextjs",
        priority="HIGH",
    ),
    IdeaInput(
        title="Design patterns in React",
        content="Document the common React patterns: container/presentational, render props, HOCs and hooks.",
        category="Programming",
        tags="react, javascript",
        priority="MEDIUM",
    ),
    IdeaInput(
        title="Business plan for a startup",
        content=(
            "Draft a business plan for an AI tooling startup aimed at small companies. "
            "Cover market analysis, revenue model and growth strategy."
        ),
        category="Business",
        tags="business, productivity",
        priority="HIGH",
        attachments=[
            AttachmentInput(
                name="business_plan_template.pdf",
                url="https://example.com/files/business_plan_template.pdf",
                type="application/pdf",
                size=1024000,
            )
        ],
    ),
]

DEMO_LINKS = [
    LinkInput(
        title="The TypeScript handbook",
        url="https://www.typescriptlang.org/docs/",
        description="Official TypeScript documentation",
        author="Microsoft",
        source="TypeScript",
        personal_notes="Great place to start. Re-read the advanced types section.",
        category="Programming",
        tags="typescript, javascript",
        priority="HIGH",
    ),
    LinkInput(
        title="Building applications with Prisma",
        url="https://www.prisma.io/docs/getting-started",
        description="Getting started with Prisma",
        author="Prisma Team",
        source="Prisma",
        personal_notes="Thorough walkthrough with practical examples.",
        category="Programming",
        tags="prisma, nextjs",
        priority="MEDIUM",
    ),
    LinkInput(
        title="Latest technology trends",
        url="https://example.com/tech-trends-2023",
        description="Article on emerging technology",
        author="Tech Magazine",
        source="TechInsights",
        personal_notes="Good overview; the generative AI section is the interesting part.",
        category="Technology",
        tags="technology",
        priority="LOW",
    ),
]


async def seed_demo_data(manager: MemoryManager, owner_id: str) -> Dict[str, Any]:
    """Create the demo set for `owner_id` and return what was saved."""
    async with manager.db.get_session() as session:
        for name in DEMO_CATEGORIES:
            await resolve_category(session, name, owner_id)
        await resolve_tags(session, DEMO_TAGS)

    saved: List[Dict[str, Any]] = []
    for idea in DEMO_IDEAS:
        saved.append(await manager.create_idea(owner_id, idea))
    for link in DEMO_LINKS:
        saved.append(await manager.create_link(owner_id, link))

    logger.info(f"Seeded {len(saved)} memories for {owner_id}")
    return {
        "owner_id": owner_id,
        "categories": len(DEMO_CATEGORIES),
        "tags": len(DEMO_TAGS),
        "memories": saved,
    }
