"""Quest and achievement seed data for the learning path catalog."""

from __future__ import annotations

import logging

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from uniquest.db.models import Achievement, Quest

logger = logging.getLogger(__name__)

QUEST_SEED_DATA: list[dict] = [
    # Research
    {
        "slug": "research_schools",
        "title": "Scout the Field",
        "description": "Browse the school catalog and shortlist the schools that fit you",
        "type": "research",
        "points": 100,
        "requirements": {"kind": "task_list", "tasks": ["browse_catalog", "shortlist_five", "compare_costs"]},
        "sort_order": 1,
    },
    {
        "slug": "talk_to_schools",
        "title": "Ask Around",
        "description": "Chat about three schools on your list to learn what makes them different",
        "type": "research",
        "points": 150,
        "requirements": {"kind": "task_count", "count": 3},
        "sort_order": 2,
    },
    # Profile
    {
        "slug": "complete_profile",
        "title": "Know Thyself",
        "description": "Fill in your academics, activities and test scores",
        "type": "profile",
        "points": 100,
        "requirements": {"kind": "task_list", "tasks": ["academics", "activities", "test_scores"]},
        "sort_order": 3,
    },
    {
        "slug": "chance_me",
        "title": "Reality Check",
        "description": "Get an admission estimate and sort your list into reach, target and safety",
        "type": "profile",
        "points": 150,
        "requirements": {"kind": "task_list", "tasks": ["submit_stats", "review_analysis", "sort_list"]},
        "sort_order": 4,
    },
    # Essays
    {
        "slug": "personal_statement_draft",
        "title": "Blank Page No More",
        "description": "Brainstorm, outline and draft your personal statement",
        "type": "essay",
        "points": 200,
        "requirements": {"kind": "task_list", "tasks": ["brainstorm", "outline", "first_draft"]},
        "sort_order": 5,
    },
    {
        "slug": "personal_statement_polish",
        "title": "Polish Until It Shines",
        "description": "Get feedback, revise, and give your essay a final read-through",
        "type": "essay",
        "points": 250,
        "requirements": {"kind": "task_list", "tasks": ["peer_review", "revise", "final_read"]},
        "sort_order": 6,
    },
    # Applications
    {
        "slug": "recommendations",
        "title": "Vouch for Me",
        "description": "Ask for, follow up on, and thank your recommenders",
        "type": "application",
        "points": 150,
        "requirements": {},
        "sort_order": 7,
    },
    {
        "slug": "first_application",
        "title": "Hit Submit",
        "description": "Finish and submit your first application",
        "type": "application",
        "points": 300,
        "requirements": {"kind": "task_list", "tasks": ["fill_forms", "pay_fee", "submit"]},
        "sort_order": 8,
    },
]

ACHIEVEMENT_SEED_DATA: list[dict] = [
    {
        "slug": "first_quest",
        "title": "First Steps",
        "description": "Complete your first quest",
        "type": "milestone",
        "icon": "flag",
        "points": 50,
        "requirements": {"kind": "completed_quests", "count": 1},
        "sort_order": 1,
    },
    {
        "slug": "quest_master",
        "title": "Quest Master",
        "description": "Complete five quests",
        "type": "quest_master",
        "icon": "trophy",
        "points": 250,
        "requirements": {},
        "sort_order": 2,
    },
    {
        "slug": "wordsmith",
        "title": "Wordsmith",
        "description": "Complete both personal statement quests",
        "type": "essay",
        "icon": "pen",
        "points": 150,
        "requirements": {"kind": "quest_type", "type": "essay", "count": 2},
        "sort_order": 3,
    },
    {
        "slug": "level_two",
        "title": "Rising Applicant",
        "description": "Reach level 2",
        "type": "level",
        "icon": "star",
        "points": 0,
        "requirements": {"kind": "level", "level": 2},
        "sort_order": 4,
    },
]


# Catalog rows are immutable once created: a re-seed refreshes display fields
# only. Task requirements, quest type and quest points stay as first written.
QUEST_REFRESH_FIELDS = ("title", "description", "sort_order")
ACHIEVEMENT_REFRESH_FIELDS = ("title", "description", "icon", "points", "sort_order")


def _insert_for(db: AsyncSession):
    """Dialect-specific INSERT supporting ON CONFLICT (PostgreSQL, or SQLite in tests)."""
    if db.get_bind().dialect.name == "sqlite":
        return sqlite_insert
    return pg_insert


async def _upsert_by_slug(db: AsyncSession, model: type, rows: list[dict], refresh: tuple[str, ...]) -> int:
    insert = _insert_for(db)
    for data in rows:
        stmt = insert(model).values(**data)
        stmt = stmt.on_conflict_do_update(
            index_elements=["slug"],
            set_={field: stmt.excluded[field] for field in refresh},
        )
        await db.execute(stmt)
    return len(rows)


async def seed_catalog(db: AsyncSession) -> int:
    """Upsert all quest and achievement definitions. Returns number of rows seeded.

    Each row is a single INSERT ... ON CONFLICT (slug) DO UPDATE, so workers
    seeding concurrently at startup never collide on the unique slug.
    """
    seeded = await _upsert_by_slug(db, Quest, QUEST_SEED_DATA, QUEST_REFRESH_FIELDS)
    seeded += await _upsert_by_slug(db, Achievement, ACHIEVEMENT_SEED_DATA, ACHIEVEMENT_REFRESH_FIELDS)
    await db.commit()
    logger.info("Seeded %d catalog definitions", seeded)
    return seeded
