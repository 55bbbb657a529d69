"""Achievement unlock rules, evaluated after each quest completion."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from uniquest.config import get_settings
from uniquest.db.models import QUEST_COMPLETED, Achievement, Quest, User, UserQuest
from uniquest.progress.achievement_service import (
    AchievementUnlock,
    unlock_achievement,
    unlocked_achievement_ids,
)
from uniquest.progress.requirements import (
    AchievementRequirement,
    CompletedQuestCount,
    LevelReached,
    QuestTypeCount,
    RequirementError,
    TotalPointsReached,
    parse_achievement_requirements,
)

logger = logging.getLogger(__name__)

Rule = Callable[[AsyncSession, int, Any], Awaitable[bool]]


async def completed_quest_count(db: AsyncSession, user_id: int, quest_type: str | None = None) -> int:
    """Count the user's completed quests, optionally of one quest type."""
    stmt = select(func.count(UserQuest.id)).where(
        UserQuest.user_id == user_id,
        UserQuest.status == QUEST_COMPLETED,
    )
    if quest_type is not None:
        stmt = stmt.join(Quest, Quest.id == UserQuest.quest_id).where(Quest.type == quest_type)
    result = await db.execute(stmt)
    return result.scalar() or 0


async def _user_totals(db: AsyncSession, user_id: int) -> tuple[int, int]:
    result = await db.execute(select(User.total_points, User.level).where(User.id == user_id))
    row = result.one_or_none()
    return (row[0], row[1]) if row else (0, 1)


async def _completed_quests_rule(db: AsyncSession, user_id: int, req: CompletedQuestCount) -> bool:
    return await completed_quest_count(db, user_id) >= req.count


async def _quest_type_rule(db: AsyncSession, user_id: int, req: QuestTypeCount) -> bool:
    return await completed_quest_count(db, user_id, req.quest_type) >= req.count


async def _total_points_rule(db: AsyncSession, user_id: int, req: TotalPointsReached) -> bool:
    total_points, _ = await _user_totals(db, user_id)
    return total_points >= req.points


async def _level_rule(db: AsyncSession, user_id: int, req: LevelReached) -> bool:
    _, level = await _user_totals(db, user_id)
    return level >= req.level


RULES: dict[type, Rule] = {
    CompletedQuestCount: _completed_quests_rule,
    QuestTypeCount: _quest_type_rule,
    TotalPointsReached: _total_points_rule,
    LevelReached: _level_rule,
}


class AchievementRules:
    """Evaluates every achievement's unlock rule for one user."""

    def __init__(self, db: AsyncSession, redis: object | None = None) -> None:
        self.db = db
        self.redis = redis
        self._catalog: list[tuple[Achievement, AchievementRequirement]] | None = None

    async def _load_catalog(self) -> list[tuple[Achievement, AchievementRequirement]]:
        """Load and cache achievements that carry an evaluable requirement."""
        if self._catalog is None:
            threshold = get_settings().quest_master_threshold
            result = await self.db.execute(select(Achievement).order_by(Achievement.sort_order, Achievement.id))
            catalog = []
            for achievement in result.scalars():
                try:
                    req = parse_achievement_requirements(achievement.type, achievement.requirements, threshold)
                except RequirementError:
                    logger.warning("Skipping achievement %s with bad requirements", achievement.slug, exc_info=True)
                    continue
                if req is not None:
                    catalog.append((achievement, req))
            self._catalog = catalog
        return self._catalog

    async def evaluate(self, user_id: int) -> list[AchievementUnlock]:
        """Unlock every achievement whose rule now holds, in catalog order.

        Unlocks credit no points, so a single pass after the quest award sees
        the final totals and level.
        """
        catalog = await self._load_catalog()
        held = await unlocked_achievement_ids(self.db, user_id)
        unlocked: list[AchievementUnlock] = []

        for achievement, req in catalog:
            if achievement.id in held:
                continue
            rule = RULES[type(req)]
            if not await rule(self.db, user_id, req):
                continue
            unlock = await unlock_achievement(self.db, self.redis, user_id, achievement)
            if unlock is not None:
                unlocked.append(unlock)

        return unlocked
