"""Quest service: progress summary, catalog listings and the quest lifecycle."""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from sqlalchemy import and_, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from uniquest.config import get_settings
from uniquest.db.models import (
    QUEST_COMPLETED,
    QUEST_IN_PROGRESS,
    QUEST_NOT_STARTED,
    Achievement,
    Quest,
    User,
    UserAchievement,
    UserQuest,
)
from uniquest.progress.errors import BadRequestError, ConflictError, NotFoundError
from uniquest.progress.events import QUEST_COMPLETED_CHANNEL, publish_event
from uniquest.progress.levels import compute_level
from uniquest.progress.points_service import award_points
from uniquest.progress.requirements import RequirementError, task_keys_for
from uniquest.progress.rules import AchievementRules, completed_quest_count

logger = structlog.get_logger()


def achievement_payload(achievement: Achievement, unlocked_at: datetime | None = None) -> dict:
    """Plain dict view of an achievement, as reported to the caller."""
    return {
        "id": achievement.id,
        "title": achievement.title,
        "description": achievement.description,
        "type": achievement.type,
        "icon": achievement.icon,
        "points": achievement.points,
        "unlocked": unlocked_at is not None,
        "unlocked_at": unlocked_at,
    }


class QuestService:
    """Learning path engine: quest lifecycle, point awards, achievement unlocks."""

    def __init__(
        self,
        db: AsyncSession,
        redis: object | None = None,
    ) -> None:
        self.db = db
        self.redis = redis
        self.settings = get_settings()

    def _task_keys_or_none(self, quest: Quest) -> list[str] | None:
        try:
            return task_keys_for(quest.requirements, self.settings.default_task_count)
        except RequirementError as e:
            logger.warning("quest_requirements_invalid", quest_id=quest.id, slug=quest.slug, error=str(e))
            return None

    def task_keys(self, quest: Quest) -> list[str]:
        """Ordered task keys; a quest whose requirements cannot be parsed is unplayable."""
        keys = self._task_keys_or_none(quest)
        if keys is None:
            raise ConflictError(f"Quest {quest.id} is unavailable: invalid task requirements")
        return keys

    # --- Reads ---

    async def get_progress(self, user_id: int) -> dict:
        """Points, level, completion counts and next-level metrics for a user."""
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")

        quests_completed = await completed_quest_count(self.db, user_id)
        achievements_result = await self.db.execute(
            select(func.count(UserAchievement.id)).where(UserAchievement.user_id == user_id)
        )

        level_info = compute_level(user.total_points, user.level, self.settings.points_per_level)
        return {
            "total_points": user.total_points,
            "level": user.level,
            "quests_completed": quests_completed,
            "achievements_unlocked": achievements_result.scalar() or 0,
            "next_level": {
                "points_needed": level_info["points_needed"],
                "progress": level_info["progress"],
            },
        }

    async def list_quests(self, user_id: int) -> list[dict]:
        """Every catalog quest with the user's status and task progress."""
        result = await self.db.execute(
            select(Quest, UserQuest)
            .outerjoin(
                UserQuest,
                and_(UserQuest.quest_id == Quest.id, UserQuest.user_id == user_id),
            )
            .order_by(Quest.sort_order, Quest.id)
        )

        quests = []
        for quest, user_quest in result:
            tasks = self._task_keys_or_none(quest)
            if tasks is None:
                continue
            quests.append({
                "id": quest.id,
                "title": quest.title,
                "description": quest.description,
                "type": quest.type,
                "points": quest.points,
                "status": user_quest.status if user_quest else QUEST_NOT_STARTED,
                "progress": dict(user_quest.progress) if user_quest else None,
                "tasks": tasks,
            })
        return quests

    async def list_achievements(self, user_id: int) -> list[dict]:
        """Every catalog achievement with the user's unlock state."""
        result = await self.db.execute(
            select(Achievement, UserAchievement.unlocked_at)
            .outerjoin(
                UserAchievement,
                and_(
                    UserAchievement.achievement_id == Achievement.id,
                    UserAchievement.user_id == user_id,
                ),
            )
            .order_by(Achievement.sort_order, Achievement.id)
        )
        return [achievement_payload(a, unlocked_at) for a, unlocked_at in result]

    # --- Lifecycle ---

    async def start_quest(self, user_id: int, quest_id: int) -> UserQuest:
        """Create the user's in-progress row with every task unchecked."""
        quest = await self.db.get(Quest, quest_id)
        if quest is None:
            raise NotFoundError("Quest not found")
        keys = self.task_keys(quest)

        existing = await self.db.execute(
            select(UserQuest.id).where(
                UserQuest.user_id == user_id,
                UserQuest.quest_id == quest_id,
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise ConflictError("Quest already started")

        user_quest = UserQuest(
            user_id=user_id,
            quest_id=quest_id,
            status=QUEST_IN_PROGRESS,
            progress={key: False for key in keys},
            started_at=datetime.now(timezone.utc),
            completed_at=None,
        )
        self.db.add(user_quest)
        try:
            await self.db.flush()
        except IntegrityError as e:
            # Concurrent duplicate start hit UNIQUE(user_id, quest_id)
            raise ConflictError("Quest already started") from e

        logger.info("quest_started", user_id=user_id, quest_id=quest_id)
        return user_quest

    async def complete_task(self, user_id: int, quest_id: int, task_id: str) -> dict:
        """Check off one task; completes the quest and awards points when it was the last one."""
        result = await self.db.execute(
            select(UserQuest)
            .where(
                UserQuest.user_id == user_id,
                UserQuest.quest_id == quest_id,
            )
            .with_for_update()
        )
        user_quest = result.scalar_one_or_none()
        if user_quest is None:
            raise NotFoundError("Quest not started")

        quest = await self.db.get(Quest, quest_id)
        if quest is None:
            raise NotFoundError("Quest not found")

        keys = self.task_keys(quest)
        if task_id not in keys:
            raise BadRequestError(f"Unknown task '{task_id}' for quest {quest_id}")

        progress = {key: bool(user_quest.progress.get(key, False)) for key in keys}
        progress[task_id] = True
        if progress != user_quest.progress:
            # Reassign so the JSON column is marked dirty
            user_quest.progress = progress

        await self.db.flush()

        just_completed = False
        if all(progress.values()) and user_quest.status != QUEST_COMPLETED:
            flip = await self.db.execute(
                update(UserQuest)
                .where(UserQuest.id == user_quest.id, UserQuest.status != QUEST_COMPLETED)
                .values(status=QUEST_COMPLETED, completed_at=datetime.now(timezone.utc))
                .execution_options(synchronize_session=False)
            )
            just_completed = flip.rowcount == 1
            await self.db.refresh(user_quest)

        response: dict = {
            "success": True,
            "status": user_quest.status,
            "progress": dict(user_quest.progress),
        }
        if not just_completed:
            return response

        logger.info("quest_completed", user_id=user_id, quest_id=quest_id, points=quest.points)
        await publish_event(self.redis, QUEST_COMPLETED_CHANNEL, {
            "user_id": user_id,
            "quest_id": quest_id,
            "points": quest.points,
        })

        quest_award = await award_points(
            db=self.db,
            redis=self.redis,
            user_id=user_id,
            amount=quest.points,
            source="quest",
            source_id=str(quest_id),
            description=f"Completed quest: {quest.title}",
            idempotency_key=f"quest:{quest_id}:{user_id}",
        )
        if quest_award is not None:
            response["points_awarded"] = quest_award.amount
            if quest_award.level_up:
                response["level_up"] = True
                response["new_level"] = quest_award.new_level
                logger.info("level_up", user_id=user_id, new_level=quest_award.new_level)

        unlocks = await AchievementRules(self.db, self.redis).evaluate(user_id)

        if unlocks:
            payloads = [achievement_payload(u.achievement, u.unlocked_at) for u in unlocks]
            response["achievement"] = payloads[0]
            response["achievements"] = payloads
            logger.info("achievements_unlocked", user_id=user_id, slugs=[u.achievement.slug for u in unlocks])

        return response
