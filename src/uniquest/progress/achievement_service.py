"""Achievement unlock service with duplicate prevention.

Unlocking records the achievement and broadcasts it. It never touches the
user's points: `Achievement.points` is shown to the user, not credited.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from uniquest.db.models import Achievement, UserAchievement
from uniquest.progress.events import ACHIEVEMENT_UNLOCKED_CHANNEL, publish_event

logger = logging.getLogger(__name__)


@dataclass
class AchievementUnlock:
    """An achievement unlocked during this request."""

    achievement: Achievement
    unlocked_at: datetime


async def has_achievement(db: AsyncSession, user_id: int, achievement_id: int) -> bool:
    """Check if user already unlocked a specific achievement."""
    result = await db.execute(
        select(UserAchievement.id).where(
            UserAchievement.user_id == user_id,
            UserAchievement.achievement_id == achievement_id,
        )
    )
    return result.scalar_one_or_none() is not None


async def unlocked_achievement_ids(db: AsyncSession, user_id: int) -> set[int]:
    """IDs of every achievement the user holds."""
    result = await db.execute(
        select(UserAchievement.achievement_id).where(UserAchievement.user_id == user_id)
    )
    return set(result.scalars().all())


async def unlock_achievement(
    db: AsyncSession,
    redis: object | None,
    user_id: int,
    achievement: Achievement,
) -> AchievementUnlock | None:
    """Unlock an achievement for a user.

    Returns None if the user already holds it. Handles:
    1. Insert into user_achievements (UNIQUE constraint, inside a savepoint)
    2. Broadcast achievement_unlocked
    """
    if await has_achievement(db, user_id, achievement.id):
        return None

    now = datetime.now(timezone.utc)
    try:
        async with db.begin_nested():
            db.add(UserAchievement(
                user_id=user_id,
                achievement_id=achievement.id,
                unlocked_at=now,
            ))
            await db.flush()
    except IntegrityError:
        # Race condition: a concurrent request unlocked it first
        return None

    logger.info("User %s unlocked achievement %s", user_id, achievement.slug)
    await publish_event(redis, ACHIEVEMENT_UNLOCKED_CHANNEL, {
        "user_id": user_id,
        "achievement_slug": achievement.slug,
        "title": achievement.title,
        "points": achievement.points,
    })

    return AchievementUnlock(achievement=achievement, unlocked_at=now)
