"""Point award service with idempotency, atomic increments and level-up detection."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from uniquest.config import get_settings
from uniquest.db.models import PointsLedger, User
from uniquest.progress.errors import ConflictError, NotFoundError
from uniquest.progress.events import LEVEL_UP_CHANNEL, publish_event
from uniquest.progress.levels import level_for_points

logger = logging.getLogger(__name__)

_users = User.__table__


@dataclass
class PointsAward:
    """Outcome of a successful award."""

    amount: int
    total_points: int
    old_level: int
    new_level: int
    level_up: bool


async def award_points(
    db: AsyncSession,
    redis: object | None,
    user_id: int,
    amount: int,
    source: str,
    source_id: str,
    description: str,
    idempotency_key: str,
) -> PointsAward | None:
    """Award points to a user. Returns None if this award was already made.

    Steps:
    1. Atomically add to users.total_points, reading back the new total
    2. Insert into points_ledger (unique idempotency_key)
    3. Recompute level; raise the stored level only if it went up
    4. On level up, broadcast a level_up event
    """
    existing = await db.execute(
        select(PointsLedger.id).where(PointsLedger.idempotency_key == idempotency_key)
    )
    if existing.scalar_one_or_none() is not None:
        return None

    row = (await db.execute(
        update(_users)
        .where(_users.c.id == user_id)
        .values(total_points=_users.c.total_points + amount)
        .returning(_users.c.total_points, _users.c.level)
    )).one_or_none()
    if row is None:
        raise NotFoundError("User not found")

    now = datetime.now(timezone.utc)
    db.add(PointsLedger(
        user_id=user_id,
        amount=amount,
        source=source,
        source_id=source_id,
        description=description,
        idempotency_key=idempotency_key,
        created_at=now,
    ))
    try:
        await db.flush()
    except IntegrityError as e:
        # Lost a race with a concurrent request making the same award
        raise ConflictError("Points already awarded") from e

    total_points, old_level = row
    new_level = level_for_points(total_points, get_settings().points_per_level)

    # Conditional write keeps the level monotonic under concurrent awards
    level_result = await db.execute(
        update(_users)
        .where(_users.c.id == user_id, _users.c.level < new_level)
        .values(level=new_level)
    )
    level_up = level_result.rowcount == 1

    # Sync any User instance already loaded in this session
    await db.get(User, user_id, populate_existing=True)

    if level_up:
        logger.info("User %s leveled up %s -> %s", user_id, old_level, new_level)
        await publish_event(redis, LEVEL_UP_CHANNEL, {
            "user_id": user_id,
            "old_level": old_level,
            "new_level": new_level,
            "total_points": total_points,
        })

    return PointsAward(
        amount=amount,
        total_points=total_points,
        old_level=old_level,
        new_level=max(new_level, old_level),
        level_up=level_up,
    )


async def get_points_history(
    db: AsyncSession,
    user_id: int,
    page: int = 1,
    per_page: int = 50,
) -> tuple[list[PointsLedger], int]:
    """Return one page of ledger entries (newest first) and the total count."""
    total_result = await db.execute(
        select(func.count()).select_from(PointsLedger).where(PointsLedger.user_id == user_id)
    )
    total = total_result.scalar_one()

    result = await db.execute(
        select(PointsLedger)
        .where(PointsLedger.user_id == user_id)
        .order_by(PointsLedger.created_at.desc(), PointsLedger.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return list(result.scalars().all()), total
