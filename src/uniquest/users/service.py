"""User account queries."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, select

from uniquest.db.models import User

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    """Fetch a user by ID."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_username(db: AsyncSession, username: str) -> User | None:
    """Fetch a user by username (case-insensitive)."""
    result = await db.execute(select(User).where(func.lower(User.username) == username.lower()))
    return result.scalar_one_or_none()


async def get_or_create_user(db: AsyncSession, username: str, email: str | None = None) -> tuple[User, bool]:
    """
    Get an existing user by username or create a fresh one with zero points.

    Returns:
        Tuple of (user, created).
    """
    user = await get_user_by_username(db, username)
    if user is not None:
        return user, False

    user = User(
        username=username,
        email=email or f"{username.lower()}@example.com",
        total_points=0,
        level=1,
    )
    db.add(user)
    await db.flush()
    logger.info("user_created", user_id=user.id, username=username)
    return user, True
