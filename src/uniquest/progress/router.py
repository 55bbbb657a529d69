"""Learning path API endpoints — progress, quests, achievements, levels, points history."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from uniquest.auth.dependencies import get_current_user
from uniquest.config import get_settings
from uniquest.database import get_session
from uniquest.db.models import User
from uniquest.progress.errors import ProgressError
from uniquest.progress.levels import level_table
from uniquest.progress.points_service import get_points_history
from uniquest.progress.quest_service import QuestService
from uniquest.progress.schemas import (
    AchievementItem,
    CompleteTaskResponse,
    LevelEntry,
    LevelsResponse,
    PointsHistoryEntry,
    PointsHistoryResponse,
    ProgressResponse,
    QuestItem,
    UserQuestResponse,
)
from uniquest.redis_client import get_redis_optional

router = APIRouter(prefix="/api/learning-path", tags=["Learning Path"])


# ── Public endpoints ──


@router.get("/levels", response_model=LevelsResponse)
async def list_levels(up_to: int = Query(10, ge=1, le=100, alias="upTo")):
    """Cumulative points required for each level."""
    settings = get_settings()
    return LevelsResponse(
        points_per_level=settings.points_per_level,
        levels=[LevelEntry(**row) for row in level_table(up_to, settings.points_per_level)],
    )


# ── Authenticated endpoints ──


@router.get("/progress", response_model=ProgressResponse)
async def get_progress(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Points, level and next-level progress for the current user."""
    svc = QuestService(db)
    return ProgressResponse(**await svc.get_progress(user.id))


@router.get("/quests", response_model=list[QuestItem])
async def list_quests(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """All quests with the current user's status and task progress."""
    svc = QuestService(db)
    return [QuestItem(**q) for q in await svc.list_quests(user.id)]


@router.get("/achievements", response_model=list[AchievementItem], response_model_exclude_none=True)
async def list_achievements(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """All achievements with the current user's unlock state."""
    svc = QuestService(db)
    return [AchievementItem(**a) for a in await svc.list_achievements(user.id)]


@router.post("/quests/{quest_id}/start", response_model=UserQuestResponse, status_code=201)
async def start_quest(
    quest_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Start a quest. Starting the same quest twice is rejected with 409."""
    svc = QuestService(db, redis=get_redis_optional())
    try:
        user_quest = await svc.start_quest(user.id, quest_id)
        await db.commit()
    except ProgressError:
        await db.rollback()
        raise
    return UserQuestResponse.model_validate(user_quest)


@router.post(
    "/quests/{quest_id}/tasks/{task_id}/complete",
    response_model=CompleteTaskResponse,
    response_model_exclude_none=True,
)
async def complete_task(
    quest_id: int,
    task_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Check off a task. Completing the last task awards points and may level up or unlock achievements."""
    svc = QuestService(db, redis=get_redis_optional())
    try:
        result = await svc.complete_task(user.id, quest_id, task_id)
        await db.commit()
    except ProgressError:
        await db.rollback()
        raise
    return CompleteTaskResponse(**result)


@router.get("/points/history", response_model=PointsHistoryResponse)
async def points_history(
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=100, alias="perPage"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Point awards for the current user, newest first (paginated)."""
    entries, total = await get_points_history(db, user.id, page=page, per_page=per_page)
    return PointsHistoryResponse(
        entries=[PointsHistoryEntry.model_validate(e) for e in entries],
        total=total,
        page=page,
        per_page=per_page,
    )
