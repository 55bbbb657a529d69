"""Pydantic response models for learning path endpoints.

Fields serialize as camelCase to match the dashboard's TypeScript types.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# --- Progress ---


class NextLevelInfo(CamelModel):
    points_needed: int
    progress: float


class ProgressResponse(CamelModel):
    total_points: int
    level: int
    quests_completed: int
    achievements_unlocked: int
    next_level: NextLevelInfo


# --- Quests ---


class QuestItem(CamelModel):
    id: int
    title: str
    description: str
    type: str
    points: int
    status: str
    progress: dict[str, bool] | None = None
    tasks: list[str] = []


class UserQuestResponse(CamelModel):
    id: int
    user_id: int
    quest_id: int
    status: str
    progress: dict[str, bool]
    started_at: datetime
    completed_at: datetime | None = None


# --- Achievements ---


class AchievementItem(CamelModel):
    id: int
    title: str
    description: str
    type: str
    icon: str
    points: int
    unlocked: bool
    unlocked_at: datetime | None = None


class CompleteTaskResponse(CamelModel):
    success: bool = True
    status: str
    progress: dict[str, bool]
    points_awarded: int | None = None
    level_up: bool | None = None
    new_level: int | None = None
    achievement: AchievementItem | None = None
    achievements: list[AchievementItem] | None = None


# --- Levels & ledger ---


class LevelEntry(CamelModel):
    level: int
    points_required: int


class LevelsResponse(CamelModel):
    points_per_level: int
    levels: list[LevelEntry]


class PointsHistoryEntry(CamelModel):
    amount: int
    source: str
    source_id: str | None = None
    description: str | None = None
    created_at: datetime | None = None


class PointsHistoryResponse(CamelModel):
    entries: list[PointsHistoryEntry]
    total: int
    page: int
    per_page: int
