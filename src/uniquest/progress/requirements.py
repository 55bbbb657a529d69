"""Typed views over the opaque `requirements` JSON on quests and achievements.

Quest requirements:
    {"kind": "task_count", "count": 3}          -> task keys "0", "1", "2"
    {"kind": "task_list", "tasks": ["a", "b"]}  -> task keys "a", "b"
    {} or missing                               -> task_count with the configured default

Achievement requirements:
    {"kind": "completed_quests", "count": 5}
    {"kind": "total_points", "points": 2000}
    {"kind": "level", "level": 3}
    {"kind": "quest_type", "type": "essay", "count": 2}
    {} on a `quest_master` achievement          -> completed_quests with the configured threshold
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

QUEST_MASTER_TYPE = "quest_master"


class RequirementError(ValueError):
    """Requirements JSON could not be interpreted."""


# --- Quest task sets ---


@dataclass(frozen=True)
class FixedTaskCount:
    count: int

    def task_keys(self) -> list[str]:
        return [str(i) for i in range(self.count)]


@dataclass(frozen=True)
class TaskList:
    tasks: tuple[str, ...]

    def task_keys(self) -> list[str]:
        return list(self.tasks)


QuestRequirement = FixedTaskCount | TaskList


def parse_quest_requirements(raw: dict[str, Any] | None, default_task_count: int = 3) -> QuestRequirement:
    """Parse a quest's requirements into a task-set variant."""
    if not raw:
        return FixedTaskCount(default_task_count)
    if not isinstance(raw, dict):
        raise RequirementError(f"Quest requirements must be an object, got {type(raw).__name__}")

    kind = raw.get("kind")
    if kind == "task_count":
        try:
            count = int(raw.get("count", default_task_count))
        except (TypeError, ValueError) as e:
            raise RequirementError(f"Malformed task_count requirement: {e}") from e
        if count < 1:
            raise RequirementError("task_count must be at least 1")
        return FixedTaskCount(count)

    if kind == "task_list":
        raw_tasks = raw.get("tasks") or []
        if not isinstance(raw_tasks, list):
            raise RequirementError("task_list tasks must be a list")
        tasks = [str(t) for t in raw_tasks]
        if not tasks:
            raise RequirementError("task_list must name at least one task")
        if len(set(tasks)) != len(tasks):
            raise RequirementError("task_list contains duplicate task ids")
        return TaskList(tuple(tasks))

    raise RequirementError(f"Unknown quest requirement kind: {kind!r}")


def task_keys_for(raw: dict[str, Any] | None, default_task_count: int = 3) -> list[str]:
    """Ordered task keys for a quest."""
    return parse_quest_requirements(raw, default_task_count).task_keys()


# --- Achievement unlock conditions ---


@dataclass(frozen=True)
class CompletedQuestCount:
    count: int


@dataclass(frozen=True)
class TotalPointsReached:
    points: int


@dataclass(frozen=True)
class LevelReached:
    level: int


@dataclass(frozen=True)
class QuestTypeCount:
    quest_type: str
    count: int


AchievementRequirement = CompletedQuestCount | TotalPointsReached | LevelReached | QuestTypeCount


def parse_achievement_requirements(
    achievement_type: str,
    raw: dict[str, Any] | None,
    quest_master_threshold: int = 5,
) -> AchievementRequirement | None:
    """Parse an achievement's unlock condition.

    Returns None when the achievement has no condition this engine evaluates
    (it can still be unlocked by other means in future).
    """
    if not raw:
        if achievement_type == QUEST_MASTER_TYPE:
            return CompletedQuestCount(quest_master_threshold)
        return None
    if not isinstance(raw, dict):
        raise RequirementError(f"Achievement requirements must be an object, got {type(raw).__name__}")

    kind = raw.get("kind")
    try:
        if kind == "completed_quests":
            return CompletedQuestCount(int(raw["count"]))
        if kind == "total_points":
            return TotalPointsReached(int(raw["points"]))
        if kind == "level":
            return LevelReached(int(raw["level"]))
        if kind == "quest_type":
            return QuestTypeCount(str(raw["type"]), int(raw.get("count", 1)))
    except (KeyError, TypeError, ValueError) as e:
        raise RequirementError(f"Malformed {kind} requirement: {e}") from e

    raise RequirementError(f"Unknown achievement requirement kind: {kind!r}")
