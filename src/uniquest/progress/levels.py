"""Level computation from cumulative points.

Levels are flat bands: every POINTS_PER_LEVEL points is one level, starting
at level 1 with zero points. The frontend progress bar reads `progress`
directly, so it is clamped to [0, 100].
"""

from __future__ import annotations

POINTS_PER_LEVEL = 1000


def level_for_points(total_points: int, points_per_level: int = POINTS_PER_LEVEL) -> int:
    """Return the level reached with `total_points` (never below 1)."""
    return max(total_points, 0) // points_per_level + 1


def points_required(level: int, points_per_level: int = POINTS_PER_LEVEL) -> int:
    """Cumulative points needed to reach `level`."""
    return (level - 1) * points_per_level


def compute_level(
    total_points: int,
    level: int | None = None,
    points_per_level: int = POINTS_PER_LEVEL,
) -> dict:
    """Compute next-level metrics.

    `level` is the stored level; when omitted it is derived from points.
    """
    if level is None:
        level = level_for_points(total_points, points_per_level)

    current_floor = points_required(level, points_per_level)
    next_ceiling = level * points_per_level
    percent = (total_points - current_floor) / points_per_level * 100

    return {
        "level": level,
        "points_per_level": points_per_level,
        "current_level_floor": current_floor,
        "next_level_ceiling": next_ceiling,
        "points_needed": next_ceiling - total_points,
        "progress": min(max(percent, 0.0), 100.0),
    }


def level_table(up_to: int, points_per_level: int = POINTS_PER_LEVEL) -> list[dict]:
    """Levels 1..up_to with the cumulative points each requires."""
    return [
        {"level": lvl, "points_required": points_required(lvl, points_per_level)}
        for lvl in range(1, up_to + 1)
    ]
