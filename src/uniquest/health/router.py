"""Health, readiness, and version endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from uniquest.config import get_settings
from uniquest.database import get_session
from uniquest.db.models import Quest
from uniquest.redis_client import get_redis_optional

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe — returns 200 if the process is alive."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> dict[str, object]:
    """Readiness probe — checks the database, the quest catalog and Redis.

    Redis is optional for the learning path (events are skipped without it),
    so an unconfigured client reports "disabled" rather than degrading.
    """
    checks: dict[str, object] = {}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as exc:  # noqa: BLE001
        checks["database"] = f"error: {exc}"

    if checks["database"] == "ok":
        try:
            quest_count = (await db.execute(select(func.count(Quest.id)))).scalar() or 0
            checks["catalog"] = "ok" if quest_count > 0 else "empty"
        except Exception as exc:  # noqa: BLE001
            checks["catalog"] = f"error: {exc}"

    redis = get_redis_optional()
    if redis is None:
        checks["redis"] = "disabled"
    else:
        try:
            await redis.ping()
            checks["redis"] = "ok"
        except Exception as exc:  # noqa: BLE001
            checks["redis"] = f"error: {exc}"

    all_ok = all(v in ("ok", "disabled") for v in checks.values())
    return {"status": "ready" if all_ok else "degraded", "checks": checks}


@router.get("/version")
async def version() -> dict[str, object]:
    """Return API version, environment and the level step in effect."""
    settings = get_settings()
    return {
        "version": settings.app_version,
        "environment": settings.environment,
        "pointsPerLevel": settings.points_per_level,
    }
