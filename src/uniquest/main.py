"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from uniquest.config import get_settings
from uniquest.database import close_db, get_session_factory, init_db
from uniquest.health.router import router as health_router
from uniquest.middleware import setup_middleware
from uniquest.progress.router import router as learning_path_router
from uniquest.progress.seed import seed_catalog
from uniquest.redis_client import close_redis, init_redis

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    # Seed quest and achievement definitions (idempotent, keyed by slug)
    if settings.seed_catalog_on_startup:
        try:
            async with get_session_factory()() as db:
                await seed_catalog(db)
        except Exception:  # noqa: BLE001
            logger.warning("catalog_seeding_failed", hint="tables may not exist yet", exc_info=True)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="UniQuest Learning Path API",
        description="Quests, points, levels and achievements for the college application journey",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(learning_path_router)

    return app


app = create_app()
