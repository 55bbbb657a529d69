"""Shared test fixtures.

Every test that touches the database gets its own SQLite file under
pytest's tmp_path, created from ORM metadata. Redis is left uninitialized:
rate limiting passes requests through and progress events are skipped.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from uniquest.auth.jwt import create_access_token
from uniquest.config import get_settings
from uniquest.database import close_db, create_all, get_session_factory, init_db
from uniquest.db.models import Achievement, Quest, User
from uniquest.users.service import get_or_create_user

os.environ.setdefault("UQ_JWT_SECRET", "test-secret-key-for-uniquest-0123456789")


@pytest.fixture(autouse=True)
def _settings_cache():
    """Settings are cached per process; reset around each test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def database(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> AsyncGenerator[str, None]:
    """Fresh SQLite database with all tables created."""
    url = f"sqlite+aiosqlite:///{tmp_path / 'uniquest_test.db'}"
    monkeypatch.setenv("UQ_DATABASE_URL", url)
    get_settings.cache_clear()

    await init_db(url)
    await create_all()
    yield url
    await close_db()


@pytest_asyncio.fixture
async def db_session(database: str) -> AsyncGenerator[AsyncSession, None]:
    """Direct database session for service calls and assertions."""
    async with get_session_factory()() as session:
        yield session


@pytest_asyncio.fixture
async def user(db_session: AsyncSession) -> User:
    """A fresh applicant with zero points at level 1."""
    applicant, _ = await get_or_create_user(db_session, "applicant", "applicant@example.com")
    await db_session.commit()
    return applicant


@pytest_asyncio.fixture
async def catalog(db_session: AsyncSession) -> dict[str, object]:
    """Small deterministic catalog.

    Six 100-point research quests with the default three tasks, one
    200-point essay quest with named tasks, and a quest_master achievement
    driven by the default threshold of five completed quests.
    """
    research = [
        Quest(
            slug=f"research_{i}",
            title=f"Research {i}",
            description=f"Research step {i}",
            type="research",
            points=100,
            requirements={},
            sort_order=i,
        )
        for i in range(1, 7)
    ]
    essay = Quest(
        slug="essay_draft",
        title="Essay Draft",
        description="Outline and draft the personal statement",
        type="essay",
        points=200,
        requirements={"kind": "task_list", "tasks": ["outline", "draft"]},
        sort_order=10,
    )
    quest_master = Achievement(
        slug="quest_master",
        title="Quest Master",
        description="Complete five quests",
        type="quest_master",
        icon="trophy",
        points=250,
        requirements={},
        sort_order=1,
    )
    db_session.add_all([*research, essay, quest_master])
    await db_session.commit()
    return {"research": research, "essay": essay, "quest_master": quest_master}


@pytest_asyncio.fixture
async def client(database: str) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client bound to the test database."""
    from uniquest.main import create_app

    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def authed_client(client: AsyncClient, user: User) -> AsyncClient:
    """Client carrying a valid access token for the `user` fixture."""
    token = create_access_token(user.id, user.username)
    client.headers["Authorization"] = f"Bearer {token}"
    return client


@pytest.fixture
def finish_quest():
    """Start a quest and check off every task; returns the last completion response."""

    async def _finish(svc, user_id: int, quest: Quest, task_ids: list[str] | None = None) -> dict:
        await svc.start_quest(user_id, quest.id)
        result: dict = {}
        for task_id in task_ids or ["0", "1", "2"]:
            result = await svc.complete_task(user_id, quest.id, task_id)
        return result

    return _finish
