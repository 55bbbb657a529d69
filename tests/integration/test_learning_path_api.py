"""Integration tests for learning path API endpoints."""

from __future__ import annotations

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from uniquest.auth.jwt import create_access_token
from uniquest.db.models import Quest
from uniquest.progress.seed import ACHIEVEMENT_SEED_DATA, QUEST_SEED_DATA, seed_catalog


async def _finish(client: AsyncClient, quest_id: int, task_ids=("0", "1", "2")) -> dict:
    response = await client.post(f"/api/learning-path/quests/{quest_id}/start")
    assert response.status_code == 201
    data: dict = {}
    for task_id in task_ids:
        response = await client.post(f"/api/learning-path/quests/{quest_id}/tasks/{task_id}/complete")
        assert response.status_code == 200
        data = response.json()
    return data


class TestAuthRequired:
    """Every user-scoped endpoint rejects anonymous callers before any work."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method,path", [
        ("get", "/api/learning-path/progress"),
        ("get", "/api/learning-path/quests"),
        ("get", "/api/learning-path/achievements"),
        ("get", "/api/learning-path/points/history"),
        ("post", "/api/learning-path/quests/1/start"),
        ("post", "/api/learning-path/quests/1/tasks/0/complete"),
    ])
    async def test_missing_token(self, client: AsyncClient, method, path):
        response = await getattr(client, method)(path)
        assert response.status_code == 401
        assert response.json()["detail"] == "Authentication required"

    @pytest.mark.asyncio
    async def test_garbage_token(self, client: AsyncClient):
        response = await client.get(
            "/api/learning-path/progress",
            headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_token_for_unknown_user(self, client: AsyncClient):
        token = create_access_token(424242, "ghost")
        response = await client.get(
            "/api/learning-path/progress",
            headers={"Authorization": f"Bearer {token}"},
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "User not found"


class TestProgressEndpoint:

    @pytest.mark.asyncio
    async def test_fresh_user(self, authed_client: AsyncClient):
        response = await authed_client.get("/api/learning-path/progress")
        assert response.status_code == 200
        assert response.json() == {
            "totalPoints": 0,
            "level": 1,
            "questsCompleted": 0,
            "achievementsUnlocked": 0,
            "nextLevel": {"pointsNeeded": 1000, "progress": 0.0},
        }


class TestQuestsEndpoint:

    @pytest.mark.asyncio
    async def test_lists_catalog_with_status(self, authed_client: AsyncClient, catalog):
        response = await authed_client.get("/api/learning-path/quests")
        assert response.status_code == 200
        quests = response.json()
        assert len(quests) == 7
        first = quests[0]
        assert set(first) >= {"id", "title", "description", "type", "points", "status", "progress", "tasks"}
        assert first["status"] == "not_started"
        assert first["progress"] is None

    @pytest.mark.asyncio
    async def test_seeded_catalog(self, authed_client: AsyncClient, db_session):
        await seed_catalog(db_session)
        response = await authed_client.get("/api/learning-path/quests")
        assert len(response.json()) == len(QUEST_SEED_DATA)

        response = await authed_client.get("/api/learning-path/achievements")
        assert len(response.json()) == len(ACHIEVEMENT_SEED_DATA)

    @pytest.mark.asyncio
    async def test_seeding_twice_does_not_duplicate(self, authed_client: AsyncClient, db_session):
        await seed_catalog(db_session)
        await seed_catalog(db_session)
        response = await authed_client.get("/api/learning-path/quests")
        assert len(response.json()) == len(QUEST_SEED_DATA)


class TestStartQuest:

    @pytest.mark.asyncio
    async def test_start(self, authed_client: AsyncClient, catalog):
        quest_id = catalog["essay"].id
        response = await authed_client.post(f"/api/learning-path/quests/{quest_id}/start")
        assert response.status_code == 201
        data = response.json()
        assert data["questId"] == quest_id
        assert data["status"] == "in_progress"
        assert data["progress"] == {"outline": False, "draft": False}
        assert data["completedAt"] is None

    @pytest.mark.asyncio
    async def test_double_start(self, authed_client: AsyncClient, catalog):
        quest_id = catalog["essay"].id
        await authed_client.post(f"/api/learning-path/quests/{quest_id}/start")
        response = await authed_client.post(f"/api/learning-path/quests/{quest_id}/start")
        assert response.status_code == 409
        assert response.json() == {"detail": "Quest already started"}

    @pytest.mark.asyncio
    async def test_unknown_quest(self, authed_client: AsyncClient, catalog):
        response = await authed_client.post("/api/learning-path/quests/9999/start")
        assert response.status_code == 404
        assert response.json() == {"detail": "Quest not found"}

    @pytest.mark.asyncio
    async def test_non_numeric_quest_id(self, authed_client: AsyncClient, catalog):
        response = await authed_client.post("/api/learning-path/quests/abc/start")
        assert response.status_code == 422
        assert response.json()["detail"] == "Validation error"


class TestCompleteTask:

    @pytest.mark.asyncio
    async def test_partial(self, authed_client: AsyncClient, catalog):
        quest_id = catalog["essay"].id
        await authed_client.post(f"/api/learning-path/quests/{quest_id}/start")
        response = await authed_client.post(f"/api/learning-path/quests/{quest_id}/tasks/outline/complete")
        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "status": "in_progress",
            "progress": {"outline": True, "draft": False},
        }

    @pytest.mark.asyncio
    async def test_completion_awards_points(self, authed_client: AsyncClient, catalog):
        data = await _finish(authed_client, catalog["essay"].id, ("draft", "outline"))
        assert data["status"] == "completed"
        assert data["pointsAwarded"] == 200
        assert "levelUp" not in data

        progress = (await authed_client.get("/api/learning-path/progress")).json()
        assert progress["totalPoints"] == 200
        assert progress["questsCompleted"] == 1

    @pytest.mark.asyncio
    async def test_level_up_response(self, authed_client: AsyncClient, catalog, user, db_session):
        user.total_points = 950
        await db_session.commit()

        data = await _finish(authed_client, catalog["research"][0].id)
        assert data["pointsAwarded"] == 100
        assert data["levelUp"] is True
        assert data["newLevel"] == 2

        progress = (await authed_client.get("/api/learning-path/progress")).json()
        assert progress["totalPoints"] == 1050
        assert progress["level"] == 2
        assert progress["nextLevel"] == {"pointsNeeded": 950, "progress": 5.0}

    @pytest.mark.asyncio
    async def test_repeat_terminal_call(self, authed_client: AsyncClient, catalog):
        quest_id = catalog["research"][0].id
        await _finish(authed_client, quest_id)
        response = await authed_client.post(f"/api/learning-path/quests/{quest_id}/tasks/2/complete")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "completed"
        assert "pointsAwarded" not in data

        progress = (await authed_client.get("/api/learning-path/progress")).json()
        assert progress["totalPoints"] == 100

    @pytest.mark.asyncio
    async def test_quest_master_reported_once(self, authed_client: AsyncClient, catalog):
        research = catalog["research"]
        for quest in research[:4]:
            await _finish(authed_client, quest.id)

        fifth = await _finish(authed_client, research[4].id)
        assert fifth["achievement"]["title"] == "Quest Master"
        assert fifth["achievement"]["unlocked"] is True
        assert fifth["achievement"]["unlockedAt"] is not None
        assert len(fifth["achievements"]) == 1

        sixth = await _finish(authed_client, research[5].id)
        assert "achievement" not in sixth

        achievements = (await authed_client.get("/api/learning-path/achievements")).json()
        assert achievements[0]["unlocked"] is True

        progress = (await authed_client.get("/api/learning-path/progress")).json()
        assert progress["achievementsUnlocked"] == 1
        assert progress["questsCompleted"] == 6
        assert progress["totalPoints"] == 6 * 100

    @pytest.mark.asyncio
    async def test_not_started(self, authed_client: AsyncClient, catalog):
        quest_id = catalog["research"][0].id
        response = await authed_client.post(f"/api/learning-path/quests/{quest_id}/tasks/0/complete")
        assert response.status_code == 404
        assert response.json() == {"detail": "Quest not started"}

    @pytest.mark.asyncio
    async def test_unknown_task(self, authed_client: AsyncClient, catalog):
        quest_id = catalog["research"][0].id
        await authed_client.post(f"/api/learning-path/quests/{quest_id}/start")
        response = await authed_client.post(f"/api/learning-path/quests/{quest_id}/tasks/7/complete")
        assert response.status_code == 400

        quests = (await authed_client.get("/api/learning-path/quests")).json()
        started = next(q for q in quests if q["id"] == quest_id)
        assert started["progress"] == {"0": False, "1": False, "2": False}


class TestAchievementsEndpoint:

    @pytest.mark.asyncio
    async def test_locked_achievement_shape(self, authed_client: AsyncClient, catalog):
        response = await authed_client.get("/api/learning-path/achievements")
        assert response.status_code == 200
        achievement = response.json()[0]
        assert achievement["title"] == "Quest Master"
        assert achievement["icon"] == "trophy"
        assert achievement["unlocked"] is False
        assert "unlockedAt" not in achievement


class TestLevelsEndpoint:

    @pytest.mark.asyncio
    async def test_default_table(self, client: AsyncClient):
        response = await client.get("/api/learning-path/levels")
        assert response.status_code == 200
        data = response.json()
        assert data["pointsPerLevel"] == 1000
        assert len(data["levels"]) == 10
        assert data["levels"][2] == {"level": 3, "pointsRequired": 2000}

    @pytest.mark.asyncio
    async def test_up_to(self, client: AsyncClient):
        response = await client.get("/api/learning-path/levels", params={"upTo": 3})
        assert [lvl["level"] for lvl in response.json()["levels"]] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_up_to_out_of_range(self, client: AsyncClient):
        response = await client.get("/api/learning-path/levels", params={"upTo": 0})
        assert response.status_code == 422


class TestPointsHistoryEndpoint:

    @pytest.mark.asyncio
    async def test_history_after_completion(self, authed_client: AsyncClient, catalog):
        await _finish(authed_client, catalog["research"][0].id)
        await _finish(authed_client, catalog["research"][1].id)

        response = await authed_client.get("/api/learning-path/points/history", params={"perPage": 1})
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert data["page"] == 1
        assert data["perPage"] == 1
        assert len(data["entries"]) == 1
        entry = data["entries"][0]
        assert entry["amount"] == 100
        assert entry["source"] == "quest"
        assert entry["sourceId"] == str(catalog["research"][1].id)


class TestBrokenCatalogRow:

    @pytest.mark.asyncio
    async def test_bad_requirements_do_not_break_listing(self, authed_client: AsyncClient, catalog, db_session):
        broken = Quest(
            slug="broken", title="Broken", description="Bad task count",
            type="other", points=100, requirements={"kind": "task_count", "count": "three"},
        )
        db_session.add(broken)
        await db_session.commit()

        response = await authed_client.get("/api/learning-path/quests")
        assert response.status_code == 200
        assert broken.id not in {q["id"] for q in response.json()}

        response = await authed_client.post(f"/api/learning-path/quests/{broken.id}/start")
        assert response.status_code == 409


class TestCatalogSeeding:

    @pytest.mark.asyncio
    async def test_reseed_keeps_requirements_and_refreshes_titles(self, db_session):
        await seed_catalog(db_session)
        quest = (await db_session.execute(select(Quest).where(Quest.slug == "research_schools"))).scalar_one()
        quest.title = "Old Title"
        quest.requirements = {"kind": "task_count", "count": 2}
        await db_session.commit()

        await seed_catalog(db_session)
        row = (await db_session.execute(
            select(Quest.title, Quest.requirements).where(Quest.slug == "research_schools")
        )).one()
        assert row.title == "Scout the Field"
        assert row.requirements == {"kind": "task_count", "count": 2}

        count = (await db_session.execute(select(func.count(Quest.id)))).scalar_one()
        assert count == len(QUEST_SEED_DATA)
