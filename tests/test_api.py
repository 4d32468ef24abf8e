"""HTTP tests for the v1 API over an in-process ASGI transport."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from conftest import TODAY
from snapbook.api.v1.deps import get_clock, get_text_classifier
from snapbook.core.auth import create_access_token
from snapbook.database import get_db
from snapbook.config import TestingConfig
from snapbook.main import app, create_app


def _auth(user):
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}


@pytest_asyncio.fixture
async def client(session_factory, clock, classifier, seed):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_text_classifier] = lambda: classifier

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def ids(seed):
    return {
        "sprint": seed.sprint.id,
        "project": seed.project.id,
        "card": seed.card.id,
        "other_card": seed.other_card.id,
    }


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestAppFactory:
    @pytest.mark.asyncio
    async def test_lifespan_uses_the_given_config(self, monkeypatch):
        calls = []
        monkeypatch.setattr("snapbook.main.setup_logging", lambda level, log_file: calls.append((level, log_file)))
        monkeypatch.setattr("snapbook.main.create_schema", AsyncMock())
        disposed = AsyncMock()
        monkeypatch.setattr("snapbook.main.engine", SimpleNamespace(dispose=disposed))

        config = TestingConfig(app_name="Snapbook Staging", log_level="debug", log_file="staging.log")
        application = create_app(config)
        async with application.router.lifespan_context(application):
            assert calls == [("DEBUG", "staging.log")]

        assert application.title == "Snapbook Staging"
        disposed.assert_awaited_once()


class TestAuth:
    @pytest.mark.asyncio
    async def test_missing_token(self, client, ids):
        response = await client.get(f"/api/v1/snaps/card/{ids['card']}")
        assert response.status_code == 401
        assert response.json() == {"detail": "Not authenticated"}

    @pytest.mark.asyncio
    async def test_bad_token(self, client, ids):
        response = await client.get(
            f"/api/v1/snaps/card/{ids['card']}", headers={"Authorization": "Bearer not-a-jwt"}
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_lock_requires_scrum_master(self, client, seed, ids):
        response = await client.post(
            "/api/v1/standup-book/lock-day",
            json={"sprint_id": ids["sprint"], "date": TODAY.isoformat()},
            headers=_auth(seed.author),
        )
        assert response.status_code == 403


class TestSnapEndpoints:
    @pytest.mark.asyncio
    async def test_create_and_fetch(self, client, seed, ids):
        response = await client.post(
            "/api/v1/snaps",
            json={"card_id": ids["card"], "raw_input": "Completed login page, starting API tomorrow"},
            headers=_auth(seed.author),
        )
        assert response.status_code == 201
        body = response.json()
        assert body["final_rag"] == "green"
        assert body["snap_date"] == TODAY.isoformat()

        fetched = await client.get(f"/api/v1/snaps/{body['id']}", headers=_auth(seed.other))
        assert fetched.status_code == 200
        assert fetched.json()["done"] == "Completed login page"

        by_card = await client.get(f"/api/v1/snaps/card/{ids['card']}", headers=_auth(seed.other))
        assert [s["id"] for s in by_card.json()] == [body["id"]]

    @pytest.mark.asyncio
    async def test_validation_error_is_400(self, client, seed, ids):
        response = await client.post(
            "/api/v1/snaps",
            json={"card_id": ids["card"], "raw_input": "Update", "slot_number": 5},
            headers=_auth(seed.author),
        )
        assert response.status_code == 400
        assert response.json() == {"detail": "Slot number must be between 1 and 2"}

    @pytest.mark.asyncio
    async def test_missing_snap_is_404(self, client, seed):
        response = await client.get("/api/v1/snaps/9999", headers=_auth(seed.author))
        assert response.status_code == 404
        assert response.json() == {"detail": "Snap not found"}

    @pytest.mark.asyncio
    async def test_edit_by_other_user_is_403(self, client, seed, ids):
        created = await client.post(
            "/api/v1/snaps", json={"card_id": ids["card"], "raw_input": "Mine"}, headers=_auth(seed.author)
        )
        response = await client.patch(
            f"/api/v1/snaps/{created.json()['id']}", json={"done": "Not mine"}, headers=_auth(seed.other)
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_update_and_delete(self, client, seed, ids):
        created = await client.post(
            "/api/v1/snaps", json={"card_id": ids["card"], "raw_input": "Mine"}, headers=_auth(seed.author)
        )
        snap_id = created.json()["id"]

        patched = await client.patch(
            f"/api/v1/snaps/{snap_id}", json={"blockers": "Waiting on review"}, headers=_auth(seed.author)
        )
        assert patched.status_code == 200
        assert patched.json()["blockers"] == "Waiting on review"

        deleted = await client.delete(f"/api/v1/snaps/{snap_id}", headers=_auth(seed.author))
        assert deleted.status_code == 204
        assert (await client.get(f"/api/v1/snaps/{snap_id}", headers=_auth(seed.author))).status_code == 404

    @pytest.mark.asyncio
    async def test_parse_and_system_rag(self, client, seed, ids):
        parsed = await client.post(
            "/api/v1/snaps/parse", json={"card_id": ids["card"], "raw_input": "Anything"}, headers=_auth(seed.author)
        )
        assert parsed.status_code == 200
        assert parsed.json()["suggested_rag"] == "green"

        created = await client.post(
            "/api/v1/snaps", json={"card_id": ids["card"], "raw_input": "Anything"}, headers=_auth(seed.author)
        )
        suggestion = await client.get(f"/api/v1/snaps/{created.json()['id']}/system-rag", headers=_auth(seed.author))
        assert suggestion.status_code == 200
        assert suggestion.json()["rag_status"] == "green"

    @pytest.mark.asyncio
    async def test_override_rag(self, client, seed, ids):
        created = await client.post(
            "/api/v1/snaps", json={"card_id": ids["card"], "raw_input": "Anything"}, headers=_auth(seed.author)
        )
        url = f"/api/v1/snaps/{created.json()['id']}/override-rag"

        assert (await client.post(url, json={"rag": "red"}, headers=_auth(seed.author))).status_code == 403
        response = await client.post(url, json={"rag": "red", "notes": "Risky"}, headers=_auth(seed.scrum_master))
        assert response.status_code == 200
        assert response.json()["final_rag"] == "red"

        history = await client.get(f"/api/v1/rag/card/{ids['card']}/history", headers=_auth(seed.author))
        assert history.json()[0]["is_overridden"] is True


class TestStandupBookEndpoints:
    @pytest.mark.asyncio
    async def test_lock_day_flow(self, client, seed, ids):
        await client.post(
            "/api/v1/snaps", json={"card_id": ids["card"], "raw_input": "Work"}, headers=_auth(seed.author)
        )
        payload = {"sprint_id": ids["sprint"], "date": TODAY.isoformat()}

        locked = await client.post("/api/v1/standup-book/lock-day", json=payload, headers=_auth(seed.scrum_master))
        assert locked.status_code == 201
        assert locked.json()["slot_number"] is None

        again = await client.post("/api/v1/standup-book/lock-day", json=payload, headers=_auth(seed.scrum_master))
        assert again.status_code == 400
        assert again.json() == {"detail": "This day is already locked"}

        status = await client.get(
            f"/api/v1/standup-book/is-locked/{ids['sprint']}/{TODAY.isoformat()}", headers=_auth(seed.author)
        )
        assert status.json()["is_locked"] is True

        summary = await client.get(f"/api/v1/summaries/{ids['sprint']}/{TODAY.isoformat()}", headers=_auth(seed.author))
        assert summary.status_code == 200
        assert summary.json()["rag_overview"]["sprintLevel"] == "green"

        metadata = await client.get(
            f"/api/v1/standup-book/day-metadata/{ids['sprint']}/{TODAY.isoformat()}", headers=_auth(seed.author)
        )
        assert metadata.json()["day_status"] == "completed"

    @pytest.mark.asyncio
    async def test_lock_slot_and_unlock(self, client, seed, ids):
        headers = _auth(seed.scrum_master)
        day = TODAY.isoformat()

        locked = await client.post(
            "/api/v1/standup-book/lock-slot",
            json={"sprint_id": ids["sprint"], "date": day, "slot_number": 2},
            headers=headers,
        )
        assert locked.status_code == 201

        locks = await client.get(f"/api/v1/standup-book/locks/{ids['sprint']}/{day}", headers=headers)
        assert [lock["slot_number"] for lock in locks.json()] == [2]
        daily = await client.get(f"/api/v1/standup-book/daily-lock/{ids['sprint']}/{day}", headers=headers)
        assert daily.json() is None

        unlocked = await client.delete(
            "/api/v1/standup-book/lock",
            params={"sprint_id": ids["sprint"], "date": day, "slot_number": 2},
            headers=headers,
        )
        assert unlocked.status_code == 204
        missing = await client.delete(
            "/api/v1/standup-book/lock", params={"sprint_id": ids["sprint"], "date": day}, headers=headers
        )
        assert missing.status_code == 404

    @pytest.mark.asyncio
    async def test_sprint_views(self, client, seed, ids):
        headers = _auth(seed.author)
        active = await client.get(f"/api/v1/standup-book/active-sprint/{ids['project']}", headers=headers)
        assert active.json()["id"] == ids["sprint"]

        days = await client.get(f"/api/v1/standup-book/sprint-days/{ids['sprint']}", headers=headers)
        assert len(days.json()) == 14

        slots = await client.get(
            f"/api/v1/standup-book/snaps-by-slots/{ids['sprint']}/{TODAY.isoformat()}", headers=headers
        )
        assert [group["slot_number"] for group in slots.json()] == [1, 2]


class TestSummaryAndRAGEndpoints:
    @pytest.mark.asyncio
    async def test_generate_is_idempotent(self, client, seed, ids):
        payload = {"sprint_id": ids["sprint"], "date": TODAY.isoformat()}
        first = await client.post("/api/v1/summaries/generate", json=payload, headers=_auth(seed.author))
        second = await client.post("/api/v1/summaries/generate", json=payload, headers=_auth(seed.author))
        assert first.status_code == second.status_code == 201
        assert first.json() == second.json()

        listed = await client.get(f"/api/v1/summaries/project/{ids['project']}", headers=_auth(seed.author))
        assert [s["id"] for s in listed.json()] == [first.json()["id"]]

    @pytest.mark.asyncio
    async def test_missing_summary_is_404(self, client, seed, ids):
        response = await client.get(f"/api/v1/summaries/{ids['sprint']}/{TODAY.isoformat()}", headers=_auth(seed.author))
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_rollups(self, client, seed, ids):
        await client.post(
            "/api/v1/snaps",
            json={"card_id": ids["other_card"], "raw_input": "x", "blockers": "Stuck", "suggested_rag": "red"},
            headers=_auth(seed.other),
        )
        sprint = await client.get(f"/api/v1/rag/sprint/{ids['sprint']}", headers=_auth(seed.author))
        assert sprint.json()["rag_status"] == "red"

        project = await client.get(f"/api/v1/rag/project/{ids['project']}", headers=_auth(seed.author))
        assert project.json()["breakdown"] == {"green": 0, "amber": 0, "red": 1}

        missing = await client.get("/api/v1/rag/project/9999", headers=_auth(seed.author))
        assert missing.status_code == 404
