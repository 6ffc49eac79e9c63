"""Tests for the HTTP API (items, review sessions and stats)."""

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from backend.api import session_router
from backend.database import get_store
from backend.main import app
from backend.srs.sql_store import SqlRecordStore


@pytest_asyncio.fixture
async def client(sql_store: SqlRecordStore) -> AsyncIterator[AsyncClient]:
    app.dependency_overrides[get_store] = lambda: sql_store
    session_router._active_sessions.clear()
    session_router._saved_sessions.clear()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def _start(client: AsyncClient, *items: str, **options: object) -> str:
    for item in items:
        response = await client.post(f"/api/items/{item}")
        assert response.status_code == 201
    body = {"randomize": False, "direction": "forward", **options}
    response = await client.post("/api/session/start", json=body)
    assert response.status_code == 200
    return response.json()["session_id"]


class TestItems:
    @pytest.mark.asyncio
    async def test_add_item(self, client: AsyncClient) -> None:
        response = await client.post("/api/items/hola")
        assert response.status_code == 201
        data = response.json()
        assert data["item_id"] == "hola"
        assert data["ease_factor"] == 2.5
        assert data["interval"] == 1
        assert data["repetition"] == 0
        assert data["status"] == "new"

    @pytest.mark.asyncio
    async def test_delete_item(self, client: AsyncClient) -> None:
        await client.post("/api/items/hola")
        assert (await client.delete("/api/items/hola")).status_code == 204
        assert (await client.delete("/api/items/hola")).status_code == 404
        assert (await client.get("/api/stats/items/hola")).status_code == 404


class TestSessionFlow:
    @pytest.mark.asyncio
    async def test_start_without_items(self, client: AsyncClient) -> None:
        response = await client.post("/api/session/start", json={})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_full_session(self, client: AsyncClient) -> None:
        session_id = await _start(client, "hola", "adios")

        progress = (await client.get(f"/api/session/progress/{session_id}")).json()
        assert progress == {
            "status": "in_progress",
            "reviewed": 0,
            "total": 2,
            "remaining": 2,
            "progress": 0.0,
        }

        seen = []
        for _ in range(2):
            response = await client.get(f"/api/session/next/{session_id}")
            assert response.status_code == 200
            item = response.json()
            assert item["direction"] == "forward"
            assert item["status"] == "new"
            seen.append(item["item_id"])

            answer = await client.post(
                f"/api/session/answer/{session_id}",
                json={"item_id": item["item_id"], "rating": "good", "response_time_ms": 7000},
            )
            assert answer.status_code == 200
            data = answer.json()
            assert data["accepted"] is True
            assert data["effective_rating"] == "good"
            assert data["interval"] == 1
            assert data["next_review_label"] == "Tomorrow"

        assert sorted(seen) == ["adios", "hola"]
        assert data["session_complete"] is True
        assert data["progress"] == 1.0

        assert (await client.get(f"/api/session/next/{session_id}")).status_code == 410

        summary = (await client.get(f"/api/session/stats/{session_id}")).json()
        assert summary["status"] == "completed"
        assert summary["reviewed"] == 2
        assert summary["correct"] == 2
        assert summary["accuracy_rate"] == 1.0
        assert summary["rating_counts"]["good"] == 2
        assert summary["aborted"] is False

        overview = (await client.get("/api/stats/overview")).json()
        assert overview["total_items"] == 2
        assert overview["total_reviews"] == 2
        assert overview["items_due"] == 0
        assert overview["sessions_finished"] == 1

        stats = (await client.get("/api/stats/items/hola")).json()
        assert stats["total_reviews"] == 1
        assert stats["accuracy"] == 100
        assert stats["forward_accuracy"] == 100
        assert stats["reverse_accuracy"] is None
        assert stats["interval_label"] == "1 day"

        methods = (await client.get("/api/stats/methods")).json()
        assert sum(m["attempts"] for m in methods) == 2
        assert all(m["accuracy"] == 1.0 for m in methods)

    @pytest.mark.asyncio
    async def test_duplicate_answer_not_applied(self, client: AsyncClient) -> None:
        session_id = await _start(client, "hola", "adios")
        body = {"item_id": "hola", "rating": "easy", "response_time_ms": 3000}

        first = (await client.post(f"/api/session/answer/{session_id}", json=body)).json()
        second = (await client.post(f"/api/session/answer/{session_id}", json=body)).json()
        assert first["accepted"] is True
        assert second["accepted"] is False
        assert second["remaining"] == 1

        stats = (await client.get("/api/stats/items/hola")).json()
        assert stats["total_reviews"] == 1

    @pytest.mark.asyncio
    async def test_answer_uses_method_from_next(self, client: AsyncClient) -> None:
        session_id = await _start(client, "hola")
        item = (await client.get(f"/api/session/next/{session_id}")).json()
        await client.post(
            f"/api/session/answer/{session_id}",
            json={"item_id": "hola", "rating": "good", "response_time_ms": 4000},
        )
        methods = (await client.get("/api/stats/methods")).json()
        assert [m["method"] for m in methods] == [item["method"]]

    @pytest.mark.asyncio
    async def test_invalid_answers(self, client: AsyncClient) -> None:
        session_id = await _start(client, "hola")
        url = f"/api/session/answer/{session_id}"

        bad_rating = await client.post(url, json={"item_id": "hola", "rating": "great", "response_time_ms": 1})
        assert bad_rating.status_code == 422

        negative = await client.post(url, json={"item_id": "hola", "rating": "good", "response_time_ms": -5})
        assert negative.status_code == 422

        bad_method = await client.post(
            url, json={"item_id": "hola", "rating": "good", "response_time_ms": 5, "method": "smell"}
        )
        assert bad_method.status_code == 422

        unknown = await client.post(url, json={"item_id": "gato", "rating": "good", "response_time_ms": 5})
        assert unknown.status_code == 400

        stats = (await client.get("/api/stats/items/hola")).json()
        assert stats["total_reviews"] == 0

    @pytest.mark.asyncio
    async def test_stats_while_in_progress(self, client: AsyncClient) -> None:
        session_id = await _start(client, "hola")
        assert (await client.get(f"/api/session/stats/{session_id}")).status_code == 409

    @pytest.mark.asyncio
    async def test_abort(self, client: AsyncClient) -> None:
        session_id = await _start(client, "hola", "adios")
        await client.post(
            f"/api/session/answer/{session_id}",
            json={"item_id": "hola", "rating": "hard", "response_time_ms": 8000},
        )

        response = await client.post(f"/api/session/abort/{session_id}")
        assert response.status_code == 200
        summary = response.json()
        assert summary["status"] == "aborted"
        assert summary["aborted"] is True
        assert summary["reviewed"] == 1
        assert summary["candidates"] == 2

        assert (await client.post(f"/api/session/abort/{session_id}")).status_code == 409
        late = await client.post(
            f"/api/session/answer/{session_id}",
            json={"item_id": "adios", "rating": "good", "response_time_ms": 4000},
        )
        assert late.json()["accepted"] is False

        # The answer given before the abort was kept
        stats = (await client.get("/api/stats/items/hola")).json()
        assert stats["total_reviews"] == 1

    @pytest.mark.asyncio
    async def test_end_removes_session(self, client: AsyncClient) -> None:
        session_id = await _start(client, "hola")
        response = await client.post(f"/api/session/end/{session_id}")
        assert response.status_code == 200
        assert response.json()["aborted"] is True
        assert (await client.get(f"/api/session/progress/{session_id}")).status_code == 404

        overview = (await client.get("/api/stats/overview")).json()
        assert overview["sessions_finished"] == 1

    @pytest.mark.asyncio
    async def test_unknown_session(self, client: AsyncClient) -> None:
        assert (await client.get("/api/session/next/nope")).status_code == 404
        assert (await client.get("/api/session/progress/nope")).status_code == 404

    @pytest.mark.asyncio
    async def test_session_size_limits_items(self, client: AsyncClient) -> None:
        for item in ("uno", "dos", "tres"):
            await client.post(f"/api/items/{item}")
        response = await client.post("/api/session/start", json={"session_size": 2})
        data = response.json()
        assert data["total_items"] == 2
        assert data["new_items"] == 2
        assert data["due_items"] == 0


class TestHealth:
    @pytest.mark.asyncio
    async def test_health_check(self, app_database: None) -> None:
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            response = await ac.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
