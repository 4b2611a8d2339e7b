"""Tests for the /api/task endpoints.

Tests cover:
- Permission checks for read and write endpoints
- Ordering and pagination of the list endpoint
- Cleanup through the API
- ENABLE_TASK_HISTORY_API switch
"""

import pytest


@pytest.fixture
def advanced_permissions():
    """Enable advanced permissions for the request's permission gate."""
    from main import app
    from api.task import get_permissions
    from services.permissions import TaskHistoryPermissions

    app.dependency_overrides[get_permissions] = lambda: TaskHistoryPermissions(lambda: True)
    yield
    app.dependency_overrides.pop(get_permissions, None)


@pytest.mark.asyncio
class TestListTaskHistory:
    async def test_anonymous_denied(self, test_client):
        response = await test_client.get("/api/task")

        assert response.status_code == 403

    async def test_superuser_lists_newest_first(
        self, test_client, seed_task_history, superuser_headers
    ):
        await seed_task_history([1, 2, 3])

        response = await test_client.get("/api/task", headers=superuser_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert data["limit"] is None
        assert data["offset"] is None
        assert [row["task_details"]["minute"] for row in data["data"]] == [3, 2, 1]
        assert {"id", "task", "db_id", "started_at", "ended_at", "duration"} <= set(data["data"][0])

    async def test_pagination(self, test_client, seed_task_history, superuser_headers):
        await seed_task_history([1, 2, 3, 4, 5])

        response = await test_client.get(
            "/api/task", params={"limit": 2, "offset": 1}, headers=superuser_headers
        )

        data = response.json()
        assert data["total"] == 5
        assert data["limit"] == 2
        assert data["offset"] == 1
        assert [row["task_details"]["minute"] for row in data["data"]] == [4, 3]

    async def test_invalid_limit(self, test_client, superuser_headers):
        response = await test_client.get(
            "/api/task", params={"limit": 0}, headers=superuser_headers
        )

        assert response.status_code == 422

    async def test_monitoring_denied_without_advanced_permissions(
        self, test_client, monitoring_headers
    ):
        response = await test_client.get("/api/task", headers=monitoring_headers)

        assert response.status_code == 403

    async def test_monitoring_allowed_with_advanced_permissions(
        self, test_client, seed_task_history, monitoring_headers, advanced_permissions
    ):
        await seed_task_history([1])

        response = await test_client.get("/api/task", headers=monitoring_headers)

        assert response.status_code == 200
        assert response.json()["total"] == 1

    async def test_disabled_returns_404(self, test_client, superuser_headers, monkeypatch):
        from config import settings

        monkeypatch.setattr(settings, "enable_task_history_api", False)

        response = await test_client.get("/api/task", headers=superuser_headers)

        assert response.status_code == 404


@pytest.mark.asyncio
class TestGetTaskHistory:
    async def test_get_by_id(self, test_client, seed_task_history, superuser_headers):
        rows = await seed_task_history([1], task="send-pulses", db_id=2)

        response = await test_client.get(f"/api/task/{rows[0].id}", headers=superuser_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["task"] == "send-pulses"
        assert data["db_id"] == 2
        assert data["duration"] == 30000

    async def test_missing_returns_404(self, test_client, superuser_headers):
        response = await test_client.get("/api/task/999", headers=superuser_headers)

        assert response.status_code == 404

    async def test_denied_before_lookup(self, test_client, seed_task_history):
        rows = await seed_task_history([1])

        response = await test_client.get(f"/api/task/{rows[0].id}")

        assert response.status_code == 403


@pytest.mark.asyncio
class TestCleanupEndpoint:
    async def test_cleanup_requires_write(self, test_client, seed_task_history, monitoring_headers):
        await seed_task_history([1, 2, 3])

        response = await test_client.post(
            "/api/task/cleanup", params={"keep": 1}, headers=monitoring_headers
        )

        assert response.status_code == 403

    async def test_cleanup(self, test_client, store, seed_task_history, superuser_headers):
        await seed_task_history([1, 2, 3, 4])

        response = await test_client.post(
            "/api/task/cleanup", params={"keep": 2}, headers=superuser_headers
        )

        assert response.status_code == 200
        assert response.json() == {"deleted": True, "keep": 2}
        assert await store.count() == 2

    async def test_cleanup_noop(self, test_client, seed_task_history, superuser_headers):
        await seed_task_history([1])

        response = await test_client.post(
            "/api/task/cleanup", params={"keep": 5}, headers=superuser_headers
        )

        assert response.json() == {"deleted": False, "keep": 5}

    async def test_cleanup_defaults_to_settings(
        self, test_client, seed_task_history, superuser_headers, monkeypatch
    ):
        from config import settings

        monkeypatch.setattr(settings, "task_history_keep_rows", 1)
        await seed_task_history([1, 2])

        response = await test_client.post("/api/task/cleanup", headers=superuser_headers)

        assert response.json() == {"deleted": True, "keep": 1}


@pytest.mark.asyncio
async def test_storage_error_returns_503(test_client, superuser_headers, store, monkeypatch):
    from errors import StorageError

    async def broken(*args, **kwargs):
        raise StorageError("database is gone", operation="select")

    monkeypatch.setattr(store, "select_ordered", broken)

    response = await test_client.get("/api/task", headers=superuser_headers)

    assert response.status_code == 503
