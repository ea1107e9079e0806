"""Tests for admin endpoints."""

from fastapi.testclient import TestClient

from stream_limit.api.app import create_app
from stream_limit.containers import AppContainer
from stream_limit.services.configuration import StreamLimitConfiguration
from tests.conftest import USER_ID, FakeJellyfinClient, InMemoryConfigurationRepository

_HEADERS = {"X-Admin-Token": "admin-token"}


def test_admin_requires_token(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    assert client.get("/admin/limits").status_code == 401
    assert (
        client.get("/admin/limits", headers={"X-Admin-Token": "wrong"}).status_code
        == 401
    )


def test_get_limits_returns_installed_table(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    response = client.get("/admin/limits", headers=_HEADERS)

    assert response.status_code == 200
    data = response.json()
    assert data["limits"] == {USER_ID.replace("-", ""): 1}
    assert data["message_title"] == "Stream Limit"


def test_put_limits_persists_and_reloads(
    container: AppContainer,
    configuration_repository: InMemoryConfigurationRepository,
) -> None:
    client = TestClient(create_app(container))

    response = client.put(
        "/admin/limits",
        json={"limits": {"ABC-123": 2}, "message_text": "Too many streams"},
        headers=_HEADERS,
    )

    assert response.status_code == 200
    assert response.json()["limits"] == {"abc123": 2}
    assert container.limit_table.lookup("abc-123") == 2
    assert container.limit_table.lookup(USER_ID) == 0
    stored = configuration_repository.stored
    assert stored is not None
    assert stored.message_text == "Too many streams"
    assert stored.message_title == "Stream Limit"


def test_put_limits_rejects_negative_values(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    response = client.put(
        "/admin/limits", json={"limits": {"abc": -1}}, headers=_HEADERS
    )

    assert response.status_code == 422
    assert container.limit_table.lookup(USER_ID) == 1


def test_reload_reads_configuration_store(
    container: AppContainer,
    configuration_repository: InMemoryConfigurationRepository,
) -> None:
    configuration_repository.stored = StreamLimitConfiguration(
        user_limits='{"def456": 3}'
    )
    client = TestClient(create_app(container))

    response = client.post("/admin/limits/reload", headers=_HEADERS)

    assert response.json()["limits"] == {"def456": 3}
    assert container.limit_table.lookup("def456") == 3


def test_user_streams_reports_count_and_limit(
    container: AppContainer, jellyfin_client: FakeJellyfinClient
) -> None:
    jellyfin_client.add_session("session-1")
    jellyfin_client.add_session("session-2", is_active=False)
    client = TestClient(create_app(container))

    response = client.get(f"/admin/users/{USER_ID}/streams", headers=_HEADERS)

    assert response.json() == {
        "user_id": USER_ID.replace("-", ""),
        "active_streams": 1,
        "max_streams": 1,
    }
