"""Tests for environment provisioning and stored settings API handlers."""

from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient

from src.survey.features.admin.handlers import get_orchestrator
from src.survey.services.configuration import TransientBackendError
from src.survey.services.database import BackendContext, EnvironmentSetupOrchestrator

URL = "https://project.supabase.co"
KEY = "anon-key"


class StubExecutor:
    """Answers every check with `rows` rows; optionally fails every apply."""

    def __init__(self, rows: int = 0, fail_apply: bool = False):
        self.rows = rows
        self.fail_apply = fail_apply
        self.executed: list[str] = []

    async def fetch(self, sql: str) -> list[dict[str, Any]]:
        return [{"row": i} for i in range(self.rows)]

    async def execute(self, sql: str) -> None:
        if self.fail_apply:
            raise TransientBackendError("permission denied for schema public")
        self.executed.append(sql)


@pytest.fixture
def use_executor(client: TestClient):
    def _use(executor: StubExecutor) -> None:
        client.app.dependency_overrides[get_orchestrator] = lambda: EnvironmentSetupOrchestrator(executor)

    yield _use
    client.app.dependency_overrides.clear()


def test_requires_service_role_key(client: TestClient) -> None:
    response = client.get("/api/v1/admin/setup-environment")

    assert response.status_code == 503
    assert "SUPABASE_SERVICE_ROLE_KEY" in response.json()["detail"]


def test_status_both_environments_missing(client: TestClient, use_executor) -> None:
    use_executor(StubExecutor(rows=0))

    response = client.get("/api/v1/admin/setup-environment")

    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Both environments need setup"
    assert data["dev"] == {
        "table_exists": False,
        "table_name": "pc_survey_data_dev",
        "status": "setup_needed",
    }
    assert data["main"]["table_name"] == "pc_survey_data"


def test_status_all_ready(client: TestClient, use_executor) -> None:
    use_executor(StubExecutor(rows=1))

    data = client.get("/api/v1/admin/setup-environment").json()

    assert data["message"] == "All environments are ready"
    assert data["dev"]["status"] == "ready"
    assert data["main"]["status"] == "ready"


def test_setup_fresh_environment(client: TestClient, use_executor) -> None:
    executor = StubExecutor(rows=0)
    use_executor(executor)

    response = client.post("/api/v1/admin/setup-environment", json={"environment": "main"})

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["environment"] == "main"
    assert data["table_name"] == "pc_survey_data"
    assert {step["status"] for step in data["steps"].values()} == {"applied"}
    assert executor.executed


def test_setup_is_idempotent(client: TestClient, use_executor) -> None:
    executor = StubExecutor(rows=10)
    use_executor(executor)

    response = client.post("/api/v1/admin/setup-environment", json={"environment": "development"})

    assert response.status_code == 200
    data = response.json()
    assert data["environment"] == "dev"
    assert {step["status"] for step in data["steps"].values()} == {"already_satisfied"}
    assert executor.executed == []


def test_setup_failure_returns_step_results(client: TestClient, use_executor) -> None:
    use_executor(StubExecutor(rows=0, fail_apply=True))

    response = client.post("/api/v1/admin/setup-environment", json={})

    assert response.status_code == 400
    data = response.json()
    assert data["success"] is False
    assert len(data["steps"]) == 4
    assert all(step["status"] == "failed" for step in data["steps"].values())
    assert "permission denied" in data["steps"]["create_table"]["error"]


STORED_ROW = {
    "environment": "dev",
    "settings": {
        "database": {
            "url": URL,
            "apiKey": "stored-key",
            "tableName": "pc_survey_data_dev",
            "environment": "dev",
        },
        "general": {"appName": "Stored Survey", "analyticsEnabled": False},
    },
}


@pytest.fixture
def stored_client(backend: BackendContext, client_factory, make_client):
    """Configure the backend and serve `rows` from the settings table."""

    def _serve(rows: list[dict[str, Any]]):
        backend.local_config.save(URL, KEY)
        query_client = make_client(rows)
        client_factory.side_effect = lambda url, key: query_client
        return query_client

    return _serve


def test_settings_require_configuration(client: TestClient) -> None:
    assert client.get("/api/v1/admin/settings").status_code == 503

    response = client.put("/api/v1/admin/settings", json={"general": {"app_name": "Survey"}})

    assert response.status_code == 503
    assert response.json()["status"] == "setup_needed"


def test_get_settings_hides_api_key(client: TestClient, stored_client) -> None:
    stored_client([STORED_ROW])

    response = client.get("/api/v1/admin/settings")

    assert response.status_code == 200
    data = response.json()
    assert data["found"] is True
    assert data["environment"] == "dev"
    assert data["database"] == {
        "url": URL,
        "table_name": "pc_survey_data_dev",
        "environment": "dev",
        "has_api_key": True,
    }
    assert data["general"]["app_name"] == "Stored Survey"
    assert data["general"]["analytics_enabled"] is False
    assert "stored-key" not in response.text


def test_get_settings_missing_record(client: TestClient, stored_client) -> None:
    query_client = stored_client([])

    data = client.get("/api/v1/admin/settings", params={"environment": "main"}).json()

    assert data["found"] is False
    assert data["environment"] == "main"
    assert data["database"]["has_api_key"] is False
    query_client.query.eq.assert_called_with("environment", "main")


def test_update_settings_merges_stored_record(
    client: TestClient, backend: BackendContext, stored_client
) -> None:
    query_client = stored_client([STORED_ROW])

    response = client.put("/api/v1/admin/settings", json={"general": {"maintenance_mode": True}})

    assert response.status_code == 200
    assert response.json()["general"]["maintenance_mode"] is True
    row = query_client.query.upsert.call_args.args[0]
    assert row["environment"] == "dev"
    assert row["settings"]["general"]["maintenanceMode"] is True
    assert row["settings"]["general"]["appName"] == "Stored Survey"
    assert row["settings"]["database"]["apiKey"] == "stored-key"
    assert len(backend.client_cache) == 0


def test_update_settings_creates_missing_record(client: TestClient, stored_client) -> None:
    query_client = stored_client([])

    response = client.put(
        "/api/v1/admin/settings",
        json={"environment": "main", "database": {"url": URL, "api_key": "main-key"}},
    )

    assert response.status_code == 200
    assert response.json()["found"] is True
    row = query_client.query.upsert.call_args.args[0]
    assert row["environment"] == "main"
    assert row["settings"]["database"]["tableName"] == "pc_survey_data"
    assert row["settings"]["database"]["apiKey"] == "main-key"


def test_update_settings_without_sections_is_400(client: TestClient, stored_client) -> None:
    query_client = stored_client([STORED_ROW])

    response = client.put("/api/v1/admin/settings", json={"environment": "dev"})

    assert response.status_code == 400
    query_client.query.upsert.assert_not_called()


def test_update_settings_invalid_fields_are_400(client: TestClient, stored_client) -> None:
    stored_client([STORED_ROW])

    response = client.put(
        "/api/v1/admin/settings",
        json={"general": {"app_name": ""}, "database": {"table_name": "Drop Table"}},
    )

    assert response.status_code == 400
    locations = [error["loc"] for error in response.json()["detail"]]
    assert ["general", "app_name"] in locations
    assert ["database", "table_name"] in locations


def test_update_settings_url_without_key_is_400(client: TestClient, stored_client) -> None:
    query_client = stored_client([])

    response = client.put("/api/v1/admin/settings", json={"database": {"url": URL}})

    assert response.status_code == 400
    query_client.query.upsert.assert_not_called()


def test_update_settings_backend_failure_is_503(client: TestClient, stored_client) -> None:
    query_client = stored_client([STORED_ROW])
    query_client.execute_mock.side_effect = httpx.ConnectError("down")

    response = client.put("/api/v1/admin/settings", json={"general": {"debug_mode": True}})

    assert response.status_code == 503
    assert response.json()["status"] == "unavailable"
