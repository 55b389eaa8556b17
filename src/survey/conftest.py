"""Pytest configuration and shared fixtures."""

from collections.abc import Iterator
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from src.survey.config import Settings
from src.survey.main import create_app
from src.survey.services.configuration import InMemoryKeyValueStore
from src.survey.services.configuration.environment import (
    SUPABASE_ANON_KEY_VARS,
    SUPABASE_SERVICE_ROLE_KEY_VARS,
    SUPABASE_URL_VARS,
)
from src.survey.services.database import BackendContext
from src.survey.services.rate_limiter import limiter

BACKEND_ENV_VARS = (
    *SUPABASE_URL_VARS,
    *SUPABASE_ANON_KEY_VARS,
    *SUPABASE_SERVICE_ROLE_KEY_VARS,
    "NEXT_PUBLIC_DB_TABLE",
    "NEXT_PUBLIC_APP_ENVIRONMENT",
    "NODE_ENV",
    "NEXT_PUBLIC_APP_NAME",
    "NEXT_PUBLIC_APP_URL",
    "NEXT_PUBLIC_MAINTENANCE_MODE",
    "NEXT_PUBLIC_ENABLE_ANALYTICS",
    "NEXT_PUBLIC_ENABLE_EMAIL_NOTIFICATIONS",
    "NEXT_PUBLIC_ENABLE_EXPORT",
)


@pytest.fixture(autouse=True)
def clean_backend_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Start every test without backend environment variables."""
    for name in BACKEND_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def disable_rate_limits() -> Iterator[None]:
    enabled = limiter.enabled
    limiter.enabled = False
    yield
    limiter.enabled = enabled


def make_query_client(rows: list[dict[str, Any]] | None = None) -> MagicMock:
    """
    Mock Supabase client whose table queries resolve to `rows`.

    Every query chain ends in the same AsyncMock `execute`, so tests can
    inspect or replace `client.execute_mock`.
    """
    client = MagicMock()
    response = MagicMock()
    response.data = rows or []
    execute = AsyncMock(return_value=response)

    query = MagicMock()
    for method in ("select", "eq", "limit", "upsert", "delete"):
        getattr(query, method).return_value = query
    query.execute = execute

    client.table.return_value = query
    client.rpc.return_value.execute = execute
    client.execute_mock = execute
    client.query = query
    return client


@pytest.fixture
def make_client():
    """Builder for mock clients with canned query rows."""
    return make_query_client


@pytest.fixture
def isolated_settings() -> Settings:
    """Settings isolated from any `.env` file, with a single remote attempt."""
    return Settings(_env_file=None, remote_settings_retry_attempts=1)


@pytest.fixture
def memory_store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def client_factory() -> AsyncMock:
    """Client factory returning a fresh query client per call."""
    return AsyncMock(side_effect=lambda url, key: make_query_client())


@pytest.fixture
def backend(
    isolated_settings: Settings, memory_store: InMemoryKeyValueStore, client_factory: AsyncMock
) -> BackendContext:
    return BackendContext(isolated_settings, store=memory_store, client_factory=client_factory)


@pytest.fixture
def client(backend: BackendContext) -> TestClient:
    """
    Provide FastAPI test client for API testing.

    Returns:
        TestClient bound to an app using the isolated `backend` fixture

    Example:
        >>> def test_health(client):
        >>>     response = client.get("/health")
        >>>     assert response.status_code == 200
    """
    return TestClient(create_app(backend))
