"""Tests for tiered configuration resolution."""

from unittest.mock import AsyncMock

import httpx
import pytest

from src.survey.services.configuration import (
    ConfigSource,
    ConfigurationResolver,
    EnvironmentLabel,
    EnvironmentReader,
    EnvironmentSource,
    InMemoryKeyValueStore,
    LocalBootstrapStore,
    LocalFileSource,
    RemoteSettingsRepository,
    RemoteSettingsSource,
)

ENV_URL = "https://env.supabase.co"
LOCAL_URL = "https://local.supabase.co"
REMOTE_URL = "https://remote.supabase.co"

REMOTE_ROW = {
    "environment": "dev",
    "settings": {
        "database": {"url": REMOTE_URL, "apiKey": "remote-key", "tableName": "remote_table"},
        "general": {},
    },
}


@pytest.fixture
def reader() -> EnvironmentReader:
    return EnvironmentReader()


@pytest.fixture
def local_store() -> LocalBootstrapStore:
    return LocalBootstrapStore(InMemoryKeyValueStore())


def _resolver(reader, local_store, client_provider=None) -> ConfigurationResolver:
    return ConfigurationResolver(
        [
            EnvironmentSource(reader),
            LocalFileSource(local_store, reader),
            RemoteSettingsSource(
                RemoteSettingsRepository(retry_attempts=1),
                client_provider or AsyncMock(return_value=None),
                reader,
            ),
        ],
        reader,
    )


@pytest.mark.asyncio
async def test_environment_wins_over_local_file(
    reader: EnvironmentReader, local_store: LocalBootstrapStore, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("NEXT_PUBLIC_SUPABASE_URL", ENV_URL)
    monkeypatch.setenv("NEXT_PUBLIC_SUPABASE_ANON_KEY", "env-key")
    local_store.save(LOCAL_URL, "local-key")

    config = await _resolver(reader, local_store).resolve()

    assert config.source is ConfigSource.ENV
    assert config.url == ENV_URL
    assert config.anon_key == "env-key"


@pytest.mark.asyncio
async def test_local_file_used_when_environment_unset(
    reader: EnvironmentReader, local_store: LocalBootstrapStore
) -> None:
    local_store.save(LOCAL_URL, "local-key")

    config = await _resolver(reader, local_store).resolve()

    assert config.source is ConfigSource.LOCAL_FILE
    assert config.url == LOCAL_URL
    assert config.anon_key == "local-key"
    assert config.service_role_key is None
    assert config.table_name == "pc_survey_data_dev"


@pytest.mark.asyncio
async def test_partial_environment_is_not_merged_with_local_file(
    reader: EnvironmentReader, local_store: LocalBootstrapStore, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("NEXT_PUBLIC_SUPABASE_URL", ENV_URL)
    local_store.save(LOCAL_URL, "local-key")

    config = await _resolver(reader, local_store).resolve()

    assert config.source is ConfigSource.LOCAL_FILE
    assert config.url == LOCAL_URL


@pytest.mark.asyncio
async def test_local_file_uses_environment_table_name(
    reader: EnvironmentReader, local_store: LocalBootstrapStore, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("NEXT_PUBLIC_APP_ENVIRONMENT", "production")
    local_store.save(LOCAL_URL, "local-key")

    config = await _resolver(reader, local_store).resolve()

    assert config.environment_label is EnvironmentLabel.MAIN
    assert config.table_name == "pc_survey_data"


@pytest.mark.asyncio
async def test_remote_settings_used_when_no_local_tier(
    reader: EnvironmentReader, local_store: LocalBootstrapStore, make_client
) -> None:
    provider = AsyncMock(return_value=make_client([REMOTE_ROW]))

    config = await _resolver(reader, local_store, provider).resolve()

    assert config.source is ConfigSource.REMOTE
    assert config.url == REMOTE_URL
    assert config.anon_key == "remote-key"
    assert config.table_name == "remote_table"


@pytest.mark.asyncio
async def test_environment_table_name_overrides_remote(
    reader: EnvironmentReader,
    local_store: LocalBootstrapStore,
    make_client,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("NEXT_PUBLIC_DB_TABLE", "env_table")
    provider = AsyncMock(return_value=make_client([REMOTE_ROW]))

    config = await _resolver(reader, local_store, provider).resolve()

    assert config.table_name == "env_table"


@pytest.mark.asyncio
async def test_remote_tier_not_consulted_when_local_file_present(
    reader: EnvironmentReader, local_store: LocalBootstrapStore, make_client
) -> None:
    local_store.save(LOCAL_URL, "local-key")
    provider = AsyncMock(return_value=make_client([REMOTE_ROW]))

    await _resolver(reader, local_store, provider).resolve()

    provider.assert_not_awaited()


@pytest.mark.asyncio
async def test_unreachable_remote_tier_is_skipped(
    reader: EnvironmentReader, local_store: LocalBootstrapStore, make_client
) -> None:
    client = make_client()
    client.execute_mock.side_effect = httpx.ConnectError("down")

    config = await _resolver(reader, local_store, AsyncMock(return_value=client)).resolve()

    assert config.source is ConfigSource.NONE
    assert not config.is_configured


@pytest.mark.asyncio
async def test_remote_record_without_credentials_is_skipped(
    reader: EnvironmentReader, local_store: LocalBootstrapStore, make_client
) -> None:
    row = {"environment": "dev", "settings": {"database": {"url": REMOTE_URL}}}

    config = await _resolver(reader, local_store, AsyncMock(return_value=make_client([row]))).resolve()

    assert config.source is ConfigSource.NONE


@pytest.mark.asyncio
async def test_nothing_configured(reader: EnvironmentReader, local_store: LocalBootstrapStore) -> None:
    resolver = _resolver(reader, local_store)

    config = await resolver.resolve()

    assert config.source is ConfigSource.NONE
    assert config.url is None
    assert config.anon_key is None
    assert config.table_name == "pc_survey_data_dev"
    assert not await resolver.is_configured()


@pytest.mark.asyncio
async def test_resolution_reflects_removed_local_file(
    reader: EnvironmentReader, local_store: LocalBootstrapStore
) -> None:
    resolver = _resolver(reader, local_store)
    local_store.save(LOCAL_URL, "local-key")
    assert await resolver.is_configured()

    local_store.remove()

    assert not await resolver.is_configured()
