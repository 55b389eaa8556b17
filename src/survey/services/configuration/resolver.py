"""Priority-chain configuration resolution: environment, local file, stored settings."""

import asyncio
import logging
from typing import Awaitable, Callable, Protocol, Sequence

from supabase import AsyncClient

from src.survey.services.configuration.environment import EnvironmentReader
from src.survey.services.configuration.exceptions import TransientBackendError
from src.survey.services.configuration.local_bootstrap import LocalBootstrapStore
from src.survey.services.configuration.models import (
    ConfigSource,
    EffectiveConfig,
    derive_table_name,
    parse_environment_label,
)
from src.survey.services.configuration.remote_settings import RemoteSettingsRepository

logger = logging.getLogger(__name__)

ClientProvider = Callable[[], Awaitable[AsyncClient | None]]


class ConfigSourceProvider(Protocol):
    """One configuration tier."""

    source: ConfigSource

    async def try_read(self) -> EffectiveConfig | None:
        """Return a configured EffectiveConfig, or None if this tier has no usable pair."""
        ...


class EnvironmentSource:
    source = ConfigSource.ENV

    def __init__(self, reader: EnvironmentReader):
        self.reader = reader

    async def try_read(self) -> EffectiveConfig | None:
        config = self.reader.read()
        return config if config.is_configured else None


class LocalFileSource:
    source = ConfigSource.LOCAL_FILE

    def __init__(self, local_store: LocalBootstrapStore, reader: EnvironmentReader):
        self.local_store = local_store
        self.reader = reader

    async def try_read(self) -> EffectiveConfig | None:
        record = await asyncio.to_thread(self.local_store.read)
        if record is None:
            return None

        env = self.reader.snapshot()
        return EffectiveConfig(
            url=record.url,
            anon_key=record.key,
            source=self.source,
            table_name=env.derived_table_name,
            environment_label=env.environment_label,
        )


class RemoteSettingsSource:
    """
    Stored settings record, reached through a bootstrap client.

    `client_provider` returns None when there are no credentials at all to
    reach the backend with; the tier is then simply absent.
    """

    source = ConfigSource.REMOTE

    def __init__(
        self,
        repository: RemoteSettingsRepository,
        client_provider: ClientProvider,
        reader: EnvironmentReader,
    ):
        self.repository = repository
        self.client_provider = client_provider
        self.reader = reader

    async def try_read(self) -> EffectiveConfig | None:
        client = await self.client_provider()
        if client is None:
            return None

        env = self.reader.snapshot()
        label = env.environment_label
        try:
            record = await self.repository.fetch(client, label)
        except TransientBackendError:
            return None

        if record is None or not record.database.url or not record.database.api_key:
            return None

        override = env.table_name or record.database.table_name
        return EffectiveConfig(
            url=record.database.url,
            anon_key=record.database.api_key,
            source=self.source,
            table_name=derive_table_name(override, parse_environment_label(env.environment)),
            environment_label=label,
        )


class ConfigurationResolver:
    """
    First-match reducer over an ordered list of configuration tiers.

    The first tier yielding a usable URL/key pair wins outright; partial
    results are never merged across tiers. Nothing is memoized here, so each
    call sees the current environment and file state.

    Example:
        >>> resolver = ConfigurationResolver([EnvironmentSource(reader)], reader)
        >>> config = await resolver.resolve()
        >>> config.source
        <ConfigSource.ENV: 'env'>
    """

    def __init__(self, sources: Sequence[ConfigSourceProvider], reader: EnvironmentReader):
        self.sources = list(sources)
        self.reader = reader

    async def resolve(self) -> EffectiveConfig:
        for provider in self.sources:
            config = await provider.try_read()
            if config is not None:
                logger.debug(
                    f"Configuration resolved from {provider.source.value}",
                    extra={"source": provider.source.value, "table_name": config.table_name},
                )
                return config

        env = self.reader.snapshot()
        logger.info("No configuration tier yielded backend credentials, setup needed")
        return EffectiveConfig(
            source=ConfigSource.NONE,
            table_name=env.derived_table_name,
            environment_label=env.environment_label,
        )

    async def is_configured(self) -> bool:
        """Cheap check: answered by the environment alone when it is configured."""
        if self.reader.is_configured():
            return True
        return (await self.resolve()).is_configured
