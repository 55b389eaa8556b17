"""Supabase client construction and caching on top of resolved configuration."""

import logging
from datetime import timedelta
from typing import Awaitable, Callable

import httpx
from supabase import AsyncClient, acreate_client
from supabase._async.client import SupabaseException

from src.survey.config import Settings
from src.survey.services.configuration import (
    ConfigurationResolver,
    EffectiveConfig,
    EnvironmentReader,
    EnvironmentSource,
    FileKeyValueStore,
    LocalBootstrapStore,
    LocalFileSource,
    NotConfiguredError,
    RemoteSettingsRepository,
    RemoteSettingsSource,
    TemporaryCredentialStore,
    TransientBackendError,
)
from src.survey.services.configuration.stores import KeyValueStore

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str, str], Awaitable[AsyncClient]]


async def create_backend_client(url: str, key: str) -> AsyncClient:
    """Build a new Supabase async client for `url`/`key`."""
    return await acreate_client(url, key)


class ClientCache:
    """
    Process-wide cache of backend clients keyed by `(url, key)`.

    Two requests missing the cache at once may both build a client; the last
    one stored wins. Construction is stateless, so this only costs a
    redundant client.

    Example:
        >>> cache = ClientCache()
        >>> client = await cache.get_or_create(url, key)
        >>> client is await cache.get_or_create(url, key)
        True
        >>> cache.invalidate()
    """

    def __init__(self, factory: ClientFactory = create_backend_client):
        self.factory = factory
        self._clients: dict[tuple[str, str], AsyncClient] = {}

    def __len__(self) -> int:
        return len(self._clients)

    def get(self, url: str, key: str) -> AsyncClient | None:
        return self._clients.get((url, key))

    def set(self, url: str, key: str, client: AsyncClient) -> None:
        self._clients[(url, key)] = client

    def invalidate(self) -> None:
        """Drop every cached client."""
        dropped = len(self._clients)
        self._clients = {}
        logger.info("Backend client cache cleared", extra={"dropped_clients": dropped})

    async def get_or_create(self, url: str, key: str) -> AsyncClient:
        """
        Return the cached client for `url`/`key`, building it on a miss.

        Raises:
            TransientBackendError: If the client could not be built (malformed URL or key,
                or the backend was unreachable)
        """
        client = self.get(url, key)
        if client is not None:
            return client

        try:
            client = await self.factory(url, key)
        except (SupabaseException, httpx.HTTPError) as e:
            logger.error(
                f"Failed to initialize backend client: {type(e).__name__}",
                extra={"error_type": "client_init_failed"},
            )
            raise TransientBackendError("Backend client could not be initialized") from e

        self.set(url, key, client)
        logger.info("Backend client initialized")
        return client


class BackendContext:
    """
    Per-application wiring of the configuration tiers and the client cache.

    Owned by the FastAPI app (`app.state.backend`) rather than a module
    singleton, so tests can build isolated instances.
    """

    def __init__(
        self,
        settings: Settings,
        store: KeyValueStore | None = None,
        client_factory: ClientFactory = create_backend_client,
        reader: EnvironmentReader | None = None,
    ):
        self.settings = settings
        self.reader = reader or EnvironmentReader()
        self.store = store if store is not None else FileKeyValueStore(settings.config_dir)

        self.local_config = LocalBootstrapStore(
            self.store,
            name=settings.local_config_filename,
            ttl=timedelta(hours=settings.local_config_ttl_hours),
        )
        self.temp_credentials = TemporaryCredentialStore(
            self.store,
            name=settings.temp_config_filename,
            default_ttl=timedelta(seconds=settings.temp_config_ttl_seconds),
        )
        self.remote_settings = RemoteSettingsRepository(
            table=settings.remote_settings_table,
            timeout_seconds=settings.remote_settings_timeout_seconds,
            retry_attempts=settings.remote_settings_retry_attempts,
        )
        self.client_cache = ClientCache(client_factory)
        self.resolver = ConfigurationResolver(
            [
                EnvironmentSource(self.reader),
                LocalFileSource(self.local_config, self.reader),
                RemoteSettingsSource(self.remote_settings, self.get_bootstrap_client, self.reader),
            ],
            self.reader,
        )

    def bootstrap_credentials(self) -> tuple[str, str] | None:
        """
        Credentials used only to reach the stored settings record.

        Prefers the project's own URL with its service-role key, then the
        configured well-known bootstrap project.
        """
        env = self.reader.snapshot()
        if env.supabase_url and env.supabase_service_role_key:
            return env.supabase_url, env.supabase_service_role_key
        if self.settings.bootstrap_supabase_url and self.settings.bootstrap_supabase_anon_key:
            return self.settings.bootstrap_supabase_url, self.settings.bootstrap_supabase_anon_key
        return None

    async def get_bootstrap_client(self) -> AsyncClient | None:
        credentials = self.bootstrap_credentials()
        if credentials is None:
            return None
        try:
            return await self.client_cache.get_or_create(*credentials)
        except TransientBackendError:
            return None

    async def resolve(self) -> EffectiveConfig:
        return await self.resolver.resolve()

    async def is_configured(self) -> bool:
        return await self.resolver.is_configured()

    async def get_client(self) -> AsyncClient | None:
        """
        Get a client for the current effective configuration.

        Returns:
            Cached or newly built client, or None when no tier is configured
        """
        config = await self.resolver.resolve()
        if not config.is_configured:
            return None
        return await self.client_cache.get_or_create(config.url, config.anon_key)

    async def require_client(self) -> AsyncClient:
        """
        Like get_client(), but treats missing configuration as an error.

        Raises:
            NotConfiguredError: If no tier yielded credentials
        """
        client = await self.get_client()
        if client is None:
            raise NotConfiguredError("Backend is not configured")
        return client

    async def get_admin_client(self) -> AsyncClient | None:
        """Service-role client for provisioning, or None without a service-role key."""
        env = self.reader.snapshot()
        if not env.supabase_service_role_key:
            return None

        url = env.supabase_url or (await self.resolver.resolve()).url
        if not url:
            return None
        return await self.client_cache.get_or_create(url, env.supabase_service_role_key)

    def invalidate(self) -> None:
        """Forget cached clients after any tier was written."""
        self.client_cache.invalidate()
