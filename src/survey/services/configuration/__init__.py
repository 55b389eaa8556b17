"""Layered backend configuration: environment, local files and stored settings."""

from src.survey.services.configuration.app_settings import resolve_app_settings
from src.survey.services.configuration.environment import EnvironmentReader, SupabaseEnvironment
from src.survey.services.configuration.exceptions import (
    ConfigurationError,
    NotConfiguredError,
    ProvisioningStepError,
    TransientBackendError,
)
from src.survey.services.configuration.local_bootstrap import LocalBootstrapStore
from src.survey.services.configuration.models import (
    ConfigSource,
    EffectiveConfig,
    EnvironmentLabel,
    RemoteSettingsRecord,
)
from src.survey.services.configuration.remote_settings import RemoteSettingsRepository
from src.survey.services.configuration.resolver import (
    ConfigurationResolver,
    EnvironmentSource,
    LocalFileSource,
    RemoteSettingsSource,
)
from src.survey.services.configuration.stores import (
    FileKeyValueStore,
    InMemoryKeyValueStore,
    StoreResult,
    StoreStatus,
)
from src.survey.services.configuration.temporary_credentials import TemporaryCredentialStore

__all__ = [
    "ConfigSource",
    "ConfigurationError",
    "ConfigurationResolver",
    "EffectiveConfig",
    "EnvironmentLabel",
    "EnvironmentReader",
    "EnvironmentSource",
    "FileKeyValueStore",
    "InMemoryKeyValueStore",
    "LocalBootstrapStore",
    "LocalFileSource",
    "NotConfiguredError",
    "ProvisioningStepError",
    "RemoteSettingsRecord",
    "RemoteSettingsRepository",
    "RemoteSettingsSource",
    "StoreResult",
    "StoreStatus",
    "SupabaseEnvironment",
    "TemporaryCredentialStore",
    "TransientBackendError",
    "resolve_app_settings",
]
