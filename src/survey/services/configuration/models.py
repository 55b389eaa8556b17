"""Pydantic models for resolved configuration and persisted configuration records."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DEV_TABLE_NAME = "pc_survey_data_dev"
MAIN_TABLE_NAME = "pc_survey_data"
DEFAULT_TABLE_NAME = "survey_data"

_DEV_ALIASES = {"dev", "development", "test"}
_MAIN_ALIASES = {"main", "prod", "production"}


class ConfigSource(str, Enum):
    """Configuration tier that produced the effective credentials."""

    ENV = "env"
    LOCAL_FILE = "local_file"
    REMOTE = "remote"
    NONE = "none"


class EnvironmentLabel(str, Enum):
    """Target deployment environment."""

    DEV = "dev"
    MAIN = "main"


def parse_environment_label(value: str | None) -> EnvironmentLabel | None:
    """
    Map a raw environment name to a label.

    An unset value means development. Unknown names return None so callers
    can tell "dev by default" apart from "dev by name".
    """
    if value is None:
        return EnvironmentLabel.DEV

    normalized = value.strip().lower()
    if normalized in _DEV_ALIASES:
        return EnvironmentLabel.DEV
    if normalized in _MAIN_ALIASES:
        return EnvironmentLabel.MAIN
    return None


def derive_table_name(override: str | None, label: EnvironmentLabel | None) -> str:
    """
    Resolve the survey table name.

    Args:
        override: Explicitly configured table name (wins when non-empty)
        label: Environment label, or None when it could not be derived

    Returns:
        Table name for the survey data

    Example:
        >>> derive_table_name(None, EnvironmentLabel.DEV)
        'pc_survey_data_dev'
    """
    if override:
        return override
    if label is EnvironmentLabel.DEV:
        return DEV_TABLE_NAME
    if label is EnvironmentLabel.MAIN:
        return MAIN_TABLE_NAME
    return DEFAULT_TABLE_NAME


class EffectiveConfig(BaseModel):
    """Credentials and table name that won tier resolution."""

    model_config = ConfigDict(frozen=True)

    url: str | None = None
    anon_key: str | None = None
    service_role_key: str | None = None
    source: ConfigSource = ConfigSource.NONE
    table_name: str = DEFAULT_TABLE_NAME
    environment_label: EnvironmentLabel = EnvironmentLabel.DEV

    @property
    def is_configured(self) -> bool:
        return self.url is not None and self.anon_key is not None


class LocalBootstrapRecord(BaseModel):
    """Bootstrap credentials persisted to the local configuration file."""

    model_config = ConfigDict(populate_by_name=True)

    url: str = Field(alias="supabaseUrl", min_length=1)
    key: str = Field(alias="supabaseKey", min_length=1)
    timestamp: int  # ms epoch


class TemporaryCredentialRecord(LocalBootstrapRecord):
    """Short-lived credentials stored while the setup wizard is in progress."""

    expires_at: int = Field(alias="expiresAt")  # ms epoch


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DatabaseSettings(_CamelModel):
    """`database` section of the stored settings record."""

    url: str | None = None
    api_key: str | None = None
    table_name: str | None = None
    environment: str | None = None


class GeneralSettings(_CamelModel):
    """`general` section of the stored settings record."""

    app_name: str | None = None
    public_url: str | None = None
    maintenance_mode: bool = False
    analytics_enabled: bool = True
    debug_mode: bool = False


class RemoteSettingsRecord(BaseModel):
    """Settings row stored in the backend, one per environment label."""

    environment: EnvironmentLabel
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    general: GeneralSettings = Field(default_factory=GeneralSettings)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "RemoteSettingsRecord":
        """Build a record from an `app_settings` row (nested sections live in `settings`)."""
        payload = row.get("settings") or {}
        return cls(
            environment=row["environment"],
            database=payload.get("database") or {},
            general=payload.get("general") or {},
        )

    def to_row(self) -> dict[str, Any]:
        """Serialize to an `app_settings` row for upsert."""
        return {
            "environment": self.environment.value,
            "settings": {
                "database": self.database.model_dump(by_alias=True),
                "general": self.general.model_dump(by_alias=True),
            },
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }


class AppSettings(BaseModel):
    """Application metadata and feature flags exposed to the UI."""

    app_name: str
    app_url: str
    environment: EnvironmentLabel
    maintenance_mode: bool
    analytics_enabled: bool
    email_notifications_enabled: bool
    export_enabled: bool
    debug_mode: bool
