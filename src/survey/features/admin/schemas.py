"""Schemas for environment provisioning and stored settings endpoints."""

from pydantic import BaseModel, Field

from src.survey.features.setup.schemas import URL_PATTERN
from src.survey.services.configuration.models import EnvironmentLabel, GeneralSettings

TABLE_NAME_PATTERN = r"^[a-z_][a-z0-9_]*$"


class SetupEnvironmentRequest(BaseModel):
    environment: str = "dev"

    @property
    def is_dev(self) -> bool:
        return self.environment.strip().lower() in ("dev", "development")


class TableStatus(BaseModel):
    table_exists: bool
    table_name: str
    status: str  # "ready" or "setup_needed"


class EnvironmentStatusResponse(BaseModel):
    """Provisioning status of both survey tables."""

    dev: TableStatus
    main: TableStatus
    message: str


class DatabaseSettingsUpdate(BaseModel):
    """Fields of the stored `database` section to replace; omitted fields are kept."""

    url: str | None = Field(default=None, pattern=URL_PATTERN)
    api_key: str | None = Field(default=None, min_length=1)
    table_name: str | None = Field(default=None, pattern=TABLE_NAME_PATTERN, max_length=63)


class GeneralSettingsUpdate(BaseModel):
    """Fields of the stored `general` section to replace; omitted fields are kept."""

    app_name: str | None = Field(default=None, min_length=1, max_length=100)
    public_url: str | None = Field(default=None, pattern=URL_PATTERN)
    maintenance_mode: bool | None = None
    analytics_enabled: bool | None = None
    debug_mode: bool | None = None


class UpdateSettingsRequest(BaseModel):
    environment: EnvironmentLabel | None = None
    database: DatabaseSettingsUpdate | None = None
    general: GeneralSettingsUpdate | None = None


class DatabaseSettingsView(BaseModel):
    """Stored `database` section with the key reduced to a presence flag."""

    url: str | None = None
    table_name: str | None = None
    environment: str | None = None
    has_api_key: bool = False


class StoredSettingsResponse(BaseModel):
    environment: EnvironmentLabel
    found: bool
    database: DatabaseSettingsView
    general: GeneralSettings
