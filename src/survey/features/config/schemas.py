"""Response schemas for configuration status endpoints."""

from pydantic import BaseModel

from src.survey.services.configuration.models import ConfigSource, EnvironmentLabel


class ConfigStatusResponse(BaseModel):
    """Whether the backend is configured, and from which tier."""

    configured: bool
    status: str  # "ready" or "setup_needed"
    source: ConfigSource
    environment: EnvironmentLabel
    table_name: str
    has_env_url: bool
    has_env_key: bool
    has_local_config: bool
    errors: list[str] = []
    warnings: list[str] = []


class ConnectionStatusResponse(BaseModel):
    connected: bool
    source: ConfigSource
    environment: EnvironmentLabel
    table_name: str
