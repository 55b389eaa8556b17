"""Backend configuration read from process environment variables."""

import logging
import os

from pydantic import AliasChoices, BaseModel, Field, HttpUrl, TypeAdapter, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.survey.services.configuration.models import (
    ConfigSource,
    EffectiveConfig,
    EnvironmentLabel,
    derive_table_name,
    parse_environment_label,
)

logger = logging.getLogger(__name__)

SUPABASE_URL_VARS = (
    "NEXT_PUBLIC_SUPABASE_URL",
    "POSTGRES_NEXT_PUBLIC_SUPABASE_URL",
    "POSTGRES_SUPABASE_URL",
)
SUPABASE_ANON_KEY_VARS = (
    "NEXT_PUBLIC_SUPABASE_ANON_KEY",
    "POSTGRES_NEXT_PUBLIC_SUPABASE_ANON_KEY",
    "POSTGRES_SUPABASE_ANON_KEY",
)
SUPABASE_SERVICE_ROLE_KEY_VARS = (
    "SUPABASE_SERVICE_ROLE_KEY",
    "POSTGRES_SUPABASE_SERVICE_ROLE_KEY",
)
LEGACY_VARS = SUPABASE_URL_VARS[1:] + SUPABASE_ANON_KEY_VARS[1:] + SUPABASE_SERVICE_ROLE_KEY_VARS[1:]

MIN_ANON_KEY_LENGTH = 100

_url_adapter = TypeAdapter(HttpUrl)


class SupabaseEnvironment(BaseSettings):
    """
    Snapshot of the backend-related environment variables.

    Aliases are listed in priority order; empty values are ignored so the
    first non-empty alias wins. No `.env` file is read here: this tier only
    reflects the live process environment.
    """

    model_config = SettingsConfigDict(env_ignore_empty=True, extra="ignore")

    supabase_url: str | None = Field(default=None, validation_alias=AliasChoices(*SUPABASE_URL_VARS))
    supabase_anon_key: str | None = Field(
        default=None, validation_alias=AliasChoices(*SUPABASE_ANON_KEY_VARS)
    )
    supabase_service_role_key: str | None = Field(
        default=None, validation_alias=AliasChoices(*SUPABASE_SERVICE_ROLE_KEY_VARS)
    )
    table_name: str | None = Field(default=None, validation_alias="NEXT_PUBLIC_DB_TABLE")
    environment: str | None = Field(
        default=None, validation_alias=AliasChoices("NEXT_PUBLIC_APP_ENVIRONMENT", "NODE_ENV")
    )

    # App metadata
    app_name: str | None = Field(default=None, validation_alias="NEXT_PUBLIC_APP_NAME")
    app_url: str | None = Field(default=None, validation_alias="NEXT_PUBLIC_APP_URL")
    maintenance_mode: str | None = Field(default=None, validation_alias="NEXT_PUBLIC_MAINTENANCE_MODE")
    enable_analytics: str | None = Field(default=None, validation_alias="NEXT_PUBLIC_ENABLE_ANALYTICS")
    enable_email_notifications: str | None = Field(
        default=None, validation_alias="NEXT_PUBLIC_ENABLE_EMAIL_NOTIFICATIONS"
    )
    enable_export: str | None = Field(default=None, validation_alias="NEXT_PUBLIC_ENABLE_EXPORT")

    @property
    def is_configured(self) -> bool:
        return self.supabase_url is not None and self.supabase_anon_key is not None

    @property
    def environment_label(self) -> EnvironmentLabel:
        return parse_environment_label(self.environment) or EnvironmentLabel.DEV

    @property
    def derived_table_name(self) -> str:
        return derive_table_name(self.table_name, parse_environment_label(self.environment))


class EnvironmentDiagnostics(BaseModel):
    """Validation findings for the environment tier (variable names only, never values)."""

    errors: list[str] = []
    warnings: list[str] = []

    @property
    def is_valid(self) -> bool:
        return not self.errors


class EnvironmentReader:
    """Pure lookup of backend configuration from the process environment."""

    def snapshot(self) -> SupabaseEnvironment:
        """Read the current environment into a fresh snapshot."""
        return SupabaseEnvironment()

    def read(self) -> EffectiveConfig:
        """
        Resolve configuration using environment variables only.

        Returns:
            EffectiveConfig with `source=ENV` when both URL and anon key are set,
            otherwise `source=NONE` with whatever values were present
        """
        env = self.snapshot()
        return EffectiveConfig(
            url=env.supabase_url,
            anon_key=env.supabase_anon_key,
            service_role_key=env.supabase_service_role_key,
            source=ConfigSource.ENV if env.is_configured else ConfigSource.NONE,
            table_name=env.derived_table_name,
            environment_label=env.environment_label,
        )

    def is_configured(self) -> bool:
        return self.snapshot().is_configured

    def diagnostics(self) -> EnvironmentDiagnostics:
        """
        Validate the environment tier.

        Returns:
            Errors for missing or malformed required variables and warnings for
            optional or legacy ones
        """
        env = self.snapshot()
        diagnostics = EnvironmentDiagnostics()

        if env.supabase_url is None:
            diagnostics.errors.append(f"Missing required environment variable: {SUPABASE_URL_VARS[0]}")
        else:
            try:
                _url_adapter.validate_python(env.supabase_url)
            except ValidationError:
                diagnostics.errors.append(f"Invalid URL format for {SUPABASE_URL_VARS[0]}")

        if env.supabase_anon_key is None:
            diagnostics.errors.append(
                f"Missing required environment variable: {SUPABASE_ANON_KEY_VARS[0]}"
            )
        elif len(env.supabase_anon_key) < MIN_ANON_KEY_LENGTH:
            diagnostics.warnings.append(
                f"{SUPABASE_ANON_KEY_VARS[0]} seems too short "
                f"(expected ~{MIN_ANON_KEY_LENGTH}+ characters)"
            )

        if env.supabase_service_role_key is None:
            diagnostics.warnings.append(
                f"Missing optional environment variable: {SUPABASE_SERVICE_ROLE_KEY_VARS[0]} "
                "(required for environment setup)"
            )

        legacy_found = [name for name in LEGACY_VARS if _is_set(name)]
        if legacy_found:
            diagnostics.warnings.append(
                f"Legacy environment variables detected: {', '.join(legacy_found)}. "
                "Consider migrating to the NEXT_PUBLIC_ names."
            )

        return diagnostics

    def log_status(self) -> None:
        """Log which backend variables are present."""
        env = self.snapshot()
        logger.info(
            "Environment configuration status",
            extra={
                "supabase_url": "set" if env.supabase_url else "missing",
                "supabase_anon_key": "set" if env.supabase_anon_key else "missing",
                "supabase_service_role_key": "set" if env.supabase_service_role_key else "missing",
                "environment": env.environment_label.value,
            },
        )


def _is_set(name: str) -> bool:
    return bool(os.environ.get(name))
