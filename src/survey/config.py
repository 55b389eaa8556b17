"""Application configuration using Pydantic Settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # System Configuration
    api_v1_prefix: str = "/api/v1"
    debug: bool = False
    cors_origins: str = "http://localhost:3000,http://localhost:4173"
    rate_limit_enabled: bool = True

    # Local configuration files
    config_dir: str = "."
    local_config_filename: str = ".supabase-config.json"
    temp_config_filename: str = ".temp-supabase-config.json"
    local_config_ttl_hours: int = 24
    temp_config_ttl_seconds: int = 900  # 15 minutes

    # Well-known project used to reach the stored settings record
    bootstrap_supabase_url: str | None = None
    bootstrap_supabase_anon_key: str | None = None

    # Remote settings lookup
    remote_settings_table: str = "app_settings"
    remote_settings_timeout_seconds: float = 5.0
    remote_settings_retry_attempts: int = 2


settings = Settings()
