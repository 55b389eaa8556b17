"""Application metadata and feature flags merged from stored settings and environment."""

from src.survey.services.configuration.environment import SupabaseEnvironment
from src.survey.services.configuration.models import AppSettings, RemoteSettingsRecord

DEFAULT_APP_NAME = "Product Community Survey"


def _flag(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() == "true"


def resolve_app_settings(
    env: SupabaseEnvironment, remote: RemoteSettingsRecord | None = None
) -> AppSettings:
    """
    Build app settings, letting non-empty stored values win over the environment.

    Args:
        env: Environment snapshot
        remote: Stored settings record for the current label, if reachable

    Returns:
        AppSettings with defaults filled in
    """
    general = remote.general if remote is not None else None

    return AppSettings(
        app_name=(general and general.app_name) or env.app_name or DEFAULT_APP_NAME,
        app_url=(general and general.public_url) or env.app_url or "",
        environment=env.environment_label,
        maintenance_mode=(
            general.maintenance_mode if general else _flag(env.maintenance_mode, False)
        ),
        analytics_enabled=(
            general.analytics_enabled if general else _flag(env.enable_analytics, True)
        ),
        email_notifications_enabled=_flag(env.enable_email_notifications, True),
        export_enabled=_flag(env.enable_export, True),
        debug_mode=general.debug_mode if general else False,
    )
