"""API handlers for configuration status and app settings."""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from supabase import AsyncClient

from src.survey.features.config.schemas import ConfigStatusResponse, ConnectionStatusResponse
from src.survey.services.configuration import TransientBackendError, resolve_app_settings
from src.survey.services.configuration.models import AppSettings
from src.survey.services.database import BackendContext, get_backend, get_backend_client
from src.survey.services.rate_limiter import default_rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/config", tags=["config"])


@router.get("/check", response_model=ConfigStatusResponse)
@default_rate_limit
async def check_configuration(
    request: Request,
    backend: BackendContext = Depends(get_backend),
) -> ConfigStatusResponse:
    """
    Report whether the backend is configured.

    Missing configuration is an expected state: the response is 200 with
    `status="setup_needed"`, never an error.

    Example Response:
        {
            "configured": true,
            "status": "ready",
            "source": "local_file",
            "environment": "dev",
            "table_name": "pc_survey_data_dev",
            "has_env_url": false,
            "has_env_key": false,
            "has_local_config": true,
            "errors": [],
            "warnings": []
        }
    """
    try:
        config = await backend.resolve()
        env = backend.reader.snapshot()
        diagnostics = backend.reader.diagnostics()
        has_local_config = await asyncio.to_thread(backend.local_config.exists)

        return ConfigStatusResponse(
            configured=config.is_configured,
            status="ready" if config.is_configured else "setup_needed",
            source=config.source,
            environment=config.environment_label,
            table_name=config.table_name,
            has_env_url=env.supabase_url is not None,
            has_env_key=env.supabase_anon_key is not None,
            has_local_config=has_local_config,
            errors=diagnostics.errors,
            warnings=diagnostics.warnings,
        )

    except Exception as e:
        logger.error(f"Error checking configuration: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to check configuration.",
        ) from e


@router.get("/app", response_model=AppSettings)
@default_rate_limit
async def get_app_settings(
    request: Request,
    backend: BackendContext = Depends(get_backend),
) -> AppSettings:
    """
    Get app metadata and feature flags.

    Stored settings win when reachable; otherwise environment values and
    defaults are used.
    """
    env = backend.reader.snapshot()
    remote = None

    try:
        client = await backend.get_client()
        if client is not None:
            remote = await backend.remote_settings.fetch(client, env.environment_label)
    except TransientBackendError:
        logger.warning("Stored settings unavailable, using environment app settings")

    return resolve_app_settings(env, remote)


@router.get("/connection", response_model=ConnectionStatusResponse)
@default_rate_limit
async def check_connection(
    request: Request,
    client: AsyncClient = Depends(get_backend_client),
    backend: BackendContext = Depends(get_backend),
) -> ConnectionStatusResponse:
    """
    Probe the backend with the effective configuration.

    Responds 503 (`setup_needed`) when nothing is configured and 503
    (`unavailable`) when the backend cannot be reached.
    """
    config = await backend.resolve()
    await backend.remote_settings.probe(client)

    return ConnectionStatusResponse(
        connected=True,
        source=config.source,
        environment=config.environment_label,
        table_name=config.table_name,
    )
