"""API handlers for provisioning the survey environments and editing stored settings."""

import logging

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from supabase import AsyncClient

from src.survey.features.admin.schemas import (
    DatabaseSettingsView,
    EnvironmentStatusResponse,
    SetupEnvironmentRequest,
    StoredSettingsResponse,
    TableStatus,
    UpdateSettingsRequest,
)
from src.survey.services.configuration import RemoteSettingsRecord
from src.survey.services.configuration.models import (
    DEV_TABLE_NAME,
    MAIN_TABLE_NAME,
    DatabaseSettings,
    EnvironmentLabel,
    derive_table_name,
)
from src.survey.services.database import (
    BackendContext,
    EnvironmentSetupOrchestrator,
    SetupResult,
    SupabaseSqlExecutor,
    get_backend,
    get_backend_client,
)
from src.survey.services.rate_limiter import (
    default_rate_limit,
    provisioning_rate_limit,
    write_rate_limit,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


async def get_orchestrator(
    backend: BackendContext = Depends(get_backend),
) -> EnvironmentSetupOrchestrator:
    """
    Orchestrator bound to a service-role client.

    Raises:
        HTTPException: 503 if no service-role key is configured
    """
    client = await backend.get_admin_client()
    if client is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Environment setup requires SUPABASE_SERVICE_ROLE_KEY.",
        )
    return EnvironmentSetupOrchestrator(SupabaseSqlExecutor(client))


def _table_status(exists: bool, table_name: str) -> TableStatus:
    return TableStatus(
        table_exists=exists,
        table_name=table_name,
        status="ready" if exists else "setup_needed",
    )


@router.get("/setup-environment", response_model=EnvironmentStatusResponse)
@default_rate_limit
async def get_environment_status(
    request: Request,
    orchestrator: EnvironmentSetupOrchestrator = Depends(get_orchestrator),
) -> EnvironmentStatusResponse:
    """Report whether the dev and main survey tables exist."""
    dev_exists = await orchestrator.check_dev_table_exists()
    main_exists = await orchestrator.check_main_table_exists()

    if not dev_exists and not main_exists:
        message = "Both environments need setup"
    elif not dev_exists:
        message = "Only dev environment needs setup"
    elif not main_exists:
        message = "Only main environment needs setup"
    else:
        message = "All environments are ready"

    return EnvironmentStatusResponse(
        dev=_table_status(dev_exists, DEV_TABLE_NAME),
        main=_table_status(main_exists, MAIN_TABLE_NAME),
        message=message,
    )


@router.post("/setup-environment", response_model=SetupResult)
@provisioning_rate_limit
async def setup_environment(
    request: Request,
    body: SetupEnvironmentRequest,
    orchestrator: EnvironmentSetupOrchestrator = Depends(get_orchestrator),
):
    """
    Provision the survey table for the requested environment.

    Safe to re-run. Returns 200 when every step succeeded or was already
    satisfied, 400 with the per-step results otherwise.

    Example Response:
        {
            "success": true,
            "environment": "dev",
            "table_name": "pc_survey_data_dev",
            "steps": {
                "create_table": {"status": "already_satisfied", "error": null},
                "create_indexes": {"status": "applied", "error": null},
                ...
            }
        }
    """
    try:
        result = await orchestrator.setup_environment(is_dev=body.is_dev)
    except Exception as e:
        logger.error(f"Unexpected error during environment setup: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error during setup.",
        ) from e

    if not result.success:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST, content=result.model_dump(mode="json")
        )
    return result


def _settings_response(label: EnvironmentLabel, record: RemoteSettingsRecord | None) -> StoredSettingsResponse:
    stored = record or RemoteSettingsRecord(environment=label)
    return StoredSettingsResponse(
        environment=label,
        found=record is not None,
        database=DatabaseSettingsView(
            url=stored.database.url,
            table_name=stored.database.table_name,
            environment=stored.database.environment,
            has_api_key=bool(stored.database.api_key),
        ),
        general=stored.general,
    )


@router.get("/settings", response_model=StoredSettingsResponse, response_model_by_alias=False)
@default_rate_limit
async def get_stored_settings(
    request: Request,
    environment: EnvironmentLabel | None = None,
    backend: BackendContext = Depends(get_backend),
    client: AsyncClient = Depends(get_backend_client),
) -> StoredSettingsResponse:
    """
    Get the stored settings record for an environment (defaults to the current one).

    The stored API key is never returned, only whether one is set.
    """
    label = environment or backend.reader.snapshot().environment_label
    record = await backend.remote_settings.fetch(client, label)
    return _settings_response(label, record)


@router.put("/settings", response_model=StoredSettingsResponse, response_model_by_alias=False)
@write_rate_limit
async def update_stored_settings(
    request: Request,
    payload: dict[str, Any] = Body(...),
    backend: BackendContext = Depends(get_backend),
    client: AsyncClient = Depends(get_backend_client),
) -> StoredSettingsResponse:
    """
    Update the `general` and/or `database` sections of the stored settings record.

    Only the submitted non-null fields change; the record is created when missing.
    The client cache is invalidated afterwards so stored credentials take
    effect on the next request.

    Example Request:
        {
            "environment": "main",
            "general": {"app_name": "Community Survey", "maintenance_mode": true}
        }

    Raises:
        HTTPException: 400 if the payload is invalid or updates nothing
    """
    try:
        body = UpdateSettingsRequest.model_validate(payload)
    except ValidationError as e:
        logger.warning(f"Invalid settings update: {e.error_count()} error(s)")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=[
                {"loc": list(error["loc"]), "msg": error["msg"]}
                for error in e.errors(include_url=False, include_input=False)
            ],
        ) from e

    if body.database is None and body.general is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Nothing to update: provide 'general' and/or 'database'.",
        )

    label = body.environment or backend.reader.snapshot().environment_label
    existing = await backend.remote_settings.fetch(client, label)
    record = existing or RemoteSettingsRecord(
        environment=label,
        database=DatabaseSettings(table_name=derive_table_name(None, label), environment=label.value),
    )

    updates: dict[str, Any] = {}
    if body.database is not None:
        updates["database"] = record.database.model_copy(update=body.database.model_dump(exclude_none=True))
    if body.general is not None:
        updates["general"] = record.general.model_copy(update=body.general.model_dump(exclude_none=True))
    record = record.model_copy(update=updates)

    if bool(record.database.url) != bool(record.database.api_key):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Stored database url and api_key must be set together.",
        )

    await backend.remote_settings.upsert(client, record)
    backend.invalidate()

    logger.info(f"Stored settings updated for '{label.value}'", extra={"sections": sorted(updates)})
    return _settings_response(label, record)
