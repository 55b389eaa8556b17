"""API handlers for the interactive setup flow (test, save and clear credentials)."""

import asyncio
import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Request, status
from supabase._async.client import SupabaseException

from src.survey.features.setup.schemas import (
    ClearConfigRequest,
    ClearConfigResponse,
    ConnectionTestRequest,
    ConnectionTestResponse,
    SaveConfigRequest,
    SaveConfigResponse,
)
from src.survey.services.configuration import RemoteSettingsRecord, TransientBackendError
from src.survey.services.configuration.local_bootstrap import ExpiringRecordStore
from src.survey.services.configuration.models import (
    DatabaseSettings,
    EnvironmentLabel,
    GeneralSettings,
    derive_table_name,
)
from src.survey.services.database import BackendContext, get_backend
from src.survey.services.rate_limiter import write_rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/setup", tags=["setup"])


def _remove_if_present(store: ExpiringRecordStore) -> bool:
    """Remove the record, reporting whether one existed."""
    return store.exists() and store.remove()


@router.post("/test-connection", response_model=ConnectionTestResponse)
@write_rate_limit
async def test_connection(
    request: Request,
    body: ConnectionTestRequest,
    backend: BackendContext = Depends(get_backend),
) -> ConnectionTestResponse:
    """
    Test submitted credentials and hold them temporarily.

    The client built here is not cached: nothing is committed until
    save-config. On success the pair is written to the temporary credential
    file with the requested (or default) window.

    Raises:
        HTTPException: 400 if the backend rejects the credentials
        HTTPException: 500 if the credentials could not be stored
    """
    try:
        client = await backend.client_cache.factory(body.supabase_url, body.supabase_key)
        await backend.remote_settings.probe(client)
    except SupabaseException as e:
        logger.warning(f"Connection test rejected client parameters: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=f"Connection test failed: {e}"
        ) from e
    except TransientBackendError as e:
        logger.warning(f"Connection test failed: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except Exception as e:
        logger.error(f"Unexpected error during connection test: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to test connection. Please try again.",
        ) from e

    ttl = timedelta(seconds=body.ttl_seconds) if body.ttl_seconds else None
    expires_at = backend.temp_credentials.expiry_from_now(ttl)
    saved = await asyncio.to_thread(
        backend.temp_credentials.save, body.supabase_url, body.supabase_key, expires_at
    )
    if not saved:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Connection succeeded but the credentials could not be stored.",
        )

    return ConnectionTestResponse(
        success=True, message="Connection successful", expires_at=expires_at
    )


@router.post("/save-config", response_model=SaveConfigResponse)
@write_rate_limit
async def save_config(
    request: Request,
    body: SaveConfigRequest,
    backend: BackendContext = Depends(get_backend),
) -> SaveConfigResponse:
    """
    Commit credentials to the stored settings record and the local bootstrap file.

    Either tier may fail on its own; the response lists where the
    configuration landed. The client cache is always invalidated so the next
    request sees the new configuration.

    Raises:
        HTTPException: 400 if no credentials were given or tested
        HTTPException: 500 if the configuration could not be saved anywhere
    """
    if body.supabase_url and body.supabase_key:
        url, key = body.supabase_url, body.supabase_key
    elif body.supabase_url or body.supabase_key:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Both supabase_url and supabase_key are required.",
        )
    else:
        tested = await asyncio.to_thread(backend.temp_credentials.read)
        if tested is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No tested credentials available. Run the connection test first.",
            )
        url, key = tested.url, tested.key

    label = body.environment or backend.reader.snapshot().environment_label
    record = RemoteSettingsRecord(
        environment=label,
        database=DatabaseSettings(
            url=url,
            api_key=key,
            table_name=derive_table_name(None, label),
            environment=label.value,
        ),
        general=GeneralSettings(
            app_name=body.app_name,
            public_url=body.public_url,
            debug_mode=label is EnvironmentLabel.DEV,
        ),
    )

    saved_to: list[str] = []
    try:
        client = await backend.client_cache.get_or_create(url, key)
        await backend.remote_settings.upsert(client, record)
        saved_to.append("remote")
    except TransientBackendError as e:
        logger.warning(f"Stored settings not updated: {e}")

    if await asyncio.to_thread(backend.local_config.save, url, key):
        saved_to.append("local_file")

    await asyncio.to_thread(backend.temp_credentials.remove)
    backend.invalidate()

    if not saved_to:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save configuration.",
        )

    logger.info(f"Configuration saved to: {', '.join(saved_to)}", extra={"environment": label.value})
    return SaveConfigResponse(
        success=True, message="Configuration saved successfully", saved_to=saved_to
    )


@router.post("/clear-config", response_model=ClearConfigResponse)
@write_rate_limit
async def clear_config(
    request: Request,
    body: ClearConfigRequest,
    backend: BackendContext = Depends(get_backend),
) -> ClearConfigResponse:
    """
    Remove saved configuration from the stored settings record and local files.

    The stored record is deleted first, while the local file may still be
    what makes the backend reachable.
    """
    label = body.environment or backend.reader.snapshot().environment_label
    cleared: list[str] = []

    try:
        client = await backend.get_client()
        if client is not None:
            await backend.remote_settings.delete(client, label)
            cleared.append("remote")
    except TransientBackendError as e:
        logger.warning(f"Stored settings not cleared: {e}")

    for name, store in (("local_file", backend.local_config), ("temporary_file", backend.temp_credentials)):
        if await asyncio.to_thread(_remove_if_present, store):
            cleared.append(name)

    backend.invalidate()

    return ClearConfigResponse(
        success=True, message="Configuration cleared successfully", cleared=cleared
    )
