"""Stored settings record kept in the backend itself (`app_settings` table)."""

import asyncio
import logging

import httpx
from postgrest.exceptions import APIError
from pydantic import ValidationError
from supabase import AsyncClient
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from src.survey.services.configuration.exceptions import TransientBackendError
from src.survey.services.configuration.models import EnvironmentLabel, RemoteSettingsRecord

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_TABLE = "app_settings"

# PostgREST codes for "relation does not exist"; the server answered, so the
# credentials work even though the settings table is missing.
MISSING_TABLE_CODES = {"42P01", "PGRST205"}

_BACKEND_ERRORS = (APIError, httpx.HTTPError, TimeoutError)


class RemoteSettingsRepository:
    """
    Read, upsert and delete the settings record for an environment label.

    At most one row exists per label: writes are upserts keyed on the
    `environment` column. Every backend failure surfaces as
    TransientBackendError.
    """

    def __init__(
        self,
        table: str = DEFAULT_SETTINGS_TABLE,
        timeout_seconds: float = 5.0,
        retry_attempts: int = 2,
    ):
        self.table = table
        self.timeout_seconds = timeout_seconds
        self.retry_attempts = retry_attempts

    async def fetch(self, client: AsyncClient, label: EnvironmentLabel) -> RemoteSettingsRecord | None:
        """
        Fetch the settings record for `label`, retrying transient failures.

        Args:
            client: Backend client able to read the settings table
            label: Environment label of the record

        Returns:
            The record, or None if no usable row exists

        Raises:
            TransientBackendError: If the backend stays unreachable after retries
        """
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(multiplier=0.1, max=1),
            retry=retry_if_exception_type(TransientBackendError),
            reraise=True,
        ):
            with attempt:
                return await self._fetch_once(client, label)
        return None

    async def _fetch_once(
        self, client: AsyncClient, label: EnvironmentLabel
    ) -> RemoteSettingsRecord | None:
        try:
            response = await asyncio.wait_for(
                client.table(self.table)
                .select("*")
                .eq("environment", label.value)
                .limit(1)
                .execute(),
                timeout=self.timeout_seconds,
            )
        except _BACKEND_ERRORS as e:
            logger.warning(
                f"Failed to fetch stored settings for '{label.value}': {type(e).__name__}",
                extra={"error_type": "remote_settings_fetch_failed", "environment": label.value},
            )
            raise TransientBackendError(f"Stored settings unavailable for '{label.value}'") from e

        rows = response.data or []
        if not rows:
            logger.info(f"No stored settings found for '{label.value}'")
            return None

        try:
            return RemoteSettingsRecord.from_row(rows[0])
        except (ValidationError, KeyError):
            logger.warning(
                f"Stored settings for '{label.value}' are malformed, ignoring",
                extra={"error_type": "remote_settings_malformed"},
            )
            return None

    async def upsert(self, client: AsyncClient, record: RemoteSettingsRecord) -> None:
        """
        Create or replace the record for `record.environment`.

        Raises:
            TransientBackendError: If the write fails
        """
        try:
            await asyncio.wait_for(
                client.table(self.table).upsert(record.to_row(), on_conflict="environment").execute(),
                timeout=self.timeout_seconds,
            )
        except _BACKEND_ERRORS as e:
            logger.error(
                f"Failed to save stored settings for '{record.environment.value}': {type(e).__name__}",
                extra={"error_type": "remote_settings_upsert_failed"},
            )
            raise TransientBackendError("Failed to save stored settings") from e

        logger.info(f"Stored settings saved for '{record.environment.value}'")

    async def delete(self, client: AsyncClient, label: EnvironmentLabel) -> None:
        """
        Delete the record for `label` (no-op if absent).

        Raises:
            TransientBackendError: If the delete fails
        """
        try:
            await asyncio.wait_for(
                client.table(self.table).delete().eq("environment", label.value).execute(),
                timeout=self.timeout_seconds,
            )
        except _BACKEND_ERRORS as e:
            logger.error(
                f"Failed to delete stored settings for '{label.value}': {type(e).__name__}",
                extra={"error_type": "remote_settings_delete_failed"},
            )
            raise TransientBackendError("Failed to delete stored settings") from e

        logger.info(f"Stored settings deleted for '{label.value}'")

    async def probe(self, client: AsyncClient) -> None:
        """
        Check that `client` can talk to the backend.

        Raises:
            TransientBackendError: If the backend rejects the credentials or is unreachable
        """
        try:
            await asyncio.wait_for(
                client.table(self.table).select("environment").limit(1).execute(),
                timeout=self.timeout_seconds,
            )
        except APIError as e:
            if e.code in MISSING_TABLE_CODES:
                return
            raise TransientBackendError(f"Connection test failed: {e.message}") from e
        except (httpx.HTTPError, TimeoutError) as e:
            raise TransientBackendError("Connection test failed: backend unreachable") from e
