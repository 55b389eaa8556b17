"""Temporary credentials held while a setup flow is testing connection parameters."""

import logging
from datetime import timedelta
from typing import Callable

from pydantic import ValidationError

from src.survey.services.configuration.local_bootstrap import ExpiringRecordStore, now_ms
from src.survey.services.configuration.models import TemporaryCredentialRecord
from src.survey.services.configuration.stores import KeyValueStore

logger = logging.getLogger(__name__)

DEFAULT_TEMP_CONFIG_NAME = ".temp-supabase-config.json"
DEFAULT_TEMP_CONFIG_TTL = timedelta(minutes=15)


class TemporaryCredentialStore(ExpiringRecordStore[TemporaryCredentialRecord]):
    """
    Short-lived credential file, kept apart from the bootstrap file.

    Expiry is carried by each record (`expiresAt`) rather than a fixed TTL,
    so a caller can choose the window when it saves.
    """

    record_type = TemporaryCredentialRecord

    def __init__(
        self,
        store: KeyValueStore,
        name: str = DEFAULT_TEMP_CONFIG_NAME,
        default_ttl: timedelta = DEFAULT_TEMP_CONFIG_TTL,
        clock: Callable[[], int] = now_ms,
    ):
        super().__init__(store, name, clock)
        self.default_ttl = default_ttl

    def _is_expired(self, record: TemporaryCredentialRecord, now: int) -> bool:
        return now > record.expires_at

    def expiry_from_now(self, ttl: timedelta | None = None) -> int:
        """Expiry timestamp (ms epoch) for a window starting now."""
        window = ttl if ttl is not None else self.default_ttl
        return self.clock() + int(window / timedelta(milliseconds=1))

    def save(self, url: str, key: str, expires_at: int | None = None) -> bool:
        """
        Store credentials under test.

        Args:
            url: Backend URL
            key: Backend anon key
            expires_at: Expiry in ms epoch (defaults to now + `default_ttl`)

        Returns:
            True if the record was written
        """
        now = self.clock()
        try:
            record = TemporaryCredentialRecord(
                url=url,
                key=key,
                timestamp=now,
                expires_at=expires_at if expires_at is not None else self.expiry_from_now(),
            )
        except ValidationError:
            logger.warning("Refusing to save empty temporary credentials")
            return False
        return self._write(record)
