"""Local bootstrap file: last known good backend credentials, valid for a fixed TTL."""

import logging
import time
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Callable, Generic, TypeVar

from pydantic import ValidationError

from src.survey.services.configuration.models import LocalBootstrapRecord
from src.survey.services.configuration.stores import KeyValueStore, StoreResult, StoreStatus

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=LocalBootstrapRecord)

DEFAULT_LOCAL_CONFIG_NAME = ".supabase-config.json"
DEFAULT_LOCAL_CONFIG_TTL = timedelta(hours=24)


def now_ms() -> int:
    """Current time as milliseconds since the epoch."""
    return int(time.time() * 1000)


class ExpiringRecordStore(ABC, Generic[R]):
    """
    Single-record store whose record removes itself once expired.

    One record name holds exactly one record; saving replaces it. Every
    failure is reported through return values, never raised.
    """

    record_type: type[R]

    def __init__(self, store: KeyValueStore, name: str, clock: Callable[[], int] = now_ms):
        self.store = store
        self.name = name
        self.clock = clock

    @abstractmethod
    def _is_expired(self, record: R, now: int) -> bool: ...

    def load(self) -> StoreResult[R]:
        """
        Read the record with a detailed outcome.

        Corrupt and expired records are deleted as a side effect.

        Returns:
            StoreResult with the record on success, or the reason it is unavailable
        """
        raw = self.store.get(self.name)
        if not raw.ok:
            return StoreResult.failure(raw.status, raw.reason)

        try:
            record = self.record_type.model_validate_json(raw.value or "")
        except ValidationError as e:
            logger.warning(
                f"Discarding unreadable configuration record {self.name}",
                extra={"record": self.name, "error_count": e.error_count()},
            )
            self.store.delete(self.name)
            return StoreResult.failure(
                StoreStatus.CORRUPT, f"invalid record ({e.error_count()} validation errors)"
            )

        if self._is_expired(record, self.clock()):
            logger.info(f"Configuration record {self.name} expired, removing")
            self.store.delete(self.name)
            return StoreResult.failure(StoreStatus.EXPIRED)

        return StoreResult.success(record)

    def read(self) -> R | None:
        """Return the record, or None if absent, unreadable or expired."""
        result = self.load()
        return result.value if result.ok else None

    def remove(self) -> bool:
        """Delete the record; a missing record is not an error."""
        removed = self.store.delete(self.name).ok
        if removed:
            logger.info(f"Configuration record {self.name} removed")
        return removed

    def exists(self) -> bool:
        """Check for the record without parsing it."""
        return self.store.exists(self.name)

    def _write(self, record: R) -> bool:
        result = self.store.set(self.name, record.model_dump_json(by_alias=True, indent=2))
        if result.ok:
            logger.info(f"Configuration record {self.name} saved")
        return result.ok


class LocalBootstrapStore(ExpiringRecordStore[LocalBootstrapRecord]):
    """
    Persists the resolved URL and key so later cold starts can recover them.

    Example:
        >>> local = LocalBootstrapStore(FileKeyValueStore("."))
        >>> local.save("https://project.supabase.co", "anon-key")
        True
        >>> local.read().url
        'https://project.supabase.co'
    """

    record_type = LocalBootstrapRecord

    def __init__(
        self,
        store: KeyValueStore,
        name: str = DEFAULT_LOCAL_CONFIG_NAME,
        ttl: timedelta = DEFAULT_LOCAL_CONFIG_TTL,
        clock: Callable[[], int] = now_ms,
    ):
        super().__init__(store, name, clock)
        self.ttl = ttl

    def _is_expired(self, record: LocalBootstrapRecord, now: int) -> bool:
        return now - record.timestamp > self.ttl / timedelta(milliseconds=1)

    def save(self, url: str, key: str) -> bool:
        """Replace the bootstrap record with `url`/`key` stamped with the current time."""
        try:
            record = LocalBootstrapRecord(url=url, key=key, timestamp=self.clock())
        except ValidationError:
            logger.warning("Refusing to save empty bootstrap credentials")
            return False
        return self._write(record)
