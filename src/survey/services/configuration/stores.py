"""Key-value persistence for local configuration records."""

import logging
import os
import tempfile
from enum import Enum
from pathlib import Path
from typing import Generic, Protocol, TypeVar

from pydantic import BaseModel

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StoreStatus(str, Enum):
    """Outcome of a store operation."""

    OK = "ok"
    ABSENT = "absent"
    CORRUPT = "corrupt"
    EXPIRED = "expired"
    IO_ERROR = "io_error"


class StoreResult(BaseModel, Generic[T]):
    """
    Typed result for store operations that must never raise.

    Lets callers distinguish "absent" from "corrupt" from "permission denied"
    without catching exceptions.
    """

    status: StoreStatus
    value: T | None = None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is StoreStatus.OK

    @classmethod
    def success(cls, value: T | None = None) -> "StoreResult[T]":
        return cls(status=StoreStatus.OK, value=value)

    @classmethod
    def failure(cls, status: StoreStatus, reason: str | None = None) -> "StoreResult[T]":
        return cls(status=status, reason=reason)


class KeyValueStore(Protocol):
    """Record storage addressed by name."""

    def get(self, name: str) -> StoreResult[str]: ...

    def set(self, name: str, data: str) -> StoreResult[None]: ...

    def delete(self, name: str) -> StoreResult[None]: ...

    def exists(self, name: str) -> bool: ...


class FileKeyValueStore:
    """
    Stores each record as one file under a base directory.

    Writes go to a temporary file first and are moved into place, so a
    reader never observes a half-written record. Concurrent writers are not
    locked against each other: the last write wins.
    """

    def __init__(self, base_dir: str | Path = "."):
        self.base_dir = Path(base_dir)

    def _path(self, name: str) -> Path:
        return self.base_dir / name

    def get(self, name: str) -> StoreResult[str]:
        path = self._path(name)
        try:
            return StoreResult.success(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return StoreResult.failure(StoreStatus.ABSENT)
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Error reading {path}: {e}", extra={"error_type": "config_read_failed"})
            return StoreResult.failure(StoreStatus.IO_ERROR, str(e))

    def set(self, name: str, data: str) -> StoreResult[None]:
        path = self._path(name)
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.base_dir, prefix=f".{name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as tmp_file:
                    tmp_file.write(data)
                os.replace(tmp_path, path)
            except BaseException:
                Path(tmp_path).unlink(missing_ok=True)
                raise
            return StoreResult.success()
        except OSError as e:
            logger.error(f"Error writing {path}: {e}", extra={"error_type": "config_write_failed"})
            return StoreResult.failure(StoreStatus.IO_ERROR, str(e))

    def delete(self, name: str) -> StoreResult[None]:
        path = self._path(name)
        try:
            path.unlink(missing_ok=True)
            return StoreResult.success()
        except OSError as e:
            logger.error(f"Error removing {path}: {e}", extra={"error_type": "config_delete_failed"})
            return StoreResult.failure(StoreStatus.IO_ERROR, str(e))

    def exists(self, name: str) -> bool:
        try:
            return self._path(name).is_file()
        except OSError:
            return False


class InMemoryKeyValueStore:
    """Process-local store for tests and deployments without a writable filesystem."""

    def __init__(self) -> None:
        self._records: dict[str, str] = {}

    def get(self, name: str) -> StoreResult[str]:
        if name not in self._records:
            return StoreResult.failure(StoreStatus.ABSENT)
        return StoreResult.success(self._records[name])

    def set(self, name: str, data: str) -> StoreResult[None]:
        self._records[name] = data
        return StoreResult.success()

    def delete(self, name: str) -> StoreResult[None]:
        self._records.pop(name, None)
        return StoreResult.success()

    def exists(self, name: str) -> bool:
        return name in self._records
