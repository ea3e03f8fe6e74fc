# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""
Commit Storage — key-value blob store plus typed repositories.

Two layers:
  BlobStore   get/set/remove of opaque bytes, synchronous.
  Repository  one key, one pydantic type: load() -> T | default, save(T) -> bool.

Writes are write-through: the caller's mutation has already happened in
memory, save() serializes it before the operation returns. A failed
write is logged and reported as False, never raised — the in-memory
state stays authoritative until restart.

Corrupt or missing blobs load as the repository default.
"""

import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, Generic, Optional, Protocol, TypeVar

from pydantic import TypeAdapter, ValidationError

from ritual.schemas import PersistenceError

logger = logging.getLogger("commit.storage")

T = TypeVar("T")


class StorageKeys:
    """Record keys in the blob store. Use these constants, not raw strings."""
    ACTIVE_COMMITMENT = "activeCommitment"
    ARCHIVED_COMMITMENTS = "archivedCommitments"
    MICRO_JOURNAL = "microJournal"
    REMINDER_SLOTS = "reminderSlots"
    NOTIFICATIONS_ENABLED = "notificationsEnabled"
    PREFERRED_NOTIFICATION_TIME = "preferredNotificationTime"
    IS_PREMIUM_USER = "isPremiumUser"


# ============================================================================
# BLOB STORES
# ============================================================================

class BlobStore(Protocol):
    def get(self, key: str) -> Optional[bytes]: ...
    def set(self, key: str, value: bytes) -> None: ...
    def remove(self, key: str) -> None: ...


def _atomic_rename(tmp: Path, dest: Path):
    """Flush, fsync, then rename — crash-safe atomic write."""
    fd = os.open(str(tmp), os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)
    os.rename(str(tmp), str(dest))


class FileBlobStore:
    """One file per key under a directory. Writes go to .tmp then rename."""

    def __init__(self, directory: Path):
        self._dir = Path(directory)

    def _path(self, key: str) -> Path:
        return self._dir / f"{key}.json"

    def get(self, key: str) -> Optional[bytes]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_bytes()
        except OSError as e:
            logger.warning("Could not read %s: %s", path, e)
            return None

    def set(self, key: str, value: bytes) -> None:
        path = self._path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(path.suffix + ".tmp")
            tmp.write_bytes(value)
            _atomic_rename(tmp, path)
        except OSError as e:
            raise PersistenceError(f"write failed for {key}: {e}") from e

    def remove(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(f"remove failed for {key}: {e}") from e


class MemoryBlobStore:
    """In-process store. Used by tests and ephemeral sessions."""

    def __init__(self):
        self._data: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        with self._lock:
            self._data[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self):
        with self._lock:
            return sorted(self._data)


# ============================================================================
# REPOSITORY
# ============================================================================

class Repository(Generic[T]):
    """
    Typed access to a single record.

    Args:
        store: Blob store holding the record
        key: Record key (use StorageKeys.*)
        schema: Any type pydantic can validate (model, List[Model], bool, Optional[...])
        default: Returned by load() when the record is absent or corrupt.
                 Callables are invoked so mutable defaults aren't shared.
    """

    def __init__(self, store: BlobStore, key: str, schema: Any, default: Any = None):
        self.store = store
        self.key = key
        self._adapter = TypeAdapter(schema)
        self._default = default
        self.failures = 0

    def default(self) -> T:
        return self._default() if callable(self._default) else self._default

    def load(self) -> T:
        raw = self.store.get(self.key)
        if raw is None:
            return self.default()
        try:
            return self._adapter.validate_json(raw)
        except (ValidationError, ValueError) as e:
            logger.warning("Discarding unreadable %s record: %s", self.key, e)
            return self.default()

    def save(self, value: Optional[T]) -> bool:
        """Persist value (None removes the record). False on failure."""
        try:
            if value is None:
                self.store.remove(self.key)
            else:
                self.store.set(self.key, self._adapter.dump_json(value))
            return True
        except (PersistenceError, ValueError) as e:
            self.failures += 1
            logger.error("Failed to persist %s: %s", self.key, e)
            return False

    def clear(self) -> bool:
        return self.save(None)
