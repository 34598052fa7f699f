"""Durable key-value stores used by LocalCache and PendingActionQueue."""

from __future__ import annotations

import logging
import os
import re
import tempfile
from typing import Optional, Protocol, runtime_checkable

from routinesync.errors import InvalidStateError, LocalValidationError

logger = logging.getLogger(__name__)

_KEY_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


@runtime_checkable
class DurableKeyValueStore(Protocol):
    """Byte store that survives process restarts."""

    def get(self, key: str) -> Optional[bytes]: ...

    def set(self, key: str, value: bytes) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryKeyValueStore:
    """In-process store (tests, or clients that do not need restart durability)."""

    def __init__(self, initial: Optional[dict[str, bytes]] = None) -> None:
        self._data: dict[str, bytes] = dict(initial or {})

    def get(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        if not isinstance(value, (bytes, bytearray)):
            raise TypeError("value must be bytes")
        self._data[key] = bytes(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)


class FileKeyValueStore:
    """
    One file per key under a directory.

    set() writes to a temporary file in the same directory, fsyncs it and renames
    it over the target, so a crash leaves either the old value or the new one.
    """

    def __init__(self, directory: str, *, fsync: bool = True) -> None:
        if not directory or not isinstance(directory, str):
            raise LocalValidationError("directory must be a non-empty string")
        self._directory = directory
        self._fsync = fsync
        os.makedirs(directory, exist_ok=True)

    @property
    def directory(self) -> str:
        return self._directory

    def get(self, key: str) -> Optional[bytes]:
        path = self._path(key)
        try:
            with open(path, "rb") as f:
                return f.read()
        except FileNotFoundError:
            return None

    def set(self, key: str, value: bytes) -> None:
        if not isinstance(value, (bytes, bytearray)):
            raise TypeError("value must be bytes")

        path = self._path(key)
        fd, tmp_path = tempfile.mkstemp(
            prefix=f".{key}.", suffix=".tmp", dir=self._directory
        )
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(value)
                f.flush()
                if self._fsync:
                    os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass
            raise

        if self._fsync:
            self._fsync_directory()
        logger.debug("Stored %d bytes under %s", len(value), key)

    def delete(self, key: str) -> None:
        try:
            os.unlink(self._path(key))
        except FileNotFoundError:
            return
        if self._fsync:
            self._fsync_directory()

    def _path(self, key: str) -> str:
        if not isinstance(key, str) or not _KEY_RE.match(key):
            raise LocalValidationError(f"Invalid store key: {key!r}")
        return os.path.join(self._directory, key)

    def _fsync_directory(self) -> None:
        # Not supported on every platform (e.g. Windows); the rename is still atomic.
        try:
            dir_fd = os.open(self._directory, os.O_RDONLY)
        except OSError:
            return
        try:
            os.fsync(dir_fd)
        except OSError:
            pass
        finally:
            os.close(dir_fd)


def require_store(store: object) -> DurableKeyValueStore:
    """Validate that store implements get/set/delete."""
    if not isinstance(store, DurableKeyValueStore):
        raise InvalidStateError(
            "store must implement get/set/delete",
            details={"type": type(store).__name__},
        )
    return store
