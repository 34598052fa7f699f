"""LocalCache: last known-good routine collection, persisted as one JSON document."""

from __future__ import annotations

import json
import logging
from typing import Any

from routinesync.errors import StorageCorruptError
from routinesync.models import Routine, routine_from_dict, routine_to_dict

from .store import DurableKeyValueStore, require_store

logger = logging.getLogger(__name__)

CACHE_FORMAT_VERSION = 1


class LocalCache:
    """
    Durable snapshot of the routine collection.

    write() always replaces the whole snapshot; there are no partial edits.
    """

    def __init__(self, store: DurableKeyValueStore, *, key: str = "routines") -> None:
        self._store = require_store(store)
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    def read(self) -> list[Routine]:
        """Return the persisted snapshot, or [] if it is missing or unreadable."""
        try:
            return self.read_strict()
        except StorageCorruptError:
            return []

    def read_strict(self) -> list[Routine]:
        """
        Return the persisted snapshot.

        Raises:
            StorageCorruptError: if the stored bytes cannot be decoded. The bytes
                are copied to "<key>.corrupt" first.
        """
        raw = self._store.get(self._key)
        if raw is None:
            return []

        try:
            return decode_collection(raw)
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("Local cache %r is corrupt; falling back to empty", self._key)
            self._store.set(f"{self._key}.corrupt", raw)
            raise StorageCorruptError(
                "Local cache is unreadable",
                details={"key": self._key},
                cause=exc,
            ) from exc

    def write(self, routines: list[Routine]) -> None:
        """Atomically replace the persisted snapshot."""
        self._store.set(self._key, encode_collection(routines))
        logger.debug("Saved %d routines to local cache", len(routines))

    def clear(self) -> None:
        self._store.delete(self._key)


def encode_collection(routines: list[Routine]) -> bytes:
    doc = {
        "format": CACHE_FORMAT_VERSION,
        "routines": [routine_to_dict(r) for r in routines],
    }
    return json.dumps(doc, separators=(",", ":")).encode("utf-8")


def decode_collection(raw: bytes) -> list[Routine]:
    """Raises ValueError/KeyError/TypeError on malformed input."""
    doc: Any = json.loads(raw.decode("utf-8"))
    if not isinstance(doc, dict) or doc.get("format") != CACHE_FORMAT_VERSION:
        raise ValueError("unsupported cache format")

    records = doc.get("routines")
    if not isinstance(records, list):
        raise TypeError("routines must be a list")

    routines = [routine_from_dict(r) for r in records]
    ids = [r.id for r in routines]
    if len(ids) != len(set(ids)):
        raise ValueError("duplicate routine ids in cache")
    return routines
