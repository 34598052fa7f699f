"""Durable FIFO log of mutations awaiting remote confirmation."""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from typing import Optional

from routinesync.errors import LocalValidationError, StorageCorruptError
from routinesync.local.store import DurableKeyValueStore, require_store

from .actions import PendingAction, action_from_dict, action_to_dict

logger = logging.getLogger(__name__)


class PendingActionQueue:
    """
    Ordered, durable log of PendingActions.

    Every mutation rewrites the whole persisted list through the store, so the
    queue on disk is always a complete, decodable document.

    drain() is a peek: entries leave the queue only through remove(), which the
    coordinator calls after the remote effect is confirmed. A crash in between
    therefore replays the entry again (at-least-once), never loses it.
    """

    def __init__(self, store: DurableKeyValueStore, *, key: str = "pending-actions") -> None:
        self._store = require_store(store)
        self._key = key
        self._entries: Optional[list[PendingAction]] = None

    def load(self) -> list[PendingAction]:
        """
        (Re)load entries from the store.

        Raises:
            StorageCorruptError: if the stored bytes cannot be decoded. The bytes
                are copied to "<key>.corrupt" and the queue starts empty.
        """
        raw = self._store.get(self._key)
        if raw is None:
            self._entries = []
            return []

        try:
            records = json.loads(raw.decode("utf-8"))
            if not isinstance(records, list):
                raise TypeError("pending actions must be a list")
            entries = [action_from_dict(r) for r in records]
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("Pending action queue %r is corrupt; starting empty", self._key)
            self._store.set(f"{self._key}.corrupt", raw)
            self._entries = []
            raise StorageCorruptError(
                "Pending action queue is unreadable",
                details={"key": self._key},
                cause=exc,
            ) from exc

        entries.sort(key=lambda a: a.seq)
        self._entries = entries
        return list(entries)

    def enqueue(self, action: PendingAction) -> PendingAction:
        """Append action (assigning its seq) and persist before returning."""
        entries = self._ensure_loaded()
        if any(a.action_id == action.action_id for a in entries):
            raise LocalValidationError(
                "Duplicate action_id in queue",
                details={"action_id": action.action_id},
            )

        action.seq = entries[-1].seq + 1 if entries else 0
        self._persist(entries + [action])
        logger.debug("Queued %s (seq=%d)", action.kind.value, action.seq)
        return action

    def drain(self) -> list[PendingAction]:
        """Return copies of all entries in FIFO order without removing them."""
        return [replace(a) for a in self._ensure_loaded()]

    def remove(self, action_id: str) -> bool:
        """Remove a confirmed entry. Returns False if it was not queued."""
        entries = self._ensure_loaded()
        remaining = [a for a in entries if a.action_id != action_id]
        if len(remaining) == len(entries):
            return False
        self._persist(remaining)
        return True

    def update(self, action: PendingAction) -> None:
        """Persist retry bookkeeping for an entry that is still queued."""
        entries = self._ensure_loaded()
        for i, existing in enumerate(entries):
            if existing.action_id == action.action_id:
                updated = list(entries)
                updated[i] = action
                self._persist(updated)
                return
        raise LocalValidationError(
            "Action is not queued",
            details={"action_id": action.action_id},
        )

    def __len__(self) -> int:
        return len(self._ensure_loaded())

    def _ensure_loaded(self) -> list[PendingAction]:
        if self._entries is None:
            try:
                self.load()
            except StorageCorruptError:
                pass
        return self._entries  # type: ignore[return-value]

    def _persist(self, entries: list[PendingAction]) -> None:
        payload = json.dumps(
            [action_to_dict(a) for a in entries],
            separators=(",", ":"),
        ).encode("utf-8")
        # Store first: the in-memory view only advances once the write landed.
        try:
            self._store.set(self._key, payload)
        except OSError as exc:
            raise StorageCorruptError(
                "Failed to write pending action queue",
                details={"key": self._key, "entries": len(entries)},
                cause=exc,
            ) from exc
        self._entries = entries
