"""Temporary id -> server id alias table."""

from __future__ import annotations

import json
import logging
from typing import Optional

from routinesync.errors import StorageCorruptError
from routinesync.util.ids import is_temp_id

from .store import DurableKeyValueStore, require_store

logger = logging.getLogger(__name__)


class IdAliasTable:
    """
    Maps temporary ids to the server ids they were reconciled to.

    Queued actions keep referring to the temporary ids they were created with;
    resolve() translates them at replay time, so a reconciliation never has to
    rewrite queued payloads. The table is persisted so a restart between a
    create's confirmation and the queue trim still resolves correctly.
    """

    def __init__(self, store: DurableKeyValueStore, *, key: str = "id-aliases") -> None:
        self._store = require_store(store)
        self._key = key
        self._aliases: dict[str, str] = {}

    def load(self) -> None:
        """
        Load persisted aliases.

        Raises:
            StorageCorruptError: if the stored bytes cannot be decoded.
        """
        raw = self._store.get(self._key)
        if raw is None:
            self._aliases = {}
            return

        try:
            data = json.loads(raw.decode("utf-8"))
            if not isinstance(data, dict) or not all(
                isinstance(k, str) and isinstance(v, str) for k, v in data.items()
            ):
                raise ValueError("alias table must map strings to strings")
        except ValueError as exc:
            self._aliases = {}
            self._store.set(f"{self._key}.corrupt", raw)
            raise StorageCorruptError(
                "Alias table is unreadable",
                details={"key": self._key},
                cause=exc,
            ) from exc

        self._aliases = dict(data)

    def add(self, temp_id: str, server_id: str) -> None:
        """Record temp_id -> server_id and persist before returning."""
        if not is_temp_id(temp_id):
            raise ValueError(f"not a temporary id: {temp_id}")
        if is_temp_id(server_id):
            raise ValueError(f"server id cannot be temporary: {server_id}")
        if self._aliases.get(temp_id) == server_id:
            return
        self._persist({**self._aliases, temp_id: server_id})
        logger.debug("Aliased %s -> %s", temp_id, server_id)

    def resolve(self, local_id: str) -> str:
        """Return the server id for local_id if known, else local_id unchanged."""
        return self._aliases.get(local_id, local_id)

    def get(self, temp_id: str) -> Optional[str]:
        return self._aliases.get(temp_id)

    def discard(self, temp_ids: set[str]) -> None:
        """Forget aliases that no queued action refers to anymore."""
        removed = [t for t in temp_ids if t in self._aliases]
        if not removed:
            return
        self._persist({k: v for k, v in self._aliases.items() if k not in removed})

    def as_dict(self) -> dict[str, str]:
        return dict(self._aliases)

    def __contains__(self, temp_id: object) -> bool:
        return temp_id in self._aliases

    def __len__(self) -> int:
        return len(self._aliases)

    def _persist(self, aliases: dict[str, str]) -> None:
        payload = json.dumps(aliases, sort_keys=True).encode("utf-8")
        try:
            self._store.set(self._key, payload)
        except OSError as exc:
            raise StorageCorruptError(
                "Failed to write alias table",
                details={"key": self._key},
                cause=exc,
            ) from exc
        self._aliases = aliases
