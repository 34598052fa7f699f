"""Public local-persistence exports for routinesync."""

from __future__ import annotations

from .aliases import IdAliasTable
from .cache import LocalCache, decode_collection, encode_collection
from .snapshot import RoutineSnapshot
from .store import DurableKeyValueStore, FileKeyValueStore, MemoryKeyValueStore

__all__ = [
    "DurableKeyValueStore",
    "FileKeyValueStore",
    "MemoryKeyValueStore",
    "LocalCache",
    "encode_collection",
    "decode_collection",
    "IdAliasTable",
    "RoutineSnapshot",
]
