"""routinesync public API."""

from __future__ import annotations

from routinesync.config import SyncConfig
from routinesync.connectivity import ConnectivityEvent, ConnectivityMonitor, HeartbeatProbe
from routinesync.controller import RemoteDataService, RestRoutineController
from routinesync.coordinator import SyncCoordinator
from routinesync.errors import (
    AuthorizationError,
    ConflictError,
    HttpErrorInfo,
    InvalidStateError,
    LocalValidationError,
    NetworkUnavailableError,
    NotFoundError,
    PartialSyncFailure,
    RemoteRejectedError,
    RoutineSyncError,
    StaleDataError,
    StorageCorruptError,
    map_http_error,
)
from routinesync.local import FileKeyValueStore, LocalCache, MemoryKeyValueStore
from routinesync.models import (
    ActionResult,
    ReplayResult,
    Routine,
    RoutineInput,
    RoutineSlot,
    SlotInput,
    SyncState,
)
from routinesync.pending import PendingAction, PendingActionQueue
from routinesync.realtime import (
    ChangeEvent,
    ChangeKind,
    RealtimeChangeListener,
    WebSocketPushChannel,
)

__all__ = [
    # High-level
    "SyncCoordinator",
    "SyncConfig",
    # Connectivity / realtime
    "ConnectivityMonitor",
    "ConnectivityEvent",
    "HeartbeatProbe",
    "RealtimeChangeListener",
    "WebSocketPushChannel",
    "ChangeEvent",
    "ChangeKind",
    # Remote
    "RemoteDataService",
    "RestRoutineController",
    # Local
    "LocalCache",
    "MemoryKeyValueStore",
    "FileKeyValueStore",
    "PendingAction",
    "PendingActionQueue",
    # Models
    "Routine",
    "RoutineSlot",
    "RoutineInput",
    "SlotInput",
    "SyncState",
    "ActionResult",
    "ReplayResult",
    # Errors
    "RoutineSyncError",
    "LocalValidationError",
    "InvalidStateError",
    "NetworkUnavailableError",
    "RemoteRejectedError",
    "AuthorizationError",
    "NotFoundError",
    "ConflictError",
    "StorageCorruptError",
    "StaleDataError",
    "PartialSyncFailure",
    "HttpErrorInfo",
    "map_http_error",
]
