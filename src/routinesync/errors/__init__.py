"""Public error exports for routinesync."""

from __future__ import annotations

from .exceptions import (
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
    is_transient_status,
    map_http_error,
)

__all__ = [
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
    "is_transient_status",
    "map_http_error",
]
