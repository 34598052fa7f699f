"""Exception hierarchy and HTTP error mapping for routinesync."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


class RoutineSyncError(Exception):
    """
    Base exception for routinesync.

    Attributes:
        details: Optional structured information (e.g., HTTP status, action id).
        cause: Optional original exception that triggered this error.
    """

    def __init__(
        self,
        message: str,
        *,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.details = details or {}
        self.cause = cause


class LocalValidationError(RoutineSyncError):
    """Raised when a mutation is rejected locally (unknown id, bad input)."""


class InvalidStateError(RoutineSyncError):
    """Raised when the library is used in an invalid state (e.g., start not called)."""


class NetworkUnavailableError(RoutineSyncError):
    """Raised when the remote service cannot be reached (treated as offline)."""


class RemoteRejectedError(RoutineSyncError):
    """Raised when the remote service refuses a request (validation/authorization)."""


class AuthorizationError(RemoteRejectedError):
    """Raised when the request is not authorized (HTTP 401/403)."""


class NotFoundError(RemoteRejectedError):
    """Raised when a remote row does not exist (HTTP 404)."""


class ConflictError(RemoteRejectedError):
    """Raised when the remote state conflicts with the request (HTTP 409/412)."""


class StorageCorruptError(RoutineSyncError):
    """Raised when persisted bytes cannot be decoded."""


class StaleDataError(RoutineSyncError):
    """Recorded when load() had to fall back to the cached snapshot."""


class PartialSyncFailure(RoutineSyncError):
    """
    One or more queued actions failed to replay.

    The failed entries stay queued for the next sync attempt.
    """

    def __init__(
        self,
        message: str,
        *,
        failed_action_ids: Optional[list[str]] = None,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message, details=details, cause=cause)
        self.failed_action_ids = list(failed_action_ids or [])


@dataclass(frozen=True)
class HttpErrorInfo:
    """Lightweight HTTP error information for mapping to routinesync exceptions."""

    status_code: int
    reason: str | None = None
    message: str | None = None
    details: dict[str, Any] | None = None


_TRANSIENT_STATUS_CODES: frozenset[int] = frozenset({408, 425, 429})


def is_transient_status(status_code: int) -> bool:
    """Return True for statuses that mean "try again later" rather than "no"."""
    return status_code in _TRANSIENT_STATUS_CODES or 500 <= status_code <= 599


def map_http_error(
    info: HttpErrorInfo,
    *,
    cause: Optional[BaseException] = None,
) -> RoutineSyncError:
    """
    Map an HTTP error to a routinesync exception.

    Policy:
        - 401/403 -> AuthorizationError
        - 404 -> NotFoundError
        - 409/412 -> ConflictError
        - 408/425/429/5xx -> NetworkUnavailableError
        - 0 (no response) -> NetworkUnavailableError
        - other 4xx -> RemoteRejectedError
        - otherwise -> RemoteRejectedError
    """
    details: dict[str, Any] = {
        "status_code": info.status_code,
        "reason": info.reason,
    }
    if info.details:
        details.update(info.details)

    message = info.message or f"HTTP error {info.status_code}"

    if info.status_code == 0 or is_transient_status(info.status_code):
        return NetworkUnavailableError(message, details=details, cause=cause)
    if info.status_code in (401, 403):
        return AuthorizationError(message, details=details, cause=cause)
    if info.status_code == 404:
        return NotFoundError(message, details=details, cause=cause)
    if info.status_code in (409, 412):
        return ConflictError(message, details=details, cause=cause)

    return RemoteRejectedError(message, details=details, cause=cause)
