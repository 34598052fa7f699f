"""PostgREST routines API controller built on requests."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, TypeVar

import requests

from routinesync.errors import (
    HttpErrorInfo,
    InvalidStateError,
    NetworkUnavailableError,
    NotFoundError,
    RemoteRejectedError,
    RoutineSyncError,
    map_http_error,
)
from routinesync.models import (
    Routine,
    RoutineInput,
    RoutineSlot,
    SlotInput,
    input_to_dict,
    routine_from_dict,
    slot_from_dict,
)

from .fields import (
    CLIENT_REF_COLUMN,
    ROUTINE_SELECT,
    ROUTINES_TABLE,
    SLOT_COLUMNS,
    SLOTS_TABLE,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class _RetryPolicy:
    max_retries: int = 2
    initial_delay_sec: float = 0.5


class RestRoutineController:
    """
    RemoteDataService over a PostgREST (Supabase-style) HTTP API.

    Notes:
        - requests is blocking; every public coroutine runs its request in a
          worker thread via asyncio.to_thread.
        - Transient failures (connection errors, 408/429/5xx) are retried with
          exponential backoff before NetworkUnavailableError is raised.
        - Creates are upserts on the client_ref column with duplicates ignored,
          so replaying a create returns the row the first attempt produced.
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_key: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout_sec: float = 10.0,
        max_retries: int = 2,
        initial_delay_sec: float = 0.5,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not base_url or not isinstance(base_url, str):
            raise InvalidStateError("base_url must be a non-empty string")

        self._rest_url = base_url.rstrip("/") + "/rest/v1"
        self._timeout_sec = timeout_sec
        self._retry_policy = _RetryPolicy(
            max_retries=max_retries,
            initial_delay_sec=initial_delay_sec,
        )

        self._session = session or requests.Session()
        self._session.headers.update({"Accept": "application/json"})
        if api_key:
            self._session.headers.update(
                {"apikey": api_key, "Authorization": f"Bearer {api_key}"}
            )
        if headers:
            self._session.headers.update(dict(headers))

    def close(self) -> None:
        self._session.close()

    # ----------------------------
    # Public API (RemoteDataService)
    # ----------------------------
    async def fetch_all(self) -> list[Routine]:
        return await asyncio.to_thread(self.fetch_all_sync)

    async def create_routine(self, value: RoutineInput, idempotency_key: str) -> Routine:
        return await asyncio.to_thread(self.create_routine_sync, value, idempotency_key)

    async def update_routine(
        self, routine_id: str, updates: dict[str, Any]
    ) -> Optional[Routine]:
        return await asyncio.to_thread(self.update_routine_sync, routine_id, updates)

    async def delete_routine(self, routine_id: str) -> None:
        await asyncio.to_thread(self.delete_routine_sync, routine_id)

    async def add_slot(
        self, routine_id: str, value: SlotInput, idempotency_key: str
    ) -> RoutineSlot:
        return await asyncio.to_thread(self.add_slot_sync, routine_id, value, idempotency_key)

    async def update_slot(
        self, routine_id: str, slot_id: str, updates: dict[str, Any]
    ) -> Optional[RoutineSlot]:
        return await asyncio.to_thread(self.update_slot_sync, routine_id, slot_id, updates)

    async def delete_slot(self, routine_id: str, slot_id: str) -> None:
        await asyncio.to_thread(self.delete_slot_sync, routine_id, slot_id)

    async def ping(self) -> bool:
        return await asyncio.to_thread(self.ping_sync)

    # ----------------------------
    # Blocking implementations
    # ----------------------------
    def fetch_all_sync(self) -> list[Routine]:
        rows = self._request(
            "GET",
            ROUTINES_TABLE,
            params={
                "select": ROUTINE_SELECT,
                "order": "created_at.desc",
                "slots.order": "created_at.asc",
            },
        )
        return [routine_from_dict(row) for row in _as_rows(rows)]

    def create_routine_sync(self, value: RoutineInput, idempotency_key: str) -> Routine:
        body = input_to_dict(value)
        body[CLIENT_REF_COLUMN] = idempotency_key
        rows = self._request(
            "POST",
            ROUTINES_TABLE,
            params={"on_conflict": CLIENT_REF_COLUMN, "select": ROUTINE_SELECT},
            json_body=body,
            prefer="return=representation,resolution=ignore-duplicates",
        )
        row = _first_row(rows)
        if row is None:
            # Duplicate ignored: the first attempt already created the row.
            row = self._find_by_client_ref(ROUTINES_TABLE, idempotency_key, ROUTINE_SELECT)
        return routine_from_dict(row)

    def update_routine_sync(self, routine_id: str, updates: dict[str, Any]) -> Optional[Routine]:
        rows = self._request(
            "PATCH",
            ROUTINES_TABLE,
            params={"id": f"eq.{routine_id}", "select": ROUTINE_SELECT},
            json_body=dict(updates),
            prefer="return=representation",
        )
        row = _first_row(rows)
        if row is None:
            raise NotFoundError(
                "Routine not found",
                details={"routine_id": routine_id},
            )
        return routine_from_dict(row)

    def delete_routine_sync(self, routine_id: str) -> None:
        # Deleting an already-deleted row matches nothing and still succeeds.
        self._request("DELETE", ROUTINES_TABLE, params={"id": f"eq.{routine_id}"})

    def add_slot_sync(self, routine_id: str, value: SlotInput, idempotency_key: str) -> RoutineSlot:
        body = input_to_dict(value)
        body["routine_id"] = routine_id
        body[CLIENT_REF_COLUMN] = idempotency_key
        rows = self._request(
            "POST",
            SLOTS_TABLE,
            params={"on_conflict": CLIENT_REF_COLUMN, "select": SLOT_COLUMNS},
            json_body=body,
            prefer="return=representation,resolution=ignore-duplicates",
        )
        row = _first_row(rows)
        if row is None:
            row = self._find_by_client_ref(SLOTS_TABLE, idempotency_key, SLOT_COLUMNS)
        return slot_from_dict(row)

    def update_slot_sync(
        self, routine_id: str, slot_id: str, updates: dict[str, Any]
    ) -> Optional[RoutineSlot]:
        rows = self._request(
            "PATCH",
            SLOTS_TABLE,
            params={
                "id": f"eq.{slot_id}",
                "routine_id": f"eq.{routine_id}",
                "select": SLOT_COLUMNS,
            },
            json_body=dict(updates),
            prefer="return=representation",
        )
        row = _first_row(rows)
        if row is None:
            raise NotFoundError(
                "Routine slot not found",
                details={"routine_id": routine_id, "slot_id": slot_id},
            )
        return slot_from_dict(row)

    def delete_slot_sync(self, routine_id: str, slot_id: str) -> None:
        self._request(
            "DELETE",
            SLOTS_TABLE,
            params={"id": f"eq.{slot_id}", "routine_id": f"eq.{routine_id}"},
        )

    def ping_sync(self) -> bool:
        """Single unretried request; True if the API answered at all (below 500)."""
        try:
            resp = self._session.get(self._rest_url + "/", timeout=self._timeout_sec)
        except requests.RequestException as exc:
            logger.debug("Ping failed: %s", exc)
            return False
        return resp.status_code < 500

    # ----------------------------
    # Internals
    # ----------------------------
    def _find_by_client_ref(self, table: str, client_ref: str, select: str) -> dict[str, Any]:
        rows = self._request(
            "GET",
            table,
            params={CLIENT_REF_COLUMN: f"eq.{client_ref}", "select": select},
        )
        row = _first_row(rows)
        if row is None:
            raise RemoteRejectedError(
                "Create returned no row and none exists for its client_ref",
                details={"table": table, "client_ref": client_ref},
            )
        return row

    def _request(
        self,
        method: str,
        table: str,
        *,
        params: Optional[dict[str, str]] = None,
        json_body: Optional[dict[str, Any]] = None,
        prefer: Optional[str] = None,
    ) -> Any:
        url = f"{self._rest_url}/{table}"
        headers: dict[str, str] = {}
        if prefer:
            headers["Prefer"] = prefer

        def call() -> Any:
            resp = self._session.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=headers,
                timeout=self._timeout_sec,
            )
            if resp.status_code >= 400:
                raise map_http_error(_response_to_info(resp))
            if resp.status_code == 204 or not resp.content:
                return None
            try:
                return resp.json()
            except ValueError as exc:
                raise RemoteRejectedError(
                    "Response body is not JSON",
                    details={"status_code": resp.status_code},
                    cause=exc,
                ) from exc

        logger.debug("%s %s %s", method, table, params)
        return self._execute(call)

    def _execute(self, func: Callable[[], T]) -> T:
        delay = self._retry_policy.initial_delay_sec
        for attempt in range(self._retry_policy.max_retries + 1):
            try:
                return func()
            except Exception as exc:
                mapped = self._map_exception(exc)
                if self._should_retry(mapped) and attempt < self._retry_policy.max_retries:
                    time.sleep(delay)
                    delay *= 2
                    continue
                if mapped is exc:
                    raise
                raise mapped from exc

        raise NetworkUnavailableError("Unexpected retry loop termination")

    def _should_retry(self, exc: Exception) -> bool:
        return isinstance(exc, NetworkUnavailableError)

    def _map_exception(self, exc: Exception) -> Exception:
        if isinstance(exc, RoutineSyncError):
            return exc
        if isinstance(exc, (requests.ConnectionError, requests.Timeout)):
            return NetworkUnavailableError("Network error", cause=exc)
        if isinstance(exc, requests.RequestException):
            return NetworkUnavailableError("Request failed", cause=exc)
        return RemoteRejectedError("Unexpected response handling error", cause=exc)


def _as_rows(payload: Any) -> list[dict[str, Any]]:
    if payload is None:
        return []
    if isinstance(payload, dict):
        return [payload]
    if isinstance(payload, list) and all(isinstance(r, dict) for r in payload):
        return payload
    raise RemoteRejectedError("Unexpected response shape", details={"type": type(payload).__name__})


def _first_row(payload: Any) -> Optional[dict[str, Any]]:
    rows = _as_rows(payload)
    return rows[0] if rows else None


def _response_to_info(resp: requests.Response) -> HttpErrorInfo:
    message = None
    details: dict[str, Any] = {}

    try:
        payload = resp.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        if isinstance(payload.get("message"), str):
            message = payload["message"]
        for key in ("code", "hint", "details"):
            if payload.get(key) is not None:
                details[key] = payload[key]

    return HttpErrorInfo(
        status_code=resp.status_code,
        reason=resp.reason if isinstance(resp.reason, str) else None,
        message=message,
        details=details or None,
    )
