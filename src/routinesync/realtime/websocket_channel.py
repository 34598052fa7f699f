"""Supabase Realtime push channel over websockets (Phoenix channel protocol)."""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
from typing import Any, AsyncIterator, Iterable, Optional
from urllib.parse import urlencode, urlsplit, urlunsplit

import websockets

from routinesync.controller.fields import ROUTINES_TABLE, SLOTS_TABLE
from routinesync.errors import NetworkUnavailableError

from .events import ChangeEvent, ChangeKind

logger = logging.getLogger(__name__)

PHOENIX_TOPIC = "phoenix"

_CHANGE_KINDS: dict[str, ChangeKind] = {
    "INSERT": ChangeKind.CREATE,
    "UPDATE": ChangeKind.UPDATE,
    "DELETE": ChangeKind.DELETE,
}


class WebSocketPushChannel:
    """
    Listens for postgres_changes on the routine tables.

    Each events() call opens one socket, joins the channel and yields
    ChangeEvents until the socket closes. Transport failures surface as
    NetworkUnavailableError; RealtimeChangeListener handles reconnecting.
    """

    def __init__(
        self,
        url: str,
        *,
        channel: str = "routines",
        schema: str = "public",
        tables: Iterable[str] = (ROUTINES_TABLE, SLOTS_TABLE),
        heartbeat_interval_sec: float = 25.0,
        access_token: Optional[str] = None,
    ) -> None:
        self._url = url
        self._topic = f"realtime:{channel}"
        self._schema = schema
        self._tables = tuple(tables)
        self._heartbeat_interval_sec = heartbeat_interval_sec
        self._access_token = access_token
        self._refs = itertools.count(1)
        self._ws: Any = None

    @classmethod
    def for_project(cls, base_url: str, api_key: str, **kwargs: Any) -> WebSocketPushChannel:
        """Build the socket URL from the project's REST base URL."""
        parts = urlsplit(base_url.rstrip("/"))
        scheme = "wss" if parts.scheme == "https" else "ws"
        path = parts.path + "/realtime/v1/websocket"
        query = urlencode({"apikey": api_key, "vsn": "1.0.0"})
        return cls(urlunsplit((scheme, parts.netloc, path, query, "")), **kwargs)

    @property
    def topic(self) -> str:
        return self._topic

    def join_message(self) -> dict[str, Any]:
        config: dict[str, Any] = {
            "postgres_changes": [
                {"event": "*", "schema": self._schema, "table": table}
                for table in self._tables
            ],
        }
        payload: dict[str, Any] = {"config": config}
        if self._access_token:
            payload["access_token"] = self._access_token
        return self._message(self._topic, "phx_join", payload)

    def heartbeat_message(self) -> dict[str, Any]:
        return self._message(PHOENIX_TOPIC, "heartbeat", {})

    async def events(self) -> AsyncIterator[ChangeEvent]:
        try:
            ws = await websockets.connect(self._url)
        except (OSError, websockets.InvalidHandshake, asyncio.TimeoutError) as exc:
            raise NetworkUnavailableError(
                "Realtime connection failed",
                details={"topic": self._topic},
                cause=exc,
            ) from exc

        self._ws = ws
        heartbeat = asyncio.get_running_loop().create_task(self._heartbeat(ws))
        try:
            await ws.send(json.dumps(self.join_message()))
            logger.info("Joined realtime topic %s", self._topic)
            async for raw in ws:
                event = parse_message(_decode(raw))
                if event is not None:
                    yield event
        except websockets.ConnectionClosed as exc:
            raise NetworkUnavailableError(
                "Realtime connection closed",
                details={"topic": self._topic},
                cause=exc,
            ) from exc
        finally:
            heartbeat.cancel()
            try:
                await heartbeat
            except asyncio.CancelledError:
                pass
            await self.close()

    async def close(self) -> None:
        ws, self._ws = self._ws, None
        if ws is not None:
            await ws.close()

    async def _heartbeat(self, ws: Any) -> None:
        while True:
            await asyncio.sleep(self._heartbeat_interval_sec)
            await ws.send(json.dumps(self.heartbeat_message()))

    def _message(self, topic: str, event: str, payload: dict[str, Any]) -> dict[str, Any]:
        return {"topic": topic, "event": event, "payload": payload, "ref": str(next(self._refs))}


def parse_message(message: Any) -> Optional[ChangeEvent]:
    """
    Extract a ChangeEvent from one decoded Phoenix message.

    Returns None for replies, heartbeats, presence and anything malformed.
    """
    if not isinstance(message, dict) or message.get("event") != "postgres_changes":
        if isinstance(message, dict) and message.get("event") == "phx_reply":
            status = (message.get("payload") or {}).get("status")
            if status != "ok":
                logger.warning("Realtime reply with status %r on %s", status, message.get("topic"))
        return None

    data = (message.get("payload") or {}).get("data")
    if not isinstance(data, dict):
        return None

    kind = _CHANGE_KINDS.get(str(data.get("type", "")).upper())
    if kind is None:
        return None

    record = data.get("record") or data.get("old_record") or {}
    record_id = record.get("id") if isinstance(record, dict) else None
    return ChangeEvent(
        kind=kind,
        table=str(data.get("table", "")),
        record_id=None if record_id is None else str(record_id),
    )


def _decode(raw: Any) -> Any:
    try:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return json.loads(raw)
    except ValueError:
        logger.debug("Dropping undecodable realtime frame")
        return None
