"""Public realtime exports for routinesync."""

from __future__ import annotations

from .events import ChangeEvent, ChangeKind, PushChannel
from .listener import RealtimeChangeListener
from .websocket_channel import WebSocketPushChannel, parse_message

__all__ = [
    "ChangeKind",
    "ChangeEvent",
    "PushChannel",
    "RealtimeChangeListener",
    "WebSocketPushChannel",
    "parse_message",
]
