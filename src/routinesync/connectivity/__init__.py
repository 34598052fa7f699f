"""Connectivity exports for routinesync."""

from __future__ import annotations

from .heartbeat import HeartbeatProbe
from .monitor import (
    ConnectivityEvent,
    ConnectivityListener,
    ConnectivityMonitor,
    PlatformConnectivitySignal,
)

__all__ = [
    "ConnectivityEvent",
    "ConnectivityListener",
    "ConnectivityMonitor",
    "PlatformConnectivitySignal",
    "HeartbeatProbe",
]
