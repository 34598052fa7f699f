"""Online/offline status tracking."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConnectivityEvent:
    """Effective connectivity changed. source names the input that caused it."""

    online: bool
    source: str


ConnectivityListener = Callable[[ConnectivityEvent], None]
Unsubscribe = Callable[[], None]


@runtime_checkable
class PlatformConnectivitySignal(Protocol):
    """Platform network signal: calls back with True (online) or False (offline)."""

    def subscribe(self, callback: Callable[[bool], None]) -> Unsubscribe: ...


class ConnectivityMonitor:
    """
    Pure signal source for connectivity. No network I/O of its own.

    Effective status:
        - the application override, when one is set;
        - otherwise platform status AND the last heartbeat result.

    Listeners only hear about effective transitions.
    """

    def __init__(self, *, platform_online: bool = True) -> None:
        self._platform_online = platform_online
        self._heartbeat_ok = True
        self._override: Optional[bool] = None
        self._online = self._compute()
        self._listeners: list[ConnectivityListener] = []
        self._detach: list[Unsubscribe] = []

    def is_online(self) -> bool:
        return self._online

    @property
    def override(self) -> Optional[bool]:
        return self._override

    def subscribe(self, listener: ConnectivityListener) -> Unsubscribe:
        """Register listener; the returned callable removes exactly this registration."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return unsubscribe

    def attach(self, signal: PlatformConnectivitySignal) -> None:
        """Follow a platform signal until close()."""
        self._detach.append(signal.subscribe(self.set_platform_status))

    def close(self) -> None:
        for detach in self._detach:
            detach()
        self._detach.clear()

    # ----------------------------
    # Inputs
    # ----------------------------
    def set_platform_status(self, online: bool) -> None:
        self._platform_online = bool(online)
        self._recompute("platform")

    def report_heartbeat(self, ok: bool) -> None:
        self._heartbeat_ok = bool(ok)
        self._recompute("heartbeat")

    def set_override(self, online: Optional[bool]) -> None:
        """Force online/offline (True/False), or None to follow the signals again."""
        self._override = None if online is None else bool(online)
        self._recompute("override")

    # ----------------------------
    # Internals
    # ----------------------------
    def _compute(self) -> bool:
        if self._override is not None:
            return self._override
        return self._platform_online and self._heartbeat_ok

    def _recompute(self, source: str) -> None:
        online = self._compute()
        if online == self._online:
            return
        self._online = online
        logger.info("Connectivity changed to %s (%s)", "online" if online else "offline", source)
        self._emit(ConnectivityEvent(online=online, source=source))

    def _emit(self, event: ConnectivityEvent) -> None:
        # Iterate over a copy: listeners may unsubscribe while being notified.
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Connectivity listener %r failed", listener)
