"""RealtimeChangeListener: turns remote change notifications into refreshes."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from routinesync.connectivity import ConnectivityMonitor

from .events import ChangeEvent, PushChannel

logger = logging.getLogger(__name__)

ChannelFactory = Callable[[], PushChannel]
Refresh = Callable[[], Awaitable[Any]]


class RealtimeChangeListener:
    """
    Subscribes to a push channel and asks for a refresh on every change.

    - Events that arrive while offline are dropped; the reconnect sync covers them.
    - Refresh requests made during an in-flight refresh collapse into one
      follow-up refresh.
    - When the channel fails or ends, a new one is opened after
      reconnect_delay_sec, for as long as the listener runs.
    """

    def __init__(
        self,
        channel_factory: ChannelFactory,
        monitor: ConnectivityMonitor,
        refresh: Refresh,
        *,
        reconnect_delay_sec: float = 5.0,
    ) -> None:
        self._channel_factory = channel_factory
        self._monitor = monitor
        self._refresh = refresh
        self._reconnect_delay_sec = reconnect_delay_sec

        self._task: Optional[asyncio.Task[None]] = None
        self._refresh_task: Optional[asyncio.Task[None]] = None
        self._refresh_again = False
        self._channel: Optional[PushChannel] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        tasks = [t for t in (self._task, self._refresh_task) if t is not None]
        self._task = None
        self._refresh_task = None
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass

    def handle_event(self, event: ChangeEvent) -> None:
        if not self._monitor.is_online():
            logger.debug("Ignoring %s on %s while offline", event.kind.value, event.table)
            return
        logger.debug("Remote %s on %s (%s)", event.kind.value, event.table, event.record_id)
        self.request_refresh()

    def request_refresh(self) -> None:
        if self._refresh_task is not None and not self._refresh_task.done():
            self._refresh_again = True
            return
        self._refresh_again = False
        self._refresh_task = asyncio.get_running_loop().create_task(self._refresh_loop())

    async def wait_idle(self) -> None:
        """Wait for the current refresh (and its follow-up) to finish."""
        while self._refresh_task is not None and not self._refresh_task.done():
            await asyncio.shield(self._refresh_task)

    async def _refresh_loop(self) -> None:
        while True:
            self._refresh_again = False
            try:
                await self._refresh()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Refresh after remote change failed")
            if not self._refresh_again:
                return

    async def _run(self) -> None:
        while True:
            channel = self._channel_factory()
            self._channel = channel
            try:
                async for event in channel.events():
                    self.handle_event(event)
                logger.info("Realtime channel ended; reconnecting")
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning("Realtime channel failed: %s", exc)
            finally:
                self._channel = None
                await channel.close()
            await asyncio.sleep(self._reconnect_delay_sec)
