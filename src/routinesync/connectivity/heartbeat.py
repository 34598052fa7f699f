"""Application-level heartbeat feeding the ConnectivityMonitor."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from .monitor import ConnectivityMonitor

logger = logging.getLogger(__name__)


class HeartbeatProbe:
    """
    Periodically calls ping() and reports the outcome to the monitor.

    ping is any coroutine function returning True when the remote service is
    reachable (RemoteDataService.ping fits).
    """

    def __init__(
        self,
        monitor: ConnectivityMonitor,
        ping: Callable[[], Awaitable[bool]],
        *,
        interval_sec: float = 30.0,
        timeout_sec: float = 5.0,
    ) -> None:
        if interval_sec <= 0:
            raise ValueError("interval_sec must be > 0")
        self._monitor = monitor
        self._ping = ping
        self._interval_sec = interval_sec
        self._timeout_sec = timeout_sec
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def check_once(self) -> bool:
        """Run one probe and report it. Never raises (except cancellation)."""
        try:
            ok = bool(await asyncio.wait_for(self._ping(), timeout=self._timeout_sec))
        except asyncio.TimeoutError:
            logger.debug("Heartbeat timed out")
            ok = False
        except Exception as exc:
            logger.debug("Heartbeat failed: %s", exc)
            ok = False
        self._monitor.report_heartbeat(ok)
        return ok

    async def _run(self) -> None:
        while True:
            await self.check_once()
            await asyncio.sleep(self._interval_sec)
