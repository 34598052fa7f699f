import asyncio
import unittest

from routinesync.connectivity import ConnectivityMonitor, HeartbeatProbe


class TestHeartbeatProbe(unittest.IsolatedAsyncioTestCase):
    async def test_failed_ping_marks_offline(self) -> None:
        monitor = ConnectivityMonitor()

        async def ping() -> bool:
            return False

        probe = HeartbeatProbe(monitor, ping)
        self.assertFalse(await probe.check_once())
        self.assertFalse(monitor.is_online())

    async def test_ping_exception_and_timeout_count_as_failure(self) -> None:
        monitor = ConnectivityMonitor()

        async def broken() -> bool:
            raise OSError("unreachable")

        async def slow() -> bool:
            await asyncio.sleep(1)
            return True

        self.assertFalse(await HeartbeatProbe(monitor, broken).check_once())
        self.assertFalse(await HeartbeatProbe(monitor, slow, timeout_sec=0.01).check_once())

    async def test_recovery_marks_online(self) -> None:
        monitor = ConnectivityMonitor()
        monitor.report_heartbeat(False)

        async def ping() -> bool:
            return True

        await HeartbeatProbe(monitor, ping).check_once()
        self.assertTrue(monitor.is_online())

    async def test_start_and_stop(self) -> None:
        monitor = ConnectivityMonitor()
        calls: list[int] = []

        async def ping() -> bool:
            calls.append(1)
            return True

        probe = HeartbeatProbe(monitor, ping, interval_sec=0.01)
        probe.start()
        self.assertTrue(probe.running)
        await asyncio.sleep(0.05)
        await probe.stop()
        self.assertFalse(probe.running)
        self.assertGreaterEqual(len(calls), 2)

    def test_rejects_non_positive_interval(self) -> None:
        with self.assertRaises(ValueError):
            HeartbeatProbe(ConnectivityMonitor(), lambda: None, interval_sec=0)  # type: ignore[arg-type]


if __name__ == "__main__":
    unittest.main()
