import unittest
from datetime import datetime, timedelta, timezone

from routinesync.errors import NetworkUnavailableError, RemoteRejectedError
from routinesync.pending import DeleteRoutine, ReplayRetryPolicy

NOW = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def _mid(low: float, high: float) -> float:
    return 1.0


class TestReplayRetryPolicy(unittest.TestCase):
    def test_delay_doubles_and_caps(self) -> None:
        policy = ReplayRetryPolicy()
        delays = [policy.delay_for(n, rand=_mid) for n in range(0, 7)]
        self.assertEqual(delays, [0.0, 1.0, 2.0, 4.0, 8.0, 10.0, 10.0])

    def test_jitter_range(self) -> None:
        policy = ReplayRetryPolicy()
        self.assertAlmostEqual(policy.delay_for(1, rand=lambda lo, hi: lo), 0.85)
        self.assertAlmostEqual(policy.delay_for(1, rand=lambda lo, hi: hi), 1.15)

    def test_rejects_bad_bounds(self) -> None:
        with self.assertRaises(ValueError):
            ReplayRetryPolicy(max_attempts=0)
        with self.assertRaises(ValueError):
            ReplayRetryPolicy(base_delay_sec=5.0, max_delay_sec=1.0)

    def test_network_failure_schedules_retry(self) -> None:
        policy = ReplayRetryPolicy()
        action = DeleteRoutine(routine_id="R1")
        policy.record_failure(action, NetworkUnavailableError("down"), NOW, rand=_mid)

        self.assertEqual(action.attempts, 1)
        self.assertEqual(action.next_attempt_at, NOW + timedelta(seconds=1))
        self.assertFalse(action.exhausted)
        self.assertIn("NetworkUnavailableError", action.last_error)
        self.assertFalse(policy.is_due(action, NOW))
        self.assertTrue(policy.is_due(action, NOW + timedelta(seconds=1)))
        self.assertTrue(policy.is_due(action, NOW, force=True))

    def test_exhausted_after_max_attempts(self) -> None:
        policy = ReplayRetryPolicy(max_attempts=2)
        action = DeleteRoutine(routine_id="R1")
        policy.record_failure(action, NetworkUnavailableError("down"), NOW, rand=_mid)
        policy.record_failure(action, NetworkUnavailableError("down"), NOW, rand=_mid)

        self.assertTrue(action.exhausted)
        self.assertFalse(policy.is_due(action, NOW + timedelta(days=1)))

    def test_rejection_exhausts_immediately(self) -> None:
        policy = ReplayRetryPolicy()
        action = DeleteRoutine(routine_id="R1")
        policy.record_failure(action, RemoteRejectedError("no"), NOW)
        self.assertTrue(action.exhausted)
        self.assertIsNone(action.next_attempt_at)

    def test_reset(self) -> None:
        policy = ReplayRetryPolicy()
        action = DeleteRoutine(routine_id="R1", attempts=5, exhausted=True)
        policy.reset(action)
        self.assertEqual(action.attempts, 0)
        self.assertTrue(policy.is_due(action, NOW))


if __name__ == "__main__":
    unittest.main()
