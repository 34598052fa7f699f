import unittest

from routinesync.config import SyncConfig
from routinesync.errors import InvalidStateError


class TestSyncConfig(unittest.TestCase):
    def test_defaults(self) -> None:
        config = SyncConfig()
        self.assertEqual(config.max_replay_attempts, 5)
        self.assertEqual(config.replay_base_delay_sec, 1.0)
        self.assertEqual(config.replay_max_delay_sec, 10.0)

    def test_retry_policy_follows_config(self) -> None:
        policy = SyncConfig(max_replay_attempts=3, replay_base_delay_sec=2.0).retry_policy()
        self.assertEqual(policy.max_attempts, 3)
        self.assertEqual(policy.base_delay_sec, 2.0)
        self.assertEqual(policy.max_delay_sec, 10.0)

    def test_rejects_bad_values(self) -> None:
        with self.assertRaises(InvalidStateError):
            SyncConfig(max_replay_attempts=0)
        with self.assertRaises(InvalidStateError):
            SyncConfig(http_timeout_sec=-1.0)
        with self.assertRaises(InvalidStateError):
            SyncConfig(cache_key="same", queue_key="same")
        with self.assertRaises(InvalidStateError):
            SyncConfig(aliases_key=" ")

    def test_from_env(self) -> None:
        config = SyncConfig.from_env(
            environ={
                "ROUTINESYNC_MAX_REPLAY_ATTEMPTS": "3",
                "ROUTINESYNC_HTTP_TIMEOUT_SEC": "2.5",
                "ROUTINESYNC_CACHE_KEY": "routines-v2",
                "ROUTINESYNC_QUEUE_KEY": "",
            }
        )
        self.assertEqual(config.max_replay_attempts, 3)
        self.assertEqual(config.http_timeout_sec, 2.5)
        self.assertEqual(config.cache_key, "routines-v2")
        self.assertEqual(config.queue_key, "pending-actions")

    def test_from_env_rejects_garbage(self) -> None:
        with self.assertRaises(InvalidStateError):
            SyncConfig.from_env(environ={"ROUTINESYNC_HTTP_MAX_RETRIES": "many"})


if __name__ == "__main__":
    unittest.main()
