import unittest

import routinesync


class TestPublicApi(unittest.TestCase):
    def test_top_level_exports_exist(self) -> None:
        self.assertTrue(hasattr(routinesync, "SyncCoordinator"))
        self.assertTrue(hasattr(routinesync, "SyncConfig"))
        self.assertTrue(hasattr(routinesync, "ConnectivityMonitor"))
        self.assertTrue(hasattr(routinesync, "RealtimeChangeListener"))
        self.assertTrue(hasattr(routinesync, "RestRoutineController"))

        self.assertTrue(hasattr(routinesync, "LocalCache"))
        self.assertTrue(hasattr(routinesync, "PendingActionQueue"))
        self.assertTrue(hasattr(routinesync, "Routine"))
        self.assertTrue(hasattr(routinesync, "ReplayResult"))

        self.assertTrue(hasattr(routinesync, "RoutineSyncError"))
        self.assertTrue(hasattr(routinesync, "PartialSyncFailure"))

    def test___all___is_defined(self) -> None:
        self.assertTrue(hasattr(routinesync, "__all__"))
        self.assertIn("SyncCoordinator", routinesync.__all__)
        self.assertIn("RoutineSyncError", routinesync.__all__)
        for name in routinesync.__all__:
            self.assertTrue(hasattr(routinesync, name), name)


if __name__ == "__main__":
    unittest.main()
