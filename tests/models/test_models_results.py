import unittest

from routinesync.errors import PartialSyncFailure
from routinesync.models import ActionResult, ReplayResult, Routine, SyncState


class TestResults(unittest.TestCase):
    def test_action_result_defaults(self) -> None:
        r = ActionResult(action_id="a1", seq=0, kind="create-routine", status="success")
        self.assertEqual(r.action_id, "a1")
        self.assertIsNone(r.error_type)
        self.assertIsNone(r.server_id)

    def test_replay_result_defaults(self) -> None:
        r1 = ActionResult(action_id="a1", seq=0, kind="delete-routine", status="success")
        rr = ReplayResult(status="success", results=[r1])
        self.assertTrue(rr.ok)
        self.assertEqual(rr.id_map, {})
        self.assertEqual(rr.remaining, 0)
        self.assertIsNone(rr.error)

    def test_partial_replay_is_not_ok(self) -> None:
        rr = ReplayResult(status="partial", error=PartialSyncFailure("x", failed_action_ids=["a"]))
        self.assertFalse(rr.ok)
        self.assertEqual(rr.error.failed_action_ids, ["a"])


class TestSyncState(unittest.TestCase):
    def test_defaults(self) -> None:
        state = SyncState()
        self.assertEqual(state.routines, ())
        self.assertFalse(state.is_loading)
        self.assertFalse(state.is_offline)
        self.assertEqual(state.pending_count, 0)

    def test_get_by_id(self) -> None:
        state = SyncState(routines=(Routine(id="R1", name="n", semester="s"),))
        self.assertEqual(state.get("R1").name, "n")
        self.assertIsNone(state.get("missing"))


if __name__ == "__main__":
    unittest.main()
