import unittest

from routinesync.errors import LocalValidationError, StorageCorruptError
from routinesync.local import MemoryKeyValueStore
from routinesync.pending import DeleteRoutine, PendingActionQueue, UpdateRoutine


class FailingStore(MemoryKeyValueStore):
    def __init__(self) -> None:
        super().__init__()
        self.fail = False

    def set(self, key: str, value: bytes) -> None:
        if self.fail:
            raise OSError("disk full")
        super().set(key, value)


class TestPendingActionQueue(unittest.TestCase):
    def test_enqueue_assigns_fifo_seq(self) -> None:
        queue = PendingActionQueue(MemoryKeyValueStore())
        a = queue.enqueue(UpdateRoutine(routine_id="R1", updates={"name": "a"}))
        b = queue.enqueue(UpdateRoutine(routine_id="R1", updates={"name": "b"}))
        self.assertEqual((a.seq, b.seq), (0, 1))
        self.assertEqual([x.action_id for x in queue.drain()], [a.action_id, b.action_id])

    def test_entries_survive_restart(self) -> None:
        store = MemoryKeyValueStore()
        queue = PendingActionQueue(store)
        action = queue.enqueue(DeleteRoutine(routine_id="R1"))

        restarted = PendingActionQueue(store)
        entries = restarted.load()
        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0].action_id, action.action_id)

    def test_drain_does_not_remove_or_alias(self) -> None:
        queue = PendingActionQueue(MemoryKeyValueStore())
        queue.enqueue(DeleteRoutine(routine_id="R1"))
        drained = queue.drain()
        drained[0].attempts = 9
        self.assertEqual(len(queue), 1)
        self.assertEqual(queue.drain()[0].attempts, 0)

    def test_remove_and_update(self) -> None:
        store = MemoryKeyValueStore()
        queue = PendingActionQueue(store)
        action = queue.enqueue(DeleteRoutine(routine_id="R1"))

        entry = queue.drain()[0]
        entry.attempts = 1
        queue.update(entry)
        self.assertEqual(PendingActionQueue(store).drain()[0].attempts, 1)

        self.assertTrue(queue.remove(action.action_id))
        self.assertFalse(queue.remove(action.action_id))
        self.assertEqual(len(PendingActionQueue(store)), 0)

        with self.assertRaises(LocalValidationError):
            queue.update(entry)

    def test_duplicate_action_id_rejected(self) -> None:
        queue = PendingActionQueue(MemoryKeyValueStore())
        action = queue.enqueue(DeleteRoutine(routine_id="R1"))
        with self.assertRaises(LocalValidationError):
            queue.enqueue(DeleteRoutine(routine_id="R2", action_id=action.action_id))

    def test_corrupt_queue_starts_empty(self) -> None:
        store = MemoryKeyValueStore({"pending-actions": b"{broken"})
        queue = PendingActionQueue(store)
        with self.assertRaises(StorageCorruptError):
            queue.load()
        self.assertEqual(len(queue), 0)
        self.assertEqual(store.get("pending-actions.corrupt"), b"{broken")

    def test_lazy_load_tolerates_corruption(self) -> None:
        queue = PendingActionQueue(MemoryKeyValueStore({"pending-actions": b"[{}]"}))
        self.assertEqual(queue.drain(), [])
        queue.enqueue(DeleteRoutine(routine_id="R1"))
        self.assertEqual(len(queue), 1)

    def test_failed_write_is_typed_and_not_applied(self) -> None:
        store = FailingStore()
        queue = PendingActionQueue(store)
        kept = queue.enqueue(DeleteRoutine(routine_id="R1"))

        store.fail = True
        with self.assertRaises(StorageCorruptError) as ctx:
            queue.enqueue(DeleteRoutine(routine_id="R2"))
        self.assertIsInstance(ctx.exception.cause, OSError)
        with self.assertRaises(StorageCorruptError):
            queue.remove(kept.action_id)
        self.assertEqual([a.action_id for a in queue.drain()], [kept.action_id])

        store.fail = False
        self.assertEqual(len(PendingActionQueue(store)), 1)


if __name__ == "__main__":
    unittest.main()
