import unittest
from datetime import datetime, timezone

from routinesync.errors import StorageCorruptError
from routinesync.local import LocalCache, MemoryKeyValueStore, decode_collection, encode_collection
from routinesync.models import Routine, RoutineSlot


def _routines() -> list[Routine]:
    dt = datetime(2025, 3, 1, 9, 30, 0, tzinfo=timezone.utc)
    return [
        Routine(
            id="temp-1",
            name="Offline draft",
            semester="Fall",
            created_at=dt,
            slots=[
                RoutineSlot(
                    id="temp-slot-1",
                    routine_id="temp-1",
                    day_of_week="Sunday",
                    start_time="08:00",
                    end_time="09:00",
                )
            ],
            version=2,
        ),
        Routine(id="R1", name="Spring", semester="Spring", description="d", is_active=False),
    ]


class TestLocalCache(unittest.TestCase):
    def test_write_then_read_is_identical(self) -> None:
        cache = LocalCache(MemoryKeyValueStore())
        cache.write(_routines())
        self.assertEqual(cache.read(), _routines())

    def test_missing_is_empty(self) -> None:
        self.assertEqual(LocalCache(MemoryKeyValueStore()).read_strict(), [])

    def test_corrupt_bytes_read_as_empty_and_are_kept(self) -> None:
        store = MemoryKeyValueStore({"routines": b"\x00not json"})
        cache = LocalCache(store)

        self.assertEqual(cache.read(), [])
        self.assertEqual(store.get("routines.corrupt"), b"\x00not json")

    def test_read_strict_raises(self) -> None:
        cache = LocalCache(MemoryKeyValueStore({"routines": b'{"format": 99}'}))
        with self.assertRaises(StorageCorruptError) as ctx:
            cache.read_strict()
        self.assertEqual(ctx.exception.details["key"], "routines")

    def test_custom_key_and_clear(self) -> None:
        store = MemoryKeyValueStore()
        cache = LocalCache(store, key="other")
        cache.write(_routines())
        self.assertIsNotNone(store.get("other"))
        cache.clear()
        self.assertIsNone(store.get("other"))


class TestCollectionCodec(unittest.TestCase):
    def test_rejects_duplicate_ids(self) -> None:
        raw = encode_collection([Routine(id="R1", name="a", semester="s")] * 2)
        with self.assertRaises(ValueError):
            decode_collection(raw)

    def test_rejects_wrong_shape(self) -> None:
        with self.assertRaises(TypeError):
            decode_collection(b'{"format": 1, "routines": {}}')


if __name__ == "__main__":
    unittest.main()
