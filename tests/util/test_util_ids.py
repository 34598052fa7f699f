import unittest
import uuid

from routinesync.util.ids import (
    TEMP_ROUTINE_PREFIX,
    TEMP_SLOT_PREFIX,
    is_temp_id,
    new_action_id,
    new_idempotency_key,
    new_temp_routine_id,
    new_temp_slot_id,
    new_uuid,
)


class TestUtilIds(unittest.TestCase):
    def test_new_uuid_is_valid_uuid4(self) -> None:
        value = new_uuid()
        parsed = uuid.UUID(value)
        self.assertEqual(str(parsed), value)
        self.assertEqual(parsed.version, 4)

    def test_action_and_idempotency_ids_are_uuid4(self) -> None:
        self.assertEqual(uuid.UUID(new_action_id()).version, 4)
        self.assertEqual(uuid.UUID(new_idempotency_key()).version, 4)

    def test_temp_ids_have_prefixes(self) -> None:
        self.assertTrue(new_temp_routine_id().startswith(TEMP_ROUTINE_PREFIX))
        self.assertTrue(new_temp_slot_id().startswith(TEMP_SLOT_PREFIX))

    def test_is_temp_id(self) -> None:
        self.assertTrue(is_temp_id(new_temp_routine_id()))
        self.assertTrue(is_temp_id(new_temp_slot_id()))
        self.assertFalse(is_temp_id(new_uuid()))
        self.assertFalse(is_temp_id(None))

    def test_ids_are_unique(self) -> None:
        values = {new_temp_routine_id(), new_temp_routine_id(), new_temp_routine_id()}
        self.assertEqual(len(values), 3)


if __name__ == "__main__":
    unittest.main()
