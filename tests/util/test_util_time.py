import unittest
from datetime import datetime, timezone

from routinesync.util.time import normalize_dt, now_utc, parse_rfc3339, to_rfc3339


class TestUtilTime(unittest.TestCase):
    def test_now_utc_is_tz_aware(self) -> None:
        dt = now_utc()
        self.assertEqual(dt.tzinfo, timezone.utc)

    def test_normalize_dt_rejects_naive(self) -> None:
        with self.assertRaises(ValueError):
            normalize_dt(datetime(2025, 1, 1, 12, 0, 0))

    def test_parse_rfc3339_z(self) -> None:
        dt = parse_rfc3339("2025-01-01T12:34:56Z")
        self.assertEqual(dt, datetime(2025, 1, 1, 12, 34, 56, tzinfo=timezone.utc))

    def test_parse_rfc3339_offset_converts_to_utc(self) -> None:
        dt = parse_rfc3339("2025-01-01T12:34:56+09:00")
        self.assertEqual(dt.tzinfo, timezone.utc)
        self.assertEqual(dt, datetime(2025, 1, 1, 3, 34, 56, tzinfo=timezone.utc))

    def test_parse_rfc3339_naive_is_utc(self) -> None:
        dt = parse_rfc3339("2025-01-01T12:34:56.5")
        self.assertEqual(dt, datetime(2025, 1, 1, 12, 34, 56, 500000, tzinfo=timezone.utc))

    def test_parse_rfc3339_postgres_text(self) -> None:
        dt = parse_rfc3339("2025-01-01 12:34:56.12+09")
        self.assertEqual(dt, datetime(2025, 1, 1, 3, 34, 56, 120000, tzinfo=timezone.utc))

    def test_parse_rfc3339_compact_offset(self) -> None:
        dt = parse_rfc3339("2025-01-01T12:00:00-0530")
        self.assertEqual(dt, datetime(2025, 1, 1, 17, 30, 0, tzinfo=timezone.utc))

    def test_parse_rfc3339_truncates_nanoseconds(self) -> None:
        dt = parse_rfc3339("2025-01-01T00:00:00.123456789Z")
        self.assertEqual(dt.microsecond, 123456)

    def test_parse_rfc3339_rejects_empty(self) -> None:
        with self.assertRaises(ValueError):
            parse_rfc3339("")

    def test_parse_rfc3339_rejects_garbage(self) -> None:
        with self.assertRaises(ValueError):
            parse_rfc3339("yesterday")

    def test_to_rfc3339_keeps_microseconds(self) -> None:
        dt = datetime(2025, 1, 1, 0, 0, 0, 123, tzinfo=timezone.utc)
        s = to_rfc3339(dt)
        self.assertEqual(s, "2025-01-01T00:00:00.000123Z")
        self.assertEqual(parse_rfc3339(s), dt)


if __name__ == "__main__":
    unittest.main()
