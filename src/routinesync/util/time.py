from __future__ import annotations

import re
from datetime import datetime, timezone

# Postgres timestamptz text: "2025-01-01 12:34:56.12+00" or ISO with "T" / "Z".
_PG_TIMESTAMP_RE = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})[T ]"
    r"(?P<time>\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<fraction>\d+))?"
    r"(?P<offset>Z|[+-]\d{2}(?::?\d{2})?)?$"
)


def now_utc() -> datetime:
    """Return current time as tz-aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_rfc3339(value: str) -> datetime:
    """
    Parse a server or cache timestamp into a tz-aware UTC datetime.

    Accepts RFC3339 and the Postgres text forms PostgREST and Realtime emit:
      - 2025-01-01T12:34:56Z
      - 2025-01-01T12:34:56.123456+00:00
      - 2025-01-01 12:34:56.12+09
      - 2025-01-01T12:34:56 (timestamp without time zone, taken as UTC)
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError("timestamp value must be a non-empty string")

    m = _PG_TIMESTAMP_RE.match(value.strip())
    if m is None:
        raise ValueError(f"invalid timestamp: {value!r}")

    # fromisoformat on 3.10 wants exactly 6 fraction digits and a +HH:MM offset.
    text = f"{m['date']}T{m['time']}"
    if m["fraction"]:
        text += "." + m["fraction"][:6].ljust(6, "0")
    text += _normalize_offset(m["offset"])

    return datetime.fromisoformat(text).astimezone(timezone.utc)


def to_rfc3339(dt: datetime) -> str:
    """Convert tz-aware datetime to RFC3339 (UTC, with 'Z'), keeping microseconds."""
    dt = normalize_dt(dt).astimezone(timezone.utc)
    return dt.isoformat(timespec="microseconds").replace("+00:00", "Z")


def normalize_dt(dt: datetime) -> datetime:
    """Ensure datetime is tz-aware. Raises if naive."""
    if not isinstance(dt, datetime):
        raise TypeError("dt must be a datetime")
    if dt.tzinfo is None:
        raise ValueError("naive datetime is not allowed; timezone-aware required")
    return dt


def _normalize_offset(offset: str | None) -> str:
    if not offset or offset == "Z":
        return "+00:00"
    digits = offset[1:].replace(":", "")
    return f"{offset[0]}{digits[:2]}:{digits[2:4] or '00'}"
