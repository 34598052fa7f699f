from .ids import (
    TEMP_ROUTINE_PREFIX,
    TEMP_SLOT_PREFIX,
    is_temp_id,
    new_action_id,
    new_idempotency_key,
    new_temp_routine_id,
    new_temp_slot_id,
    new_uuid,
)
from .time import normalize_dt, now_utc, parse_rfc3339, to_rfc3339

__all__ = [
    "TEMP_ROUTINE_PREFIX",
    "TEMP_SLOT_PREFIX",
    "new_uuid",
    "new_action_id",
    "new_idempotency_key",
    "new_temp_routine_id",
    "new_temp_slot_id",
    "is_temp_id",
    "now_utc",
    "parse_rfc3339",
    "to_rfc3339",
    "normalize_dt",
]
