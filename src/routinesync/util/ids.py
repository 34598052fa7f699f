from __future__ import annotations

import uuid

TEMP_ROUTINE_PREFIX: str = "temp-"
TEMP_SLOT_PREFIX: str = "temp-slot-"


def new_uuid() -> str:
    """Generate a UUID4 string."""
    return str(uuid.uuid4())


def new_action_id() -> str:
    """Generate a new PendingAction ID."""
    return new_uuid()


def new_idempotency_key() -> str:
    """Generate the client reference sent with a create so replays can be deduplicated."""
    return new_uuid()


def new_temp_routine_id() -> str:
    """Generate a temporary id for a routine created while offline."""
    return f"{TEMP_ROUTINE_PREFIX}{new_uuid()}"


def new_temp_slot_id() -> str:
    """Generate a temporary id for a slot created while offline."""
    return f"{TEMP_SLOT_PREFIX}{new_uuid()}"


def is_temp_id(value: str | None) -> bool:
    """
    Return True if value was generated locally and has no server id yet.

    Note: TEMP_SLOT_PREFIX starts with TEMP_ROUTINE_PREFIX, so one check covers both.
    """
    return isinstance(value, str) and value.startswith(TEMP_ROUTINE_PREFIX)
