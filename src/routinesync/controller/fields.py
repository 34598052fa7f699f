"""Table and column definitions for the PostgREST routines API."""

from __future__ import annotations

ROUTINES_TABLE: str = "routines"
SLOTS_TABLE: str = "routine_slots"

# Column holding the client idempotency key (unique constraint on both tables).
CLIENT_REF_COLUMN: str = "client_ref"

SLOT_COLUMNS: str = (
    "id,"
    "routine_id,"
    "day_of_week,"
    "start_time,"
    "end_time,"
    "room_number,"
    "section,"
    "course_id,"
    "teacher_id,"
    "course_name,"
    "teacher_name,"
    "created_at"
)

ROUTINE_COLUMNS: str = (
    "id,"
    "name,"
    "description,"
    "semester,"
    "is_active,"
    "created_at,"
    "created_by"
)

ROUTINE_SELECT: str = f"{ROUTINE_COLUMNS},slots:{SLOTS_TABLE}({SLOT_COLUMNS})"
