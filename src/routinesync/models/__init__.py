"""Public model exports for routinesync."""

from __future__ import annotations

from .results import ActionResult, ActionStatus, ReplayResult, ReplayStatus
from .routine import (
    ROUTINE_UPDATABLE_FIELDS,
    SLOT_UPDATABLE_FIELDS,
    Routine,
    RoutineInput,
    RoutineSlot,
    SlotInput,
    input_to_dict,
    routine_from_dict,
    routine_input_from_dict,
    routine_to_dict,
    slot_from_dict,
    slot_input_from_dict,
    slot_to_dict,
)
from .state import SyncState

__all__ = [
    "Routine",
    "RoutineSlot",
    "RoutineInput",
    "SlotInput",
    "ROUTINE_UPDATABLE_FIELDS",
    "SLOT_UPDATABLE_FIELDS",
    "input_to_dict",
    "routine_to_dict",
    "routine_from_dict",
    "routine_input_from_dict",
    "slot_to_dict",
    "slot_from_dict",
    "slot_input_from_dict",
    "ActionStatus",
    "ReplayStatus",
    "ActionResult",
    "ReplayResult",
    "SyncState",
]
