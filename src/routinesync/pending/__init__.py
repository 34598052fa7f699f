"""Public pending-action exports for routinesync."""

from __future__ import annotations

from .actions import (
    ACTION_TYPES,
    ActionKind,
    AddSlot,
    CreateRoutine,
    DeleteRoutine,
    DeleteSlot,
    PendingAction,
    UpdateRoutine,
    UpdateSlot,
    action_from_dict,
    action_to_dict,
    entity_ids,
)
from .apply import apply_action, rebase, routine_from_input, slot_from_input
from .backoff import ReplayRetryPolicy
from .queue import PendingActionQueue

__all__ = [
    "ActionKind",
    "PendingAction",
    "CreateRoutine",
    "UpdateRoutine",
    "DeleteRoutine",
    "AddSlot",
    "UpdateSlot",
    "DeleteSlot",
    "ACTION_TYPES",
    "action_to_dict",
    "action_from_dict",
    "entity_ids",
    "apply_action",
    "rebase",
    "routine_from_input",
    "slot_from_input",
    "ReplayRetryPolicy",
    "PendingActionQueue",
]
