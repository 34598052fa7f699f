"""Pending action kinds and their tagged variants."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Optional, Union

from routinesync.models import (
    RoutineInput,
    SlotInput,
    input_to_dict,
    routine_input_from_dict,
    slot_input_from_dict,
)
from routinesync.util.ids import new_action_id, new_idempotency_key
from routinesync.util.time import now_utc, parse_rfc3339, to_rfc3339


class ActionKind(str, Enum):
    """Supported offline mutations."""

    CREATE_ROUTINE = "create-routine"
    UPDATE_ROUTINE = "update-routine"
    DELETE_ROUTINE = "delete-routine"
    ADD_SLOT = "add-routine-slot"
    UPDATE_SLOT = "update-routine-slot"
    DELETE_SLOT = "delete-routine-slot"


@dataclass(slots=True, kw_only=True)
class _ActionBase:
    """
    Bookkeeping shared by every queued action.

    seq is assigned by PendingActionQueue.enqueue() and defines replay order.
    idempotency_key travels with creates so the server can deduplicate replays.
    """

    kind: ClassVar[ActionKind]

    action_id: str = field(default_factory=new_action_id)
    seq: int = 0
    idempotency_key: str = field(default_factory=new_idempotency_key)
    created_at: datetime = field(default_factory=now_utc)

    attempts: int = 0
    next_attempt_at: Optional[datetime] = None
    last_error: Optional[str] = None
    exhausted: bool = False


@dataclass(slots=True, kw_only=True)
class CreateRoutine(_ActionBase):
    kind: ClassVar[ActionKind] = ActionKind.CREATE_ROUTINE

    local_id: str
    input: RoutineInput


@dataclass(slots=True, kw_only=True)
class UpdateRoutine(_ActionBase):
    kind: ClassVar[ActionKind] = ActionKind.UPDATE_ROUTINE

    routine_id: str
    updates: dict[str, Any]


@dataclass(slots=True, kw_only=True)
class DeleteRoutine(_ActionBase):
    kind: ClassVar[ActionKind] = ActionKind.DELETE_ROUTINE

    routine_id: str


@dataclass(slots=True, kw_only=True)
class AddSlot(_ActionBase):
    kind: ClassVar[ActionKind] = ActionKind.ADD_SLOT

    routine_id: str
    local_id: str
    input: SlotInput


@dataclass(slots=True, kw_only=True)
class UpdateSlot(_ActionBase):
    kind: ClassVar[ActionKind] = ActionKind.UPDATE_SLOT

    routine_id: str
    slot_id: str
    updates: dict[str, Any]


@dataclass(slots=True, kw_only=True)
class DeleteSlot(_ActionBase):
    kind: ClassVar[ActionKind] = ActionKind.DELETE_SLOT

    routine_id: str
    slot_id: str


PendingAction = Union[
    CreateRoutine,
    UpdateRoutine,
    DeleteRoutine,
    AddSlot,
    UpdateSlot,
    DeleteSlot,
]

ACTION_TYPES: dict[ActionKind, type] = {
    ActionKind.CREATE_ROUTINE: CreateRoutine,
    ActionKind.UPDATE_ROUTINE: UpdateRoutine,
    ActionKind.DELETE_ROUTINE: DeleteRoutine,
    ActionKind.ADD_SLOT: AddSlot,
    ActionKind.UPDATE_SLOT: UpdateSlot,
    ActionKind.DELETE_SLOT: DeleteSlot,
}


def entity_ids(action: PendingAction) -> set[str]:
    """
    Ids (as recorded, possibly temporary) whose replay order this action constrains.

    A slot action constrains its routine too: a slot cannot be added before the
    routine exists, and a routine delete must not overtake earlier slot edits.
    """
    if isinstance(action, CreateRoutine):
        return {action.local_id}
    if isinstance(action, (UpdateRoutine, DeleteRoutine)):
        return {action.routine_id}
    if isinstance(action, AddSlot):
        return {action.routine_id, action.local_id}
    if isinstance(action, (UpdateSlot, DeleteSlot)):
        return {action.routine_id, action.slot_id}
    raise TypeError(f"Unsupported action: {action!r}")


# ----------------------------
# Codec
# ----------------------------
def action_to_dict(action: PendingAction) -> dict[str, Any]:
    data: dict[str, Any] = {
        "kind": action.kind.value,
        "action_id": action.action_id,
        "seq": action.seq,
        "idempotency_key": action.idempotency_key,
        "created_at": to_rfc3339(action.created_at),
        "attempts": action.attempts,
        "next_attempt_at": (
            to_rfc3339(action.next_attempt_at) if action.next_attempt_at else None
        ),
        "last_error": action.last_error,
        "exhausted": action.exhausted,
    }

    if isinstance(action, CreateRoutine):
        data.update(local_id=action.local_id, input=input_to_dict(action.input))
    elif isinstance(action, UpdateRoutine):
        data.update(routine_id=action.routine_id, updates=dict(action.updates))
    elif isinstance(action, DeleteRoutine):
        data.update(routine_id=action.routine_id)
    elif isinstance(action, AddSlot):
        data.update(
            routine_id=action.routine_id,
            local_id=action.local_id,
            input=input_to_dict(action.input),
        )
    elif isinstance(action, UpdateSlot):
        data.update(
            routine_id=action.routine_id,
            slot_id=action.slot_id,
            updates=dict(action.updates),
        )
    elif isinstance(action, DeleteSlot):
        data.update(routine_id=action.routine_id, slot_id=action.slot_id)
    else:
        raise TypeError(f"Unsupported action: {action!r}")
    return data


def action_from_dict(data: dict[str, Any]) -> PendingAction:
    """Raises KeyError/ValueError/TypeError on malformed records."""
    kind = ActionKind(data["kind"])
    common: dict[str, Any] = {
        "action_id": str(data["action_id"]),
        "seq": int(data["seq"]),
        "idempotency_key": str(data["idempotency_key"]),
        "created_at": parse_rfc3339(data["created_at"]),
        "attempts": int(data.get("attempts", 0)),
        "next_attempt_at": (
            parse_rfc3339(data["next_attempt_at"]) if data.get("next_attempt_at") else None
        ),
        "last_error": data.get("last_error"),
        "exhausted": bool(data.get("exhausted", False)),
    }

    if kind is ActionKind.CREATE_ROUTINE:
        return CreateRoutine(
            local_id=str(data["local_id"]),
            input=routine_input_from_dict(_require_dict(data, "input")),
            **common,
        )
    if kind is ActionKind.UPDATE_ROUTINE:
        return UpdateRoutine(
            routine_id=str(data["routine_id"]),
            updates=_require_dict(data, "updates"),
            **common,
        )
    if kind is ActionKind.DELETE_ROUTINE:
        return DeleteRoutine(routine_id=str(data["routine_id"]), **common)
    if kind is ActionKind.ADD_SLOT:
        return AddSlot(
            routine_id=str(data["routine_id"]),
            local_id=str(data["local_id"]),
            input=slot_input_from_dict(_require_dict(data, "input")),
            **common,
        )
    if kind is ActionKind.UPDATE_SLOT:
        return UpdateSlot(
            routine_id=str(data["routine_id"]),
            slot_id=str(data["slot_id"]),
            updates=_require_dict(data, "updates"),
            **common,
        )
    if kind is ActionKind.DELETE_SLOT:
        return DeleteSlot(
            routine_id=str(data["routine_id"]),
            slot_id=str(data["slot_id"]),
            **common,
        )
    raise ValueError(f"Unsupported action kind: {kind}")


def _require_dict(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data[key]
    if not isinstance(value, dict):
        raise TypeError(f"{key} must be a dict")
    return dict(value)
