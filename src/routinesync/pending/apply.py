"""Apply PendingActions to an in-memory snapshot (optimistic view)."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from routinesync.local.snapshot import RoutineSnapshot
from routinesync.models import Routine, RoutineInput, RoutineSlot, SlotInput
from routinesync.util.time import now_utc

from .actions import (
    AddSlot,
    CreateRoutine,
    DeleteRoutine,
    DeleteSlot,
    PendingAction,
    UpdateRoutine,
    UpdateSlot,
)

logger = logging.getLogger(__name__)

Resolver = Callable[[str], str]


def routine_from_input(
    routine_id: str,
    value: RoutineInput,
    *,
    created_at: Optional[datetime] = None,
    created_by: Optional[str] = None,
) -> Routine:
    return Routine(
        id=routine_id,
        name=value.name,
        semester=value.semester,
        description=value.description,
        is_active=value.is_active,
        created_at=created_at or now_utc(),
        created_by=created_by,
        slots=[],
    )


def slot_from_input(
    slot_id: str,
    routine_id: str,
    value: SlotInput,
    *,
    created_at: Optional[datetime] = None,
) -> RoutineSlot:
    return RoutineSlot(
        id=slot_id,
        routine_id=routine_id,
        day_of_week=value.day_of_week,
        start_time=value.start_time,
        end_time=value.end_time,
        room_number=value.room_number,
        section=value.section,
        course_id=value.course_id,
        teacher_id=value.teacher_id,
        course_name=value.course_name,
        teacher_name=value.teacher_name,
        created_at=created_at or now_utc(),
    )


def apply_action(
    snapshot: RoutineSnapshot,
    action: PendingAction,
    resolve: Resolver = lambda local_id: local_id,
) -> bool:
    """
    Apply action to snapshot in place.

    Ids recorded in the action are passed through resolve() first, so actions
    queued against temporary ids land on reconciled routines.

    Returns:
        False if the action had nothing to act on (target missing, or a create
        whose row is already present); the snapshot is unchanged in that case.
    """
    if isinstance(action, CreateRoutine):
        routine_id = resolve(action.local_id)
        if snapshot.has(routine_id):
            return False
        snapshot.insert_front(
            routine_from_input(routine_id, action.input, created_at=action.created_at)
        )
        return True

    if isinstance(action, UpdateRoutine):
        routine_id = resolve(action.routine_id)
        if not snapshot.has(routine_id):
            return False
        snapshot.update_fields(routine_id, action.updates)
        snapshot.bump_version(routine_id)
        return True

    if isinstance(action, DeleteRoutine):
        routine_id = resolve(action.routine_id)
        if not snapshot.has(routine_id):
            return False
        snapshot.remove(routine_id)
        return True

    if isinstance(action, AddSlot):
        routine_id = resolve(action.routine_id)
        slot_id = resolve(action.local_id)
        if not snapshot.has(routine_id) or snapshot.has_slot(routine_id, slot_id):
            return False
        snapshot.append_slot(
            routine_id,
            slot_from_input(slot_id, routine_id, action.input, created_at=action.created_at),
        )
        snapshot.bump_version(routine_id)
        return True

    if isinstance(action, UpdateSlot):
        routine_id = resolve(action.routine_id)
        slot_id = resolve(action.slot_id)
        if not snapshot.has_slot(routine_id, slot_id):
            return False
        snapshot.update_slot_fields(routine_id, slot_id, action.updates)
        snapshot.bump_version(routine_id)
        return True

    if isinstance(action, DeleteSlot):
        routine_id = resolve(action.routine_id)
        slot_id = resolve(action.slot_id)
        if not snapshot.has_slot(routine_id, slot_id):
            return False
        snapshot.remove_slot(routine_id, slot_id)
        snapshot.bump_version(routine_id)
        return True

    raise TypeError(f"Unsupported action: {action!r}")


def rebase(
    snapshot: RoutineSnapshot,
    actions: list[PendingAction],
    resolve: Resolver = lambda local_id: local_id,
) -> int:
    """
    Re-apply still-queued actions on top of a freshly fetched snapshot.

    Returns the number of actions that changed the snapshot.
    """
    applied = 0
    for action in actions:
        if apply_action(snapshot, action, resolve):
            applied += 1
        else:
            logger.debug("Rebase skipped %s %s", action.kind.value, action.action_id)
    return applied
