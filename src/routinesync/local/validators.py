"""Strict validation helpers for local mutations."""

from __future__ import annotations

from typing import Any

from routinesync.errors import LocalValidationError
from routinesync.models import (
    ROUTINE_UPDATABLE_FIELDS,
    SLOT_UPDATABLE_FIELDS,
    RoutineInput,
    SlotInput,
)

from .snapshot import RoutineSnapshot

_SLOT_REQUIRED: tuple[str, ...] = ("day_of_week", "start_time", "end_time")
_ROUTINE_REQUIRED: tuple[str, ...] = ("name", "semester")


def validate_routine_exists(snapshot: RoutineSnapshot, routine_id: str) -> None:
    if not snapshot.has(routine_id):
        raise LocalValidationError(f"Routine does not exist: {routine_id}")


def validate_slot_exists(snapshot: RoutineSnapshot, routine_id: str, slot_id: str) -> None:
    validate_routine_exists(snapshot, routine_id)
    if not snapshot.has_slot(routine_id, slot_id):
        raise LocalValidationError(
            f"Slot does not exist: {slot_id}",
            details={"routine_id": routine_id},
        )


def validate_routine_input(value: RoutineInput) -> None:
    if not isinstance(value, RoutineInput):
        raise LocalValidationError("routine input must be a RoutineInput")
    for name in _ROUTINE_REQUIRED:
        _require_text(getattr(value, name), name)


def validate_slot_input(value: SlotInput) -> None:
    if not isinstance(value, SlotInput):
        raise LocalValidationError("slot input must be a SlotInput")
    for name in _SLOT_REQUIRED:
        _require_text(getattr(value, name), name)


def validate_routine_updates(updates: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of updates restricted to known fields. Rejects unknown keys."""
    cleaned = _validate_updates(updates, ROUTINE_UPDATABLE_FIELDS)
    for name in _ROUTINE_REQUIRED:
        if name in cleaned:
            _require_text(cleaned[name], name)
    if "is_active" in cleaned and not isinstance(cleaned["is_active"], bool):
        raise LocalValidationError("is_active must be a bool")
    return cleaned


def validate_slot_updates(updates: dict[str, Any]) -> dict[str, Any]:
    cleaned = _validate_updates(updates, SLOT_UPDATABLE_FIELDS)
    for name in _SLOT_REQUIRED:
        if name in cleaned:
            _require_text(cleaned[name], name)
    return cleaned


def _validate_updates(updates: dict[str, Any], allowed: frozenset[str]) -> dict[str, Any]:
    if not isinstance(updates, dict):
        raise LocalValidationError("updates must be a dict")
    if not updates:
        raise LocalValidationError("updates must not be empty")
    unknown = sorted(set(updates) - allowed)
    if unknown:
        raise LocalValidationError(
            "Unknown or read-only fields in updates",
            details={"fields": unknown},
        )
    return dict(updates)


def _require_text(value: object, field_name: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise LocalValidationError(f"Missing required field: {field_name}")
