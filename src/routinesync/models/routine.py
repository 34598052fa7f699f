"""Data model for routines and their time slots."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from typing import Any, Optional

from routinesync.util.time import parse_rfc3339, to_rfc3339

ROUTINE_UPDATABLE_FIELDS: frozenset[str] = frozenset(
    {"name", "semester", "description", "is_active"}
)
SLOT_UPDATABLE_FIELDS: frozenset[str] = frozenset(
    {
        "day_of_week",
        "start_time",
        "end_time",
        "room_number",
        "section",
        "course_id",
        "teacher_id",
        "course_name",
        "teacher_name",
    }
)


@dataclass(slots=True)
class RoutineSlot:
    """A time slot owned by a routine. Slots keep insertion order."""

    id: str
    routine_id: str
    day_of_week: str
    start_time: str
    end_time: str

    room_number: Optional[str] = None
    section: Optional[str] = None
    course_id: Optional[str] = None
    teacher_id: Optional[str] = None
    course_name: Optional[str] = None
    teacher_name: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(slots=True)
class Routine:
    """
    A routine tracked by the sync engine.

    Notes:
        - id is either server-assigned or a temporary id (see util.ids).
        - version is a local logical clock bumped on every local mutation of the
          routine or its slots; it is never sent to the server.
    """

    id: str
    name: str
    semester: str

    description: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    created_by: Optional[str] = None
    slots: list[RoutineSlot] = field(default_factory=list)
    version: int = 0

    def copy(self) -> Routine:
        """Return a copy that shares no mutable state with this routine."""
        return replace(self, slots=[replace(s) for s in self.slots])


@dataclass(slots=True, frozen=True)
class RoutineInput:
    """Fields supplied by the caller when creating a routine."""

    name: str
    semester: str
    description: Optional[str] = None
    is_active: bool = True


@dataclass(slots=True, frozen=True)
class SlotInput:
    """Fields supplied by the caller when adding a slot."""

    day_of_week: str
    start_time: str
    end_time: str
    room_number: Optional[str] = None
    section: Optional[str] = None
    course_id: Optional[str] = None
    teacher_id: Optional[str] = None
    course_name: Optional[str] = None
    teacher_name: Optional[str] = None


# ----------------------------
# dict codec (shared by the cache and the REST controller)
# ----------------------------
def input_to_dict(value: RoutineInput | SlotInput) -> dict[str, Any]:
    return {f.name: getattr(value, f.name) for f in fields(value)}


def routine_input_from_dict(data: dict[str, Any]) -> RoutineInput:
    return RoutineInput(
        name=str(data.get("name", "")),
        semester=str(data.get("semester", "")),
        description=data.get("description"),
        is_active=bool(data.get("is_active", True)),
    )


def slot_input_from_dict(data: dict[str, Any]) -> SlotInput:
    return SlotInput(
        day_of_week=str(data.get("day_of_week", "")),
        start_time=str(data.get("start_time", "")),
        end_time=str(data.get("end_time", "")),
        room_number=data.get("room_number"),
        section=data.get("section"),
        course_id=data.get("course_id"),
        teacher_id=data.get("teacher_id"),
        course_name=data.get("course_name"),
        teacher_name=data.get("teacher_name"),
    )


def slot_to_dict(slot: RoutineSlot) -> dict[str, Any]:
    data = {f.name: getattr(slot, f.name) for f in fields(slot)}
    data["created_at"] = to_rfc3339(slot.created_at) if slot.created_at else None
    return data


def slot_from_dict(data: dict[str, Any], *, routine_id: Optional[str] = None) -> RoutineSlot:
    """Build a RoutineSlot; routine_id overrides the row's own foreign key."""
    return RoutineSlot(
        id=str(data["id"]),
        routine_id=str(routine_id or data.get("routine_id") or ""),
        day_of_week=str(data.get("day_of_week") or ""),
        start_time=str(data.get("start_time") or ""),
        end_time=str(data.get("end_time") or ""),
        room_number=data.get("room_number"),
        section=data.get("section"),
        course_id=data.get("course_id"),
        teacher_id=data.get("teacher_id"),
        course_name=data.get("course_name"),
        teacher_name=data.get("teacher_name"),
        created_at=_parse_optional_dt(data.get("created_at")),
    )


def routine_to_dict(routine: Routine, *, include_version: bool = True) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": routine.id,
        "name": routine.name,
        "semester": routine.semester,
        "description": routine.description,
        "is_active": routine.is_active,
        "created_at": to_rfc3339(routine.created_at) if routine.created_at else None,
        "created_by": routine.created_by,
        "slots": [slot_to_dict(s) for s in routine.slots],
    }
    if include_version:
        data["version"] = routine.version
    return data


def routine_from_dict(data: dict[str, Any]) -> Routine:
    """
    Build a Routine from a cache record or a server row.

    Raises:
        KeyError/ValueError/TypeError: if required fields are missing or malformed.
    """
    routine_id = str(data["id"])
    raw_slots = data.get("slots") or []
    if not isinstance(raw_slots, list):
        raise TypeError("slots must be a list")

    return Routine(
        id=routine_id,
        name=str(data["name"]),
        semester=str(data.get("semester") or ""),
        description=data.get("description"),
        is_active=bool(data.get("is_active", True)),
        created_at=_parse_optional_dt(data.get("created_at")),
        created_by=data.get("created_by"),
        slots=[slot_from_dict(s, routine_id=routine_id) for s in raw_slots],
        version=int(data.get("version", 0)),
    )


def _parse_optional_dt(value: Any) -> Optional[datetime]:
    if isinstance(value, str) and value:
        return parse_rfc3339(value)
    return None
