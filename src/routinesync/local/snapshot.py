"""In-memory ordered routine collection with an id index."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from routinesync.models import Routine, RoutineSlot


@dataclass(slots=True)
class RoutineSnapshot:
    """
    Ordered routine collection (most recent first) owned by the coordinator.

    Index:
        - position_by_id: routine id -> index into routines

    Slots keep insertion order; nothing here ever sorts them.
    """

    routines: list[Routine] = field(default_factory=list)
    position_by_id: dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_routines(cls, routines: list[Routine]) -> RoutineSnapshot:
        """Build a snapshot from copies of routines. Later duplicates are dropped."""
        snap = cls()
        for routine in routines:
            if routine.id in snap.position_by_id:
                continue
            snap.routines.append(routine.copy())
            snap.position_by_id[routine.id] = len(snap.routines) - 1
        return snap

    def clone(self) -> RoutineSnapshot:
        """Deep-clone this snapshot (including the index)."""
        return RoutineSnapshot(
            routines=[r.copy() for r in self.routines],
            position_by_id=dict(self.position_by_id),
        )

    def to_list(self) -> list[Routine]:
        return [r.copy() for r in self.routines]

    # ----------------------------
    # Query helpers
    # ----------------------------
    def has(self, routine_id: str) -> bool:
        return routine_id in self.position_by_id

    def get(self, routine_id: str) -> Routine:
        return self.routines[self.position_by_id[routine_id]]

    def has_slot(self, routine_id: str, slot_id: str) -> bool:
        if not self.has(routine_id):
            return False
        return any(s.id == slot_id for s in self.get(routine_id).slots)

    def get_slot(self, routine_id: str, slot_id: str) -> RoutineSlot:
        for slot in self.get(routine_id).slots:
            if slot.id == slot_id:
                return slot
        raise KeyError(slot_id)

    def __len__(self) -> int:
        return len(self.routines)

    # ----------------------------
    # Mutation helpers (keep the index consistent)
    # ----------------------------
    def insert_front(self, routine: Routine) -> None:
        """Insert a new routine at the front (display order is most-recent-first)."""
        if self.has(routine.id):
            raise ValueError(f"duplicate routine id: {routine.id}")
        self.routines.insert(0, routine)
        self._reindex()

    def insert_at(self, index: int, routine: Routine) -> None:
        """Insert routine at index (clamped), e.g. to undo a rejected delete."""
        if self.has(routine.id):
            raise ValueError(f"duplicate routine id: {routine.id}")
        index = max(0, min(index, len(self.routines)))
        self.routines.insert(index, routine)
        self._reindex()

    def replace(self, routine: Routine) -> None:
        """Replace the routine with the same id in place."""
        self.routines[self.position_by_id[routine.id]] = routine

    def remove(self, routine_id: str) -> None:
        if not self.has(routine_id):
            return
        del self.routines[self.position_by_id[routine_id]]
        self._reindex()

    def update_fields(self, routine_id: str, updates: dict[str, Any]) -> Routine:
        routine = self.get(routine_id)
        for name, value in updates.items():
            setattr(routine, name, value)
        return routine

    def append_slot(self, routine_id: str, slot: RoutineSlot) -> None:
        routine = self.get(routine_id)
        if any(s.id == slot.id for s in routine.slots):
            raise ValueError(f"duplicate slot id: {slot.id}")
        routine.slots.append(slot)

    def update_slot_fields(
        self,
        routine_id: str,
        slot_id: str,
        updates: dict[str, Any],
    ) -> RoutineSlot:
        slot = self.get_slot(routine_id, slot_id)
        for name, value in updates.items():
            setattr(slot, name, value)
        return slot

    def replace_slot(self, routine_id: str, slot: RoutineSlot) -> None:
        routine = self.get(routine_id)
        for i, existing in enumerate(routine.slots):
            if existing.id == slot.id:
                routine.slots[i] = slot
                return
        raise KeyError(slot.id)

    def remove_slot(self, routine_id: str, slot_id: str) -> None:
        routine = self.get(routine_id)
        routine.slots = [s for s in routine.slots if s.id != slot_id]

    def rename_routine(self, old_id: str, new_id: str) -> bool:
        """
        Replace a routine id in place, rewriting its slots' foreign keys.

        Returns False if old_id is not present. If new_id is already present
        (the server row arrived through a refresh first), the old entry is
        dropped instead.
        """
        if not self.has(old_id):
            return False
        if self.has(new_id):
            self.remove(old_id)
            return True

        routine = self.get(old_id)
        routine.id = new_id
        for slot in routine.slots:
            slot.routine_id = new_id
        self._reindex()
        return True

    def rename_slot(self, routine_id: str, old_id: str, new_id: str) -> bool:
        if not self.has(routine_id):
            return False
        routine = self.get(routine_id)
        if any(s.id == new_id for s in routine.slots):
            routine.slots = [s for s in routine.slots if s.id != old_id]
            return True
        for slot in routine.slots:
            if slot.id == old_id:
                slot.id = new_id
                return True
        return False

    def bump_version(self, routine_id: str) -> int:
        routine = self.get(routine_id)
        routine.version += 1
        return routine.version

    def _reindex(self) -> None:
        self.position_by_id = {r.id: i for i, r in enumerate(self.routines)}
