"""Observable state exposed to the UI layer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from routinesync.errors import RoutineSyncError

from .routine import Routine


@dataclass(slots=True, frozen=True)
class SyncState:
    """
    Immutable snapshot of what the UI should render.

    routines are copies; mutating them does not affect the coordinator.
    last_error holds the most recent non-fatal condition (StaleDataError,
    StorageCorruptError, PartialSyncFailure, ...) or None.
    """

    routines: tuple[Routine, ...] = ()
    is_loading: bool = False
    last_error: Optional[RoutineSyncError] = None
    is_offline: bool = False
    pending_count: int = 0

    def get(self, routine_id: str) -> Optional[Routine]:
        for routine in self.routines:
            if routine.id == routine_id:
                return routine
        return None
