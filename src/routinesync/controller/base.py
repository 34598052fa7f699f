"""Remote data service contract consumed by the coordinator."""

from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable

from routinesync.models import Routine, RoutineInput, RoutineSlot, SlotInput


@runtime_checkable
class RemoteDataService(Protocol):
    """
    Server-side source of truth for routines.

    Implementations raise NetworkUnavailableError when the service cannot be
    reached and RemoteRejectedError (or a subclass) when it refuses a request.

    create_routine/add_slot receive the client idempotency key; calling them
    twice with the same key must return the same row instead of a duplicate.
    update_* may return the server row after the update, or None.
    """

    async def fetch_all(self) -> list[Routine]: ...

    async def create_routine(self, value: RoutineInput, idempotency_key: str) -> Routine: ...

    async def update_routine(
        self, routine_id: str, updates: dict[str, Any]
    ) -> Optional[Routine]: ...

    async def delete_routine(self, routine_id: str) -> None: ...

    async def add_slot(
        self, routine_id: str, value: SlotInput, idempotency_key: str
    ) -> RoutineSlot: ...

    async def update_slot(
        self, routine_id: str, slot_id: str, updates: dict[str, Any]
    ) -> Optional[RoutineSlot]: ...

    async def delete_slot(self, routine_id: str, slot_id: str) -> None: ...

    async def ping(self) -> bool: ...
