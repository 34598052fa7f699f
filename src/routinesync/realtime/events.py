"""Change notifications delivered by a push channel."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Optional, Protocol, runtime_checkable


class ChangeKind(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class ChangeEvent:
    """A remote row changed. record_id is None when the payload carried no id."""

    kind: ChangeKind
    table: str
    record_id: Optional[str] = None


@runtime_checkable
class PushChannel(Protocol):
    """
    Source of ChangeEvents scoped to the routine collection.

    events() yields until the subscription ends; it raises RoutineSyncError
    subclasses (typically NetworkUnavailableError) on transport failure.
    """

    def events(self) -> AsyncIterator[ChangeEvent]: ...

    async def close(self) -> None: ...
