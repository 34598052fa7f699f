"""Result models for replay/sync operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Optional

from routinesync.errors import PartialSyncFailure

ActionStatus = Literal["success", "failed", "skipped"]
ReplayStatus = Literal["success", "partial", "skipped"]


@dataclass(slots=True)
class ActionResult:
    """Result for a single replayed PendingAction."""

    action_id: str
    seq: int
    kind: str
    status: ActionStatus

    error_type: Optional[str] = None
    error_message: Optional[str] = None
    error_details: Optional[dict[str, Any]] = None

    local_id: Optional[str] = None
    server_id: Optional[str] = None


@dataclass(slots=True)
class ReplayResult:
    """
    Aggregate result for replay_pending()/trigger_manual_sync().

    status:
        - "success": every due entry was confirmed (the queue may still hold
          entries that were not due yet).
        - "partial": at least one entry failed or was blocked; see error.
        - "skipped": replay did not run (offline).
    """

    status: ReplayStatus
    results: list[ActionResult] = field(default_factory=list)
    id_map: dict[str, str] = field(default_factory=dict)
    summary: dict[str, int] = field(default_factory=dict)
    remaining: int = 0
    error: Optional[PartialSyncFailure] = None

    @property
    def ok(self) -> bool:
        return self.status == "success"
