"""Bounded retry-with-backoff policy for queued actions."""

from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from routinesync.errors import RemoteRejectedError, RoutineSyncError

from .actions import PendingAction


@dataclass(frozen=True)
class ReplayRetryPolicy:
    """
    Per-action retry bookkeeping.

    Delay after the n-th failed attempt: min(base * 2**(n-1), max) * jitter,
    jitter drawn from [jitter_low, jitter_high]. After max_attempts automatic
    attempts the action is exhausted: it stays queued but only a forced
    (manual) sync retries it.
    """

    max_attempts: int = 5
    base_delay_sec: float = 1.0
    max_delay_sec: float = 10.0
    jitter_low: float = 0.85
    jitter_high: float = 1.15

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay_sec < 0 or self.max_delay_sec < self.base_delay_sec:
            raise ValueError("require 0 <= base_delay_sec <= max_delay_sec")
        if not 0 < self.jitter_low <= self.jitter_high:
            raise ValueError("require 0 < jitter_low <= jitter_high")

    def delay_for(
        self,
        attempts: int,
        *,
        rand: Callable[[float, float], float] = random.uniform,
    ) -> float:
        """Delay in seconds before retrying an action that has failed `attempts` times."""
        if attempts <= 0:
            return 0.0
        raw = min(self.base_delay_sec * (2 ** (attempts - 1)), self.max_delay_sec)
        return raw * rand(self.jitter_low, self.jitter_high)

    def is_due(self, action: PendingAction, now: datetime, *, force: bool = False) -> bool:
        if force:
            return True
        if action.exhausted:
            return False
        return action.next_attempt_at is None or action.next_attempt_at <= now

    def record_failure(
        self,
        action: PendingAction,
        exc: RoutineSyncError,
        now: datetime,
        *,
        rand: Optional[Callable[[float, float], float]] = None,
    ) -> None:
        """Update attempts/next_attempt_at/exhausted in place after a failed replay."""
        action.attempts += 1
        action.last_error = f"{exc.__class__.__name__}: {exc}"

        # The server said no; retrying on a timer will not change its mind.
        if isinstance(exc, RemoteRejectedError) or action.attempts >= self.max_attempts:
            action.exhausted = True
            action.next_attempt_at = None
            return

        delay = self.delay_for(action.attempts, rand=rand or random.uniform)
        action.next_attempt_at = now + timedelta(seconds=delay)

    def reset(self, action: PendingAction) -> None:
        """Clear exhaustion so a forced sync gets a fresh set of attempts."""
        action.attempts = 0
        action.exhausted = False
        action.next_attempt_at = None
