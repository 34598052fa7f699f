"""Configuration for the sync engine."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Mapping, Optional

from routinesync.errors import InvalidStateError
from routinesync.pending.backoff import ReplayRetryPolicy


@dataclass(frozen=True)
class SyncConfig:
    """
    Tunables for SyncCoordinator and its collaborators.

    Replay retry defaults: at most 5 automatic attempts per queued action,
    backoff 1 s doubling up to 10 s with +/-15% jitter.
    """

    cache_key: str = "routines"
    queue_key: str = "pending-actions"
    aliases_key: str = "id-aliases"

    max_replay_attempts: int = 5
    replay_base_delay_sec: float = 1.0
    replay_max_delay_sec: float = 10.0

    http_timeout_sec: float = 10.0
    http_max_retries: int = 2

    heartbeat_interval_sec: float = 30.0
    realtime_reconnect_delay_sec: float = 5.0

    def __post_init__(self) -> None:
        keys = (self.cache_key, self.queue_key, self.aliases_key)
        if not all(isinstance(k, str) and k.strip() for k in keys):
            raise InvalidStateError("storage keys must be non-empty strings")
        if len(set(keys)) != len(keys):
            raise InvalidStateError("storage keys must be distinct")
        if self.max_replay_attempts < 1:
            raise InvalidStateError("max_replay_attempts must be >= 1")
        if self.http_max_retries < 0:
            raise InvalidStateError("http_max_retries must be >= 0")
        for name in (
            "replay_base_delay_sec",
            "replay_max_delay_sec",
            "http_timeout_sec",
            "heartbeat_interval_sec",
            "realtime_reconnect_delay_sec",
        ):
            if getattr(self, name) < 0:
                raise InvalidStateError(f"{name} must be >= 0")

    def retry_policy(self) -> ReplayRetryPolicy:
        return ReplayRetryPolicy(
            max_attempts=self.max_replay_attempts,
            base_delay_sec=self.replay_base_delay_sec,
            max_delay_sec=max(self.replay_max_delay_sec, self.replay_base_delay_sec),
        )

    @classmethod
    def from_env(
        cls,
        prefix: str = "ROUTINESYNC_",
        environ: Optional[Mapping[str, str]] = None,
    ) -> SyncConfig:
        """
        Build a config from environment variables, e.g. ROUTINESYNC_MAX_REPLAY_ATTEMPTS=3.

        Unset or empty variables keep the defaults.
        """
        env = os.environ if environ is None else environ
        kwargs: dict[str, object] = {}
        for f in fields(cls):
            raw = env.get(prefix + f.name.upper(), "").strip()
            if not raw:
                continue
            default = f.default
            try:
                if isinstance(default, bool):
                    kwargs[f.name] = raw.lower() in ("1", "true", "yes", "on")
                elif isinstance(default, int):
                    kwargs[f.name] = int(raw)
                elif isinstance(default, float):
                    kwargs[f.name] = float(raw)
                else:
                    kwargs[f.name] = raw
            except ValueError as exc:
                raise InvalidStateError(
                    f"Invalid value for {prefix + f.name.upper()}",
                    details={"value": raw},
                    cause=exc,
                ) from exc
        return cls(**kwargs)  # type: ignore[arg-type]
