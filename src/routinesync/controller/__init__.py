"""Remote service exports for routinesync."""

from __future__ import annotations

from .base import RemoteDataService
from .rest_controller import RestRoutineController

__all__ = ["RemoteDataService", "RestRoutineController"]
