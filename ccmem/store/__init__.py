from __future__ import annotations

from ._store import MemoryStore
from .types import MemoryStats, NewObservation, Observation, Session

__all__ = [
    "MemoryStats",
    "MemoryStore",
    "NewObservation",
    "Observation",
    "Session",
]
