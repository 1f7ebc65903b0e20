from __future__ import annotations

from .events import derive_observation, parse_event
from .types import HookEvent, HookKind, PayloadError, PostToolUseEvent, SessionStartEvent

__all__ = [
    "HookEvent",
    "HookKind",
    "PayloadError",
    "PostToolUseEvent",
    "SessionStartEvent",
    "derive_observation",
    "parse_event",
]
