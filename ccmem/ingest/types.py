from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class HookKind(str, Enum):
    SESSION_START = "session-start"
    POST_TOOL_USE = "post-tool-use"


class PayloadError(ValueError):
    """A hook payload does not match the shape expected for its kind."""


@dataclass(frozen=True, slots=True)
class SessionStartEvent:
    app: str
    project_dir: str | None = None
    external_session_id: str | None = None


@dataclass(frozen=True, slots=True)
class PostToolUseEvent:
    tool: str
    tool_input: Any = None
    result: Any = None
    error: Any = None
    is_error: bool = False
    project_dir: str | None = None
    external_session_id: str | None = None


HookEvent = SessionStartEvent | PostToolUseEvent
