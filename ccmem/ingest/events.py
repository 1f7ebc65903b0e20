from __future__ import annotations

import json
from typing import Any

from ..observation_types import DECISION, ERROR, GENERAL, PATTERN
from ..redaction import redact, strip_ansi, strip_private
from ..store.types import NewObservation
from .types import HookEvent, HookKind, PayloadError, PostToolUseEvent, SessionStartEvent

TRUNCATION_NOTICE = "\n... (truncated)"
MAX_TITLE_CHARS = 120

FILE_EDIT_TOOLS = {"Write", "Edit", "MultiEdit", "NotebookEdit"}
BASH_ERROR_MARKERS = ("error", "Error", "FAILED")
RESULT_TEXT_KEYS = ("stdout", "stderr", "output", "error", "content")

# tool name -> (observation type, title template, input field)
GITHUB_TOOL_TITLES: dict[str, tuple[str, str, str]] = {
    "mcp__github__create_pull_request": (DECISION, "PR created: {}", "title"),
    "mcp__github__merge_pull_request": (DECISION, "PR #{} merged", "pull_number"),
    "mcp__github__create_issue": (GENERAL, "Issue created: {}", "title"),
    "mcp__github__create_branch": (PATTERN, "Branch created: {}", "branch"),
    "mcp__github__push_files": (PATTERN, "Pushed: {}", "message"),
    "mcp__github__create_or_update_file": (PATTERN, "Pushed: {}", "message"),
}


def _optional_str(payload: dict[str, Any], *keys: str) -> str | None:
    for key in keys:
        if key not in payload or payload[key] is None:
            continue
        value = payload[key]
        if isinstance(value, bool) or not isinstance(value, str | int):
            raise PayloadError(f"'{key}' must be a string")
        text = str(value).strip()
        return text or None
    return None


def _first_present(payload: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if payload.get(key) is not None:
            return payload[key]
    return None


def parse_event(
    kind: HookKind, payload: Any, *, default_app: str | None = None
) -> HookEvent:
    """Validate a decoded hook payload and return the event for ``kind``.

    Field names follow the published contract (``app``, ``project_dir``,
    ``tool``, ``input``, ``result``, ``error``); the names Claude Code sends
    (``cwd``, ``tool_name``, ``tool_input``, ``tool_response``) are accepted
    as aliases.
    """

    if not isinstance(payload, dict):
        raise PayloadError("hook payload must be a JSON object")
    project_dir = _optional_str(payload, "project_dir", "cwd")
    external_session_id = _optional_str(payload, "session_id")

    if kind is HookKind.SESSION_START:
        app = _optional_str(payload, "app") or (default_app or "").strip() or None
        if not app:
            raise PayloadError("session-start payload requires 'app'")
        return SessionStartEvent(
            app=app, project_dir=project_dir, external_session_id=external_session_id
        )

    if kind is HookKind.POST_TOOL_USE:
        tool = _optional_str(payload, "tool", "tool_name")
        if not tool:
            raise PayloadError("post-tool-use payload requires 'tool'")
        is_error = payload.get("is_error", False)
        if not isinstance(is_error, bool):
            raise PayloadError("'is_error' must be a boolean")
        return PostToolUseEvent(
            tool=tool,
            tool_input=_first_present(payload, "input", "tool_input"),
            result=_first_present(payload, "result", "tool_response"),
            error=payload.get("error"),
            is_error=is_error,
            project_dir=project_dir,
            external_session_id=external_session_id,
        )

    raise PayloadError(f"unsupported hook kind: {kind!r}")


def _to_text(value: Any) -> str:
    if value is None:
        return "N/A"
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, ensure_ascii=False, sort_keys=True)
    except (TypeError, ValueError):
        return str(value)


def result_text(result: Any) -> str:
    """Human-readable text of a tool result, preferring stdout/stderr style fields."""

    if result is None:
        return ""
    if isinstance(result, dict):
        parts = [
            str(result[key])
            for key in RESULT_TEXT_KEYS
            if isinstance(result.get(key), str) and result[key]
        ]
        if parts:
            return "\n".join(parts)
    return _to_text(result)


def _sanitize(text: str) -> str:
    return redact(strip_ansi(strip_private(text)))


def _truncate(text: str, max_chars: int) -> str:
    if max_chars <= 0 or len(text) <= max_chars:
        return text
    return f"{text[:max_chars]}{TRUNCATION_NOTICE}"


def _input_field(tool_input: Any, key: str) -> str | None:
    if not isinstance(tool_input, dict):
        return None
    value = tool_input.get(key)
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    return text or None


def signals_error(event: PostToolUseEvent) -> bool:
    if event.is_error or event.error:
        return True
    if isinstance(event.result, dict) and (
        event.result.get("is_error") is True or event.result.get("error")
    ):
        return True
    if event.tool == "Bash":
        text = result_text(event.result)
        return any(marker in text for marker in BASH_ERROR_MARKERS)
    return False


def is_internal_memory_tool(event: PostToolUseEvent, hook_command: str) -> bool:
    """True when the tool call invoked this engine's own CLI.

    Recording those calls would feed memory output back in as new evidence.
    """

    executable = (hook_command.split() or [""])[0]
    if not executable or event.tool != "Bash":
        return False
    command = _input_field(event.tool_input, "command") or ""
    return command.split()[:1] == [executable]


def derive_title(event: PostToolUseEvent, is_error: bool) -> tuple[str, str]:
    """Return ``(observation_type, title)`` for a tool invocation."""

    tool = event.tool
    if tool in GITHUB_TOOL_TITLES and not is_error:
        observation_type, template, field = GITHUB_TOOL_TITLES[tool]
        return observation_type, template.format(_input_field(event.tool_input, field) or "unknown")
    if tool == "Bash":
        command = _input_field(event.tool_input, "command")
        label = "Bash error" if is_error else "Bash"
        return (ERROR if is_error else GENERAL), f"{label}: {command}" if command else label
    if tool in FILE_EDIT_TOOLS:
        path = _input_field(event.tool_input, "file_path") or _input_field(
            event.tool_input, "notebook_path"
        )
        suffix = "error" if is_error else "operation"
        title = f"{tool} {suffix}: {path}" if path else f"{tool} {suffix}"
        return (ERROR if is_error else PATTERN), title
    return (ERROR if is_error else GENERAL), f"{tool} {'error' if is_error else 'operation'}"


def derive_observation(
    event: PostToolUseEvent, *, max_content_chars: int, hook_command: str
) -> NewObservation | None:
    if is_internal_memory_tool(event, hook_command):
        return None
    is_error = signals_error(event)
    observation_type, title = derive_title(event, is_error)
    lines = [
        f"Tool: {event.tool}",
        f"Input: {_to_text(event.tool_input)}",
        f"Output: {_to_text(event.result)}",
    ]
    if event.error:
        lines.append(f"Error: {_to_text(event.error)}")
    content = _truncate(_sanitize("\n".join(lines)), max_content_chars)
    title = " ".join(_sanitize(title).split())[:MAX_TITLE_CHARS]
    return NewObservation(
        title=title or event.tool,
        content=content,
        observation_type=observation_type,
        tags=(event.tool,),
        project_dir=event.project_dir,
    )
