"""Wire ``ccmem hooks ingest`` into the coding agent's settings file.

The agent owns the file; only the ``hooks.SessionStart`` and
``hooks.PostToolUse`` entries whose command starts with our hook command are
touched. Every other key and hook entry is preserved as-is.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

SESSION_START_EVENT = "SessionStart"
POST_TOOL_USE_EVENT = "PostToolUse"
MANAGED_EVENTS = (SESSION_START_EVENT, POST_TOOL_USE_EVENT)

DEFAULT_APP = "claude"


@dataclass
class HooksStatus:
    session_start: bool
    post_tool_use: bool

    @property
    def registered(self) -> bool:
        """True when either hook is wired up."""
        return self.session_start or self.post_tool_use


def _strip_json_comments(text: str) -> str:
    lines: list[str] = []
    for line in text.splitlines():
        kept: list[str] = []
        in_string = False
        escaped = False
        for index, char in enumerate(line):
            if escaped:
                escaped = False
            elif char == "\\" and in_string:
                escaped = True
            elif char == '"':
                in_string = not in_string
            elif not in_string and line.startswith("//", index):
                break
            kept.append(char)
        lines.append("".join(kept))
    return "\n".join(lines)


def load_settings(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    raw = path.read_text()
    if not raw.strip():
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        try:
            parsed = json.loads(_strip_json_comments(raw))
        except json.JSONDecodeError as exc:
            raise ValueError(f"invalid settings json in {path}: {exc}") from exc
    if not isinstance(parsed, dict):
        raise ValueError(f"settings in {path} must be a JSON object")
    return parsed


def write_settings(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False) + "\n")


def hook_commands(hook_command: str, app: str = DEFAULT_APP) -> dict[str, str]:
    """Command line registered for each managed hook event."""

    return {
        SESSION_START_EVENT: f"{hook_command} --hook session-start --app {app}",
        POST_TOOL_USE_EVENT: f"{hook_command} --hook post-tool-use",
    }


def hook_entry(command: str) -> dict[str, Any]:
    return {"matcher": "", "hooks": [{"type": "command", "command": command}]}


def _hooks_section(settings: dict[str, Any], path: Path) -> dict[str, Any]:
    hooks = settings.get("hooks")
    if hooks is None:
        return {}
    if not isinstance(hooks, dict):
        raise ValueError(f"'hooks' in {path} must be a JSON object")
    return hooks


def _is_ours(entry: Any, hook_command: str) -> bool:
    if not isinstance(entry, dict):
        return False
    for hook in entry.get("hooks") or []:
        if isinstance(hook, dict) and str(hook.get("command", "")).startswith(hook_command):
            return True
    return False


def _has_entry(entries: Any, hook_command: str) -> bool:
    return isinstance(entries, list) and any(_is_ours(entry, hook_command) for entry in entries)


def register_hooks(path: Path, hook_command: str, app: str = DEFAULT_APP) -> list[str]:
    """Add our hook entries; returns the events that were newly registered."""

    settings = load_settings(path)
    hooks = _hooks_section(settings, path)
    added: list[str] = []
    for event, command in hook_commands(hook_command, app).items():
        entries = hooks.get(event)
        if not isinstance(entries, list):
            entries = []
        if _has_entry(entries, hook_command):
            continue
        entries.append(hook_entry(command))
        hooks[event] = entries
        added.append(event)
    if added:
        settings["hooks"] = hooks
        write_settings(path, settings)
    return added


def unregister_hooks(path: Path, hook_command: str) -> list[str]:
    """Remove our hook entries; returns the events they were removed from."""

    if not path.exists():
        return []
    settings = load_settings(path)
    hooks = _hooks_section(settings, path)
    removed: list[str] = []
    for event in MANAGED_EVENTS:
        entries = hooks.get(event)
        if not _has_entry(entries, hook_command):
            continue
        remaining = [entry for entry in entries if not _is_ours(entry, hook_command)]
        if remaining:
            hooks[event] = remaining
        else:
            hooks.pop(event)
        removed.append(event)
    if removed:
        if hooks:
            settings["hooks"] = hooks
        else:
            settings.pop("hooks", None)
        write_settings(path, settings)
    return removed


def hooks_status(path: Path, hook_command: str) -> HooksStatus:
    hooks = _hooks_section(load_settings(path), path)
    return HooksStatus(
        session_start=_has_entry(hooks.get(SESSION_START_EVENT), hook_command),
        post_tool_use=_has_entry(hooks.get(POST_TOOL_USE_EVENT), hook_command),
    )
