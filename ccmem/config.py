from __future__ import annotations

import json
import os
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .db import DEFAULT_BUSY_TIMEOUT_MS, DEFAULT_DB_PATH

DEFAULT_CONFIG_PATH = Path("~/.config/ccmem/config.json").expanduser()
DEFAULT_AGENT_SETTINGS_PATH = Path("~/.claude/settings.json").expanduser()
DEFAULT_HOOK_COMMAND = "ccmem hooks ingest"

CONFIG_ENV_OVERRIDES = {
    "db_path": "CCMEM_DB",
    "busy_timeout_ms": "CCMEM_BUSY_TIMEOUT_MS",
    "context_max_tokens": "CCMEM_CONTEXT_MAX_TOKENS",
    "context_search_limit": "CCMEM_CONTEXT_SEARCH_LIMIT",
    "context_project_limit": "CCMEM_CONTEXT_PROJECT_LIMIT",
    "context_recent_limit": "CCMEM_CONTEXT_RECENT_LIMIT",
    "hook_context_tokens": "CCMEM_HOOK_CONTEXT_TOKENS",
    "hook_context_items": "CCMEM_HOOK_CONTEXT_ITEMS",
    "hook_max_content_chars": "CCMEM_HOOK_MAX_CONTENT_CHARS",
    "session_start_context": "CCMEM_SESSION_START_CONTEXT",
    "agent_settings_path": "CCMEM_AGENT_SETTINGS",
    "hook_command": "CCMEM_HOOK_COMMAND",
    "log_path": "CCMEM_LOG_PATH",
    "log_level": "CCMEM_LOG_LEVEL",
}


def get_config_path(path: Path | None = None) -> Path:
    candidate = path or Path(os.getenv("CCMEM_CONFIG", DEFAULT_CONFIG_PATH))
    return candidate.expanduser()


def read_config_file(path: Path | None = None) -> dict[str, Any]:
    config_path = get_config_path(path)
    if not config_path.exists():
        return {}
    raw = config_path.read_text()
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError("invalid config json") from exc
    if not isinstance(data, dict):
        raise ValueError("config must be an object")
    return data


def get_env_overrides() -> dict[str, str]:
    overrides: dict[str, str] = {}
    for key, env_var in CONFIG_ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value is not None:
            overrides[key] = value
    return overrides


@dataclass
class CcmemConfig:
    db_path: str = str(DEFAULT_DB_PATH)
    busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS
    context_max_tokens: int = 4000
    context_search_limit: int = 10
    context_project_limit: int = 20
    context_recent_limit: int = 50
    hook_context_tokens: int = 4000
    hook_context_items: int = 5
    hook_max_content_chars: int = 2000
    # Prime project context on SessionStart; off keeps session start a pure write.
    session_start_context: bool = False
    agent_settings_path: str = str(DEFAULT_AGENT_SETTINGS_PATH)
    hook_command: str = DEFAULT_HOOK_COMMAND
    log_path: str | None = "~/.cc-switch/memory.log"
    log_level: str = "INFO"


def _parse_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    text = str(value).lower()
    if text in {"1", "true", "yes", "on"}:
        return True
    if text in {"0", "false", "off", "no"}:
        return False
    return default


def _parse_int(value: object, default: int, *, key: str) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        warnings.warn(f"Invalid int for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        warnings.warn(f"Invalid int for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default


def _parse_str(value: object, default: str | None) -> str | None:
    if value is None:
        return default
    text = str(value).strip()
    return text or None


def load_config(path: Path | None = None) -> CcmemConfig:
    cfg = CcmemConfig()
    config_path = get_config_path(path)
    try:
        data = read_config_file(config_path)
    except (OSError, ValueError) as exc:
        warnings.warn(
            f"Ignoring unreadable config {config_path}: {exc}", RuntimeWarning, stacklevel=2
        )
        data = {}
    cfg = _apply_values(cfg, data)
    cfg = _apply_values(cfg, get_env_overrides())
    return cfg


def _apply_values(cfg: CcmemConfig, data: dict[str, Any]) -> CcmemConfig:
    for key, value in data.items():
        if not hasattr(cfg, key):
            continue
        current = getattr(cfg, key)
        if isinstance(current, bool):
            setattr(cfg, key, _parse_bool(value, current))
        elif isinstance(current, int):
            setattr(cfg, key, _parse_int(value, current, key=key))
        elif key == "log_path":
            # An empty log path means "log to stderr".
            setattr(cfg, key, _parse_str(value, current))
        else:
            parsed = _parse_str(value, current)
            setattr(cfg, key, parsed if parsed is not None else current)
    return cfg
