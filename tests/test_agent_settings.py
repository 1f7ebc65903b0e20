from __future__ import annotations

import json
from pathlib import Path

import pytest

from ccmem.agent_settings import hooks_status, register_hooks, unregister_hooks

HOOK_COMMAND = "ccmem hooks ingest"


def _read(path: Path) -> dict:
    return json.loads(path.read_text())


def test_register_creates_settings_file(tmp_path: Path) -> None:
    path = tmp_path / "claude" / "settings.json"

    added = register_hooks(path, HOOK_COMMAND)

    assert added == ["SessionStart", "PostToolUse"]
    hooks = _read(path)["hooks"]
    assert hooks["SessionStart"] == [
        {
            "matcher": "",
            "hooks": [
                {"type": "command", "command": "ccmem hooks ingest --hook session-start --app claude"}
            ],
        }
    ]
    assert hooks["PostToolUse"][0]["hooks"][0]["command"] == (
        "ccmem hooks ingest --hook post-tool-use"
    )
    status = hooks_status(path, HOOK_COMMAND)
    assert status.registered
    assert status.session_start and status.post_tool_use


def test_register_is_idempotent_and_preserves_other_entries(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    other = {"matcher": "Bash", "hooks": [{"type": "command", "command": "audit.sh"}]}
    path.write_text(json.dumps({"model": "opus", "hooks": {"PostToolUse": [other]}}))

    register_hooks(path, HOOK_COMMAND)
    assert register_hooks(path, HOOK_COMMAND) == []

    settings = _read(path)
    assert settings["model"] == "opus"
    post = settings["hooks"]["PostToolUse"]
    assert post[0] == other
    assert len(post) == 2
    assert len(settings["hooks"]["SessionStart"]) == 1


def test_unregister_removes_only_our_entries(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    other = {"matcher": "", "hooks": [{"type": "command", "command": "audit.sh"}]}
    path.write_text(json.dumps({"hooks": {"PostToolUse": [other]}}))
    register_hooks(path, HOOK_COMMAND)

    removed = unregister_hooks(path, HOOK_COMMAND)

    assert removed == ["SessionStart", "PostToolUse"]
    assert _read(path) == {"hooks": {"PostToolUse": [other]}}
    assert not hooks_status(path, HOOK_COMMAND).registered


def test_unregister_drops_empty_hooks_section(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"theme": "dark"}))
    register_hooks(path, HOOK_COMMAND)
    unregister_hooks(path, HOOK_COMMAND)
    assert _read(path) == {"theme": "dark"}


def test_unregister_missing_file_is_noop(tmp_path: Path) -> None:
    path = tmp_path / "missing.json"
    assert unregister_hooks(path, HOOK_COMMAND) == []
    assert not path.exists()


def test_status_partial_registration(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    entry = {"matcher": "", "hooks": [{"type": "command", "command": f"{HOOK_COMMAND} --hook x"}]}
    path.write_text(json.dumps({"hooks": {"PostToolUse": [entry]}}))

    status = hooks_status(path, HOOK_COMMAND)

    assert status.post_tool_use
    assert not status.session_start
    assert status.registered


def test_settings_with_comments_are_read(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text('{\n  // user note\n  "url": "http://example.com"\n}\n')

    register_hooks(path, HOOK_COMMAND)

    settings = _read(path)
    assert settings["url"] == "http://example.com"
    assert "SessionStart" in settings["hooks"]


@pytest.mark.parametrize("content", ["[1, 2]", '{"hooks": []}', "{broken"])
def test_malformed_settings_raise_value_error(tmp_path: Path, content: str) -> None:
    path = tmp_path / "settings.json"
    path.write_text(content)
    with pytest.raises(ValueError):
        register_hooks(path, HOOK_COMMAND)
    assert path.read_text() == content
