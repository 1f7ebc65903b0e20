from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from ccmem.cli import app
from ccmem.commands.memory_cmds import add_cmd
from ccmem.config import CcmemConfig
from ccmem.store import MemoryStore

runner = CliRunner()


def _db(tmp_path: Path) -> Path:
    return tmp_path / "mem.sqlite"


def test_root_help_lists_commands() -> None:
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for command in ("add", "list", "show", "search", "delete", "stats", "context", "sessions"):
        assert command in result.stdout
    assert "hooks" in result.stdout


def test_hooks_help_lists_subcommands() -> None:
    result = runner.invoke(app, ["hooks", "--help"])
    assert result.exit_code == 0
    for command in ("register", "unregister", "status", "ingest"):
        assert command in result.stdout


def test_add_show_delete_flow(tmp_path: Path) -> None:
    added = runner.invoke(
        app,
        ["add", "Use WAL", "-c", "hooks write while we read", "-t", "decision", "--tags", "db,perf"],
    )
    assert added.exit_code == 0, added.stdout
    assert "Added observation 1" in added.stdout

    shown = runner.invoke(app, ["show", "1"])
    assert shown.exit_code == 0
    data = json.loads(shown.stdout)
    assert data["title"] == "Use WAL"
    assert data["observation_type"] == "decision"
    assert data["tags"] == ["db", "perf"]

    listed = runner.invoke(app, ["list"])
    assert listed.exit_code == 0
    assert "(decision) Use WAL" in listed.stdout

    deleted = runner.invoke(app, ["delete", "1"])
    assert deleted.exit_code == 0
    assert "Deleted observation 1" in deleted.stdout

    again = runner.invoke(app, ["delete", "1"])
    assert again.exit_code == 0
    assert "not found" in again.stdout


def test_add_rejects_invalid_type(tmp_path: Path) -> None:
    result = runner.invoke(app, ["add", "title", "--type", "rumor"])
    assert result.exit_code == 1
    assert "Invalid observation type" in result.stdout
    with MemoryStore(_db(tmp_path)) as store:
        assert store.stats().total_observations == 0


def test_add_rejects_empty_title() -> None:
    result = runner.invoke(app, ["add", "  "])
    assert result.exit_code == 1
    assert "must not be empty" in result.stdout


def test_show_missing_observation() -> None:
    result = runner.invoke(app, ["show", "42"])
    assert result.exit_code == 0
    assert "not found" in result.stdout


def test_search_and_context(tmp_path: Path) -> None:
    runner.invoke(app, ["add", "retry uploads", "-c", "exponential backoff", "-p", "/repo"])
    runner.invoke(app, ["add", "lint config", "-p", "/repo"])

    searched = runner.invoke(app, ["search", "retry"])
    assert searched.exit_code == 0
    assert "retry uploads" in searched.stdout
    assert "lint config" not in searched.stdout

    empty = runner.invoke(app, ["search", "nonexistent"])
    assert "No results." in empty.stdout

    context = runner.invoke(app, ["context", "retry", "-p", "/repo"])
    assert context.exit_code == 0
    assert "1. [FTS] [general] retry uploads" in context.stdout
    assert "2. [Project] [general] lint config" in context.stdout
    assert "Total:" in context.stdout

    nothing = runner.invoke(app, ["context", "--max-tokens", "0"])
    assert "No relevant context found." in nothing.stdout


def test_global_db_option(tmp_path: Path) -> None:
    other = tmp_path / "other.sqlite"
    result = runner.invoke(app, ["--db", str(other), "add", "elsewhere"])
    assert result.exit_code == 0
    with MemoryStore(other) as store:
        assert store.stats().total_observations == 1
    with MemoryStore(_db(tmp_path)) as store:
        assert store.stats().total_observations == 0


def test_stats_command(tmp_path: Path) -> None:
    runner.invoke(app, ["add", "one", "-t", "error"])
    runner.invoke(app, ["add", "two"])
    result = runner.invoke(app, ["stats"])
    assert result.exit_code == 0
    assert "Observations: 2" in result.stdout
    assert "error: 1" in result.stdout


def test_session_start_hook_creates_ongoing_session(tmp_path: Path) -> None:
    result = runner.invoke(
        app,
        ["hooks", "ingest", "--hook", "session-start"],
        input='{"app":"claude","project_dir":"/repo"}',
    )
    assert result.exit_code == 0
    assert result.stdout == ""

    with MemoryStore(_db(tmp_path)) as store:
        sessions = store.list_sessions()
    assert len(sessions) == 1
    assert sessions[0].ended_at is None

    listed = runner.invoke(app, ["sessions"])
    assert listed.exit_code == 0
    assert "claude" in listed.stdout
    assert "ongoing" in listed.stdout


def test_end_session_command(tmp_path: Path) -> None:
    runner.invoke(app, ["hooks", "ingest", "--hook", "session-start"], input='{"app":"claude"}')
    result = runner.invoke(app, ["end-session", "1", "--summary", "done"])
    assert result.exit_code == 0
    assert "Ended session 1" in result.stdout

    listed = runner.invoke(app, ["sessions"])
    assert "ongoing" not in listed.stdout
    assert "summary: done" in listed.stdout


def test_empty_post_tool_use_payload_is_silent(tmp_path: Path) -> None:
    result = runner.invoke(app, ["hooks", "ingest", "--hook", "post-tool-use"], input="")
    assert result.exit_code == 0
    assert result.stdout == ""
    with MemoryStore(_db(tmp_path)) as store:
        assert store.stats().total_observations == 0


def test_malformed_hook_payload_exits_zero_without_output(tmp_path: Path) -> None:
    result = runner.invoke(app, ["hooks", "ingest", "--hook", "post-tool-use"], input="{oops")
    assert result.exit_code == 0
    assert result.stdout == ""
    assert "hook ingest failed" in (tmp_path / "ccmem.log").read_text()


def test_post_tool_use_hook_prints_context(tmp_path: Path) -> None:
    runner.invoke(app, ["add", "Bash: make test", "-c", "flaky on CI", "-p", "/repo"])
    payload = {
        "tool_name": "Bash",
        "tool_input": {"command": "make test"},
        "tool_response": {"stdout": "ok"},
        "cwd": "/repo",
    }
    result = runner.invoke(
        app, ["hooks", "ingest", "--hook", "post-tool-use"], input=json.dumps(payload)
    )
    assert result.exit_code == 0
    assert result.stdout.startswith("## Memory Context")
    assert "flaky on CI" in result.stdout


def test_hooks_register_status_unregister(tmp_path: Path) -> None:
    settings = tmp_path / "claude" / "settings.json"

    registered = runner.invoke(app, ["hooks", "register"])
    assert registered.exit_code == 0
    assert "Registered" in registered.stdout
    assert "--app claude" in settings.read_text()

    status = runner.invoke(app, ["hooks", "status"])
    assert "SessionStart: registered" in status.stdout
    assert "PostToolUse: registered" in status.stdout

    unregistered = runner.invoke(app, ["hooks", "unregister"])
    assert unregistered.exit_code == 0
    assert "Removed" in unregistered.stdout
    assert json.loads(settings.read_text()) == {}


def test_hooks_register_reports_malformed_settings(tmp_path: Path) -> None:
    settings = tmp_path / "claude" / "settings.json"
    settings.parent.mkdir(parents=True)
    settings.write_text("[]")
    result = runner.invoke(app, ["hooks", "register"])
    assert result.exit_code == 1
    assert "Error" in result.stdout


def test_non_utf8_hook_payload_is_ingested_without_crashing(tmp_path: Path) -> None:
    result = runner.invoke(
        app,
        ["hooks", "ingest", "--hook", "post-tool-use"],
        input=b'{"tool": "Bash", "result": "\xff\xfe"}',
    )
    assert result.exit_code == 0
    assert result.stdout == ""
    with MemoryStore(_db(tmp_path)) as store:
        observations = store.list_observations(10)
    assert len(observations) == 1
    assert "\ufffd" in observations[0].content


def test_unreadable_config_does_not_break_hooks(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    config_dir = tmp_path / "config-dir"
    config_dir.mkdir()
    monkeypatch.setenv("CCMEM_CONFIG", str(config_dir))

    result = runner.invoke(
        app,
        ["hooks", "ingest", "--hook", "session-start"],
        input='{"app": "claude", "project_dir": "/repo"}',
    )

    assert result.exit_code == 0
    assert result.stdout == ""
    with MemoryStore(_db(tmp_path)) as store:
        assert len(store.list_sessions()) == 1


def test_commands_build_their_store_from_the_loaded_config(tmp_path: Path) -> None:
    seen: list[CcmemConfig] = []

    def factory(config: CcmemConfig) -> MemoryStore:
        seen.append(config)
        return MemoryStore(config.db_path)

    config = CcmemConfig(db_path=str(tmp_path / "factory.sqlite"), log_path=None)
    add_cmd(
        store_from_config=factory,
        config=config,
        title="via factory",
        content="",
        observation_type="general",
        tags=None,
        project=None,
    )

    assert seen == [config]
    with MemoryStore(config.db_path) as store:
        assert store.list_observations(10)[0].title == "via factory"
