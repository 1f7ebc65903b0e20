from __future__ import annotations

import logging
import sys
from pathlib import Path

from rich import print
from rich.markup import escape

from .. import agent_settings
from ..config import CcmemConfig
from ..hook_ingest import IngestStatus, run_hook
from .common import exit_on_error

logger = logging.getLogger(__name__)


def _settings_path(config: CcmemConfig) -> Path:
    return Path(config.agent_settings_path).expanduser()


def register_cmd(*, config: CcmemConfig, app_name: str) -> None:
    """Register the session-start and post-tool-use hooks."""

    path = _settings_path(config)
    with exit_on_error():
        added = agent_settings.register_hooks(path, config.hook_command, app=app_name)
    if not added:
        print(f"[yellow]Hooks already registered in {escape(str(path))}[/yellow]")
        return
    print(f"[green]✓ Registered {', '.join(added)} hooks in {escape(str(path))}[/green]")
    print("Restart the agent to load the hooks.")


def unregister_cmd(*, config: CcmemConfig) -> None:
    """Remove the hooks registered by ccmem."""

    path = _settings_path(config)
    with exit_on_error():
        removed = agent_settings.unregister_hooks(path, config.hook_command)
    if not removed:
        print(f"[dim]No ccmem hooks found in {escape(str(path))}[/dim]")
        return
    print(f"[green]✓ Removed {', '.join(removed)} hooks from {escape(str(path))}[/green]")


def status_cmd(*, config: CcmemConfig) -> None:
    """Show which hooks are registered."""

    path = _settings_path(config)
    with exit_on_error():
        status = agent_settings.hooks_status(path, config.hook_command)
    print(f"[bold]Hooks[/bold] ({escape(str(path))})")
    for event, enabled in (
        (agent_settings.SESSION_START_EVENT, status.session_start),
        (agent_settings.POST_TOOL_USE_EVENT, status.post_tool_use),
    ):
        state = "[green]registered[/green]" if enabled else "[dim]not registered[/dim]"
        print(f"- {event}: {state}")


def ingest_cmd(*, config: CcmemConfig, hook: str, app_name: str | None) -> None:
    """Ingest one hook payload from stdin; prints context only when there is some.

    Never fails: the agent's tool loop must not be interrupted by a broken hook.
    """

    try:
        raw = getattr(sys.stdin, "buffer", sys.stdin).read()
    except OSError as exc:
        logger.warning("hook ingest could not read stdin: %s", exc)
        return
    result = run_hook(hook, raw, config, default_app=app_name)
    if result.status is IngestStatus.CONTEXT and result.context:
        sys.stdout.write(result.context)
        sys.stdout.flush()
