from __future__ import annotations

import typer

from . import __version__
from .agent_settings import DEFAULT_APP
from .commands.common import store_from_config
from .commands.hooks_cmds import ingest_cmd, register_cmd, status_cmd, unregister_cmd
from .commands.memory_cmds import (
    add_cmd,
    context_cmd,
    delete_cmd,
    end_session_cmd,
    list_cmd,
    search_cmd,
    sessions_cmd,
    show_cmd,
    stats_cmd,
)
from .config import CcmemConfig, load_config
from .logging_setup import configure_logging

app = typer.Typer(help="ccmem: persistent memory and context for coding-agent sessions")
hooks_app = typer.Typer(help="Register and run coding-agent hooks")
app.add_typer(hooks_app, name="hooks")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"ccmem {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    db_path: str = typer.Option(None, "--db", help="Path to SQLite database"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version"
    ),
) -> None:
    config = load_config()
    if db_path:
        config.db_path = db_path
    configure_logging(config)
    ctx.obj = config


def _config(ctx: typer.Context) -> CcmemConfig:
    config = ctx.find_root().obj
    if isinstance(config, CcmemConfig):
        return config
    return load_config()


@app.command()
def add(
    ctx: typer.Context,
    title: str,
    content: str = typer.Option("", "--content", "-c", help="Observation body"),
    observation_type: str = typer.Option(
        "general", "--type", "-t", help="decision, error, pattern, preference or general"
    ),
    tags: str = typer.Option(None, "--tags", help="Comma-separated tags"),
    project: str = typer.Option(None, "--project", "-p", help="Project directory"),
) -> None:
    """Manually add an observation."""
    add_cmd(
        store_from_config=store_from_config,
        config=_config(ctx),
        title=title,
        content=content,
        observation_type=observation_type,
        tags=tags,
        project=project,
    )


@app.command("list")
def list_observations(
    ctx: typer.Context,
    limit: int = typer.Option(20, "--limit", "-l", help="Max results"),
    observation_type: str = typer.Option(None, "--type", "-t", help="Filter by type"),
    project: str = typer.Option(None, "--project", "-p", help="Filter by project directory"),
) -> None:
    """List recent observations."""
    list_cmd(
        store_from_config=store_from_config,
        config=_config(ctx),
        limit=limit,
        observation_type=observation_type,
        project=project,
    )


@app.command()
def show(ctx: typer.Context, observation_id: int) -> None:
    """Print an observation as JSON."""
    show_cmd(
        store_from_config=store_from_config, config=_config(ctx), observation_id=observation_id
    )


@app.command()
def search(
    ctx: typer.Context,
    query: str,
    limit: int = typer.Option(10, "--limit", "-l", help="Max results"),
) -> None:
    """Full-text search over observations."""
    search_cmd(
        store_from_config=store_from_config, config=_config(ctx), query=query, limit=limit
    )


@app.command()
def delete(ctx: typer.Context, observation_id: int) -> None:
    """Delete an observation by id."""
    delete_cmd(
        store_from_config=store_from_config, config=_config(ctx), observation_id=observation_id
    )


@app.command()
def stats(ctx: typer.Context) -> None:
    """Show observation, session and token totals."""
    stats_cmd(store_from_config=store_from_config, config=_config(ctx))


@app.command()
def context(
    ctx: typer.Context,
    query: str = typer.Argument(None, help="Full-text query"),
    max_tokens: int = typer.Option(None, "--max-tokens", help="Token budget"),
    project: str = typer.Option(None, "--project", "-p", help="Project directory"),
) -> None:
    """Show the context that would be injected for a query and/or project."""
    context_cmd(
        store_from_config=store_from_config,
        config=_config(ctx),
        query=query,
        max_tokens=max_tokens,
        project=project,
    )


@app.command()
def sessions(
    ctx: typer.Context,
    limit: int = typer.Option(10, "--limit", "-l", help="Max sessions"),
) -> None:
    """List recent sessions."""
    sessions_cmd(store_from_config=store_from_config, config=_config(ctx), limit=limit)


@app.command("end-session")
def end_session(
    ctx: typer.Context,
    session_id: int,
    summary: str = typer.Option(None, "--summary", help="Session summary"),
) -> None:
    """Mark a session as ended."""
    end_session_cmd(
        store_from_config=store_from_config,
        config=_config(ctx),
        session_id=session_id,
        summary=summary,
    )


@hooks_app.command("register")
def hooks_register(
    ctx: typer.Context,
    app_name: str = typer.Option(DEFAULT_APP, "--app", help="App name recorded on sessions"),
) -> None:
    """Register hooks in the agent settings file."""
    register_cmd(config=_config(ctx), app_name=app_name)


@hooks_app.command("unregister")
def hooks_unregister(ctx: typer.Context) -> None:
    """Remove ccmem hooks from the agent settings file."""
    unregister_cmd(config=_config(ctx))


@hooks_app.command("status")
def hooks_status(ctx: typer.Context) -> None:
    """Show which hooks are registered."""
    status_cmd(config=_config(ctx))


@hooks_app.command("ingest")
def hooks_ingest(
    ctx: typer.Context,
    hook: str = typer.Option(..., "--hook", help="session-start or post-tool-use"),
    app_name: str = typer.Option(None, "--app", help="App name when the payload has none"),
) -> None:
    """Ingest a hook payload from stdin and print any context for the agent."""
    ingest_cmd(config=_config(ctx), hook=hook, app_name=app_name)


if __name__ == "__main__":
    app()
