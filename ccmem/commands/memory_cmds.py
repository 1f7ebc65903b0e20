from __future__ import annotations

import json

import typer
from rich import print
from rich.markup import escape

from ..config import CcmemConfig
from ..context import ContextAssembler, format_context, total_tokens, truncate
from ..store import NewObservation, Observation
from .common import exit_on_error


def _print_observations(observations: list[Observation], *, empty: str) -> None:
    if not observations:
        print(f"[dim]{empty}[/dim]")
        return
    for obs in observations:
        tags = f" tags={escape(','.join(obs.tags))}" if obs.tags else ""
        print(
            f"[bold]\\[{obs.id}][/bold] ({obs.observation_type}) {escape(obs.title)}"
            f" [dim]{obs.tokens} tokens{tags}[/dim]"
        )
        if obs.content:
            print(f"    {escape(truncate(obs.content.replace(chr(10), ' '), 80))}")


def add_cmd(
    *,
    store_from_config,
    config: CcmemConfig,
    title: str,
    content: str,
    observation_type: str,
    tags: str | None,
    project: str | None,
) -> None:
    """Manually add an observation."""

    with exit_on_error():
        store = store_from_config(config)
        try:
            obs = store.add_observation(
                NewObservation(
                    title=title,
                    content=content,
                    observation_type=observation_type,
                    tags=tuple((tags or "").split(",")),
                    project_dir=project,
                )
            )
        finally:
            store.close()
    print(f"[green]Added observation {obs.id}[/green] ({obs.tokens} tokens)")


def list_cmd(
    *,
    store_from_config,
    config: CcmemConfig,
    limit: int,
    observation_type: str | None,
    project: str | None,
) -> None:
    """List recent observations."""

    with exit_on_error():
        store = store_from_config(config)
        try:
            observations = store.list_observations(
                limit, observation_type=observation_type, project_dir=project
            )
        finally:
            store.close()
    _print_observations(observations, empty="No observations found.")


def show_cmd(*, store_from_config, config: CcmemConfig, observation_id: int) -> None:
    """Print an observation as JSON."""

    with exit_on_error():
        store = store_from_config(config)
        try:
            obs = store.get_observation(observation_id)
        finally:
            store.close()
    if obs is None:
        print(f"[yellow]Observation {observation_id} not found[/yellow]")
        return
    typer.echo(json.dumps(obs.to_dict(), indent=2, ensure_ascii=False))


def search_cmd(*, store_from_config, config: CcmemConfig, query: str, limit: int) -> None:
    """Full-text search over titles, content and tags."""

    with exit_on_error():
        store = store_from_config(config)
        try:
            results = store.search(query, limit)
        finally:
            store.close()
    _print_observations(results, empty="No results.")


def delete_cmd(*, store_from_config, config: CcmemConfig, observation_id: int) -> None:
    """Delete an observation by id."""

    with exit_on_error():
        store = store_from_config(config)
        try:
            deleted = store.delete_observation(observation_id)
        finally:
            store.close()
    if not deleted:
        print(f"[yellow]Observation {observation_id} not found[/yellow]")
        return
    print(f"[green]Deleted observation {observation_id}[/green]")


def stats_cmd(*, store_from_config, config: CcmemConfig) -> None:
    with exit_on_error():
        store = store_from_config(config)
        try:
            stats = store.stats()
        finally:
            store.close()

    print("[bold]Memory[/bold]")
    print(f"- Database: {escape(str(config.db_path))}")
    print(f"- Observations: {stats.total_observations}")
    print(f"- Sessions: {stats.total_sessions}")
    print(f"- Tokens: {stats.total_tokens}")
    if stats.oldest_observation:
        print(f"- Oldest: {stats.oldest_observation}")
        print(f"- Newest: {stats.newest_observation}")
    if stats.observations_by_type:
        print("\n[bold]By type[/bold]")
        for observation_type, count in stats.observations_by_type.items():
            print(f"- {observation_type}: {count}")


def context_cmd(
    *,
    store_from_config,
    config: CcmemConfig,
    query: str | None,
    max_tokens: int | None,
    project: str | None,
) -> None:
    """Print the token-budgeted context for a query and/or project."""

    budget = config.context_max_tokens if max_tokens is None else max_tokens
    with exit_on_error():
        if budget < 0:
            raise ValueError(f"max tokens must be >= 0, got {budget}")
        store = store_from_config(config)
        try:
            assembler = ContextAssembler(
                store,
                search_limit=config.context_search_limit,
                project_limit=config.context_project_limit,
                recent_limit=config.context_recent_limit,
            )
            items = assembler.get_context(query=query, max_tokens=budget, project=project)
        finally:
            store.close()
    typer.echo(format_context(items))
    if items:
        typer.echo(f"Total: {total_tokens(items)}/{budget} tokens, {len(items)} items")


def sessions_cmd(*, store_from_config, config: CcmemConfig, limit: int) -> None:
    """List recent sessions; open sessions show as ongoing."""

    with exit_on_error():
        store = store_from_config(config)
        try:
            sessions = store.list_sessions(limit)
        finally:
            store.close()
    if not sessions:
        print("[dim]No sessions recorded.[/dim]")
        return
    for session in sessions:
        project = escape(session.project_dir) if session.project_dir else "-"
        print(f"[bold]\\[{session.id}][/bold] {escape(session.app)} {project}")
        ended = "[green]ongoing[/green]" if session.ongoing else session.ended_at
        print(f"    started: {session.started_at}")
        print(f"    ended: {ended}")
        if session.summary:
            print(f"    summary: {escape(session.summary)}")


def end_session_cmd(
    *, store_from_config, config: CcmemConfig, session_id: int, summary: str | None
) -> None:
    """Mark a session as ended."""

    with exit_on_error():
        store = store_from_config(config)
        try:
            ended = store.end_session(session_id, summary=summary)
        finally:
            store.close()
    if not ended:
        print(f"[yellow]Session {session_id} not found[/yellow]")
        return
    print(f"[green]Ended session {session_id}[/green]")
