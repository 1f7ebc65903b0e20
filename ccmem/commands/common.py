from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import typer
from rich import print
from rich.markup import escape

from ..config import CcmemConfig
from ..db import StorageError
from ..store import MemoryStore


def store_from_config(config: CcmemConfig) -> MemoryStore:
    return MemoryStore(config.db_path, busy_timeout_ms=config.busy_timeout_ms)


@contextmanager
def exit_on_error() -> Iterator[None]:
    """Report validation and storage errors in red and exit 1."""

    try:
        yield
    except StorageError as exc:
        print(f"[red]Storage error: {escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc
    except ValueError as exc:
        print(f"[red]Error: {escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc
