from __future__ import annotations

import datetime as dt
import sqlite3
import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from .. import db
from ..observation_types import validate_observation_type
from ..tokens import observation_tokens
from . import search as store_search
from .types import (
    MemoryStats,
    NewObservation,
    Observation,
    Session,
    normalize_tags,
    tags_from_text,
    tags_to_text,
)


class MemoryStore:
    """Observations and sessions persisted in a single SQLite file.

    One connection is opened per store and shared by every operation. Each
    public method holds ``self._lock`` for its duration, so concurrent callers
    in the same process serialize here; writes run in a single transaction
    that also covers the full-text index triggers.
    """

    def __init__(
        self,
        db_path: Path | str = db.DEFAULT_DB_PATH,
        *,
        busy_timeout_ms: int = db.DEFAULT_BUSY_TIMEOUT_MS,
    ):
        self.db_path = Path(db_path).expanduser()
        self._lock = threading.RLock()
        self.conn = db.connect(
            self.db_path, check_same_thread=False, busy_timeout_ms=busy_timeout_ms
        )
        try:
            db.initialize_schema(self.conn)
        except db.StorageError:
            self.conn.close()
            raise

    @staticmethod
    def _now_iso() -> str:
        return dt.datetime.now(dt.UTC).isoformat()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                yield self.conn
                self.conn.commit()
            except sqlite3.Error as exc:
                self.conn.rollback()
                raise db.StorageError(str(exc)) from exc
            except BaseException:
                self.conn.rollback()
                raise

    def _fetchall(self, sql: str, params: Sequence[Any] = ()) -> list[sqlite3.Row]:
        with self._lock:
            try:
                return self.conn.execute(sql, tuple(params)).fetchall()
            except sqlite3.Error as exc:
                raise db.StorageError(str(exc)) from exc

    def _fetchone(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Row | None:
        rows = self._fetchall(sql, params)
        return rows[0] if rows else None

    @staticmethod
    def _row_to_observation(row: sqlite3.Row) -> Observation:
        return Observation(
            id=int(row["id"]),
            session_id=row["session_id"],
            title=row["title"],
            content=row["content"],
            observation_type=row["observation_type"],
            tags=tags_from_text(row["tags"]),
            project_dir=row["project_dir"],
            tokens=int(row["tokens"]),
            created_at=row["created_at"],
        )

    @staticmethod
    def _row_to_session(row: sqlite3.Row) -> Session:
        return Session(
            id=int(row["id"]),
            app=row["app"],
            project_dir=row["project_dir"],
            started_at=row["started_at"],
            ended_at=row["ended_at"],
            summary=row["summary"],
        )

    @staticmethod
    def _check_limit(limit: int) -> int:
        limit = int(limit)
        if limit < 0:
            raise ValueError(f"limit must be >= 0, got {limit}")
        return limit

    # Observations

    def add_observation(self, new: NewObservation) -> Observation:
        title = (new.title or "").strip()
        if not title:
            raise ValueError("Observation title must not be empty")
        observation_type = validate_observation_type(new.observation_type)
        content = new.content or ""
        tags = normalize_tags(new.tags)
        project_dir = new.project_dir or None
        tokens = observation_tokens(title, content)
        created_at = self._now_iso()
        with self._transaction() as conn:
            cur = conn.execute(
                """
                INSERT INTO observations(
                    session_id, title, content, observation_type, tags, tokens, created_at, project_dir
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    new.session_id,
                    title,
                    content,
                    observation_type,
                    tags_to_text(tags),
                    tokens,
                    created_at,
                    project_dir,
                ),
            )
            lastrowid = cur.lastrowid
        if lastrowid is None:
            raise db.StorageError("Failed to add observation")
        return Observation(
            id=int(lastrowid),
            session_id=new.session_id,
            title=title,
            content=content,
            observation_type=observation_type,
            tags=tags,
            project_dir=project_dir,
            tokens=tokens,
            created_at=created_at,
        )

    def get_observation(self, observation_id: int) -> Observation | None:
        row = self._fetchone("SELECT * FROM observations WHERE id = ?", (int(observation_id),))
        if row is None:
            return None
        return self._row_to_observation(row)

    def list_observations(
        self,
        limit: int,
        observation_type: str | None = None,
        project_dir: str | None = None,
    ) -> list[Observation]:
        limit = self._check_limit(limit)
        where: list[str] = []
        params: list[Any] = []
        if observation_type:
            where.append("observation_type = ?")
            params.append(validate_observation_type(observation_type))
        if project_dir is not None:
            where.append("project_dir = ?")
            params.append(project_dir)
        where_clause = f"WHERE {' AND '.join(where)}" if where else ""
        rows = self._fetchall(
            f"""
            SELECT * FROM observations
            {where_clause}
            ORDER BY created_at DESC, id DESC
            LIMIT ?
            """,
            (*params, limit),
        )
        return [self._row_to_observation(row) for row in rows]

    def search(self, query: str, limit: int = 10) -> list[Observation]:
        return store_search.search(self, query, limit=self._check_limit(limit))

    def delete_observation(self, observation_id: int) -> bool:
        with self._transaction() as conn:
            cur = conn.execute("DELETE FROM observations WHERE id = ?", (int(observation_id),))
            deleted = cur.rowcount
        return deleted > 0

    # Sessions

    def start_session(self, app: str, project_dir: str | None = None) -> Session:
        app = (app or "").strip()
        if not app:
            raise ValueError("Session app must not be empty")
        project_dir = project_dir or None
        started_at = self._now_iso()
        with self._transaction() as conn:
            cur = conn.execute(
                "INSERT INTO sessions(app, project_dir, started_at) VALUES (?, ?, ?)",
                (app, project_dir, started_at),
            )
            lastrowid = cur.lastrowid
        if lastrowid is None:
            raise db.StorageError("Failed to create session")
        return Session(id=int(lastrowid), app=app, project_dir=project_dir, started_at=started_at)

    def end_session(self, session_id: int, summary: str | None = None) -> bool:
        ended_at = self._now_iso()
        with self._transaction() as conn:
            cur = conn.execute(
                "UPDATE sessions SET ended_at = ?, summary = COALESCE(?, summary) WHERE id = ?",
                (ended_at, summary, int(session_id)),
            )
            updated = cur.rowcount
        return updated > 0

    def get_session(self, session_id: int) -> Session | None:
        row = self._fetchone("SELECT * FROM sessions WHERE id = ?", (int(session_id),))
        if row is None:
            return None
        return self._row_to_session(row)

    def current_session(self, project_dir: str | None = None) -> Session | None:
        """Most recently started session that has not ended."""

        if project_dir:
            row = self._fetchone(
                """
                SELECT * FROM sessions
                WHERE ended_at IS NULL AND project_dir = ?
                ORDER BY started_at DESC, id DESC
                LIMIT 1
                """,
                (project_dir,),
            )
        else:
            row = self._fetchone(
                """
                SELECT * FROM sessions
                WHERE ended_at IS NULL
                ORDER BY started_at DESC, id DESC
                LIMIT 1
                """
            )
        if row is None:
            return None
        return self._row_to_session(row)

    def list_sessions(self, limit: int = 10) -> list[Session]:
        rows = self._fetchall(
            "SELECT * FROM sessions ORDER BY started_at DESC, id DESC LIMIT ?",
            (self._check_limit(limit),),
        )
        return [self._row_to_session(row) for row in rows]

    # Aggregates

    def stats(self) -> MemoryStats:
        with self._lock:
            totals = self._fetchone(
                """
                SELECT
                    COUNT(*) AS total,
                    COALESCE(SUM(tokens), 0) AS tokens,
                    MIN(created_at) AS oldest,
                    MAX(created_at) AS newest
                FROM observations
                """
            )
            sessions = self._fetchone("SELECT COUNT(*) AS total FROM sessions")
            by_type = self._fetchall(
                """
                SELECT observation_type, COUNT(*) AS total
                FROM observations
                GROUP BY observation_type
                ORDER BY total DESC, observation_type
                """
            )
        return MemoryStats(
            total_observations=int(totals["total"]) if totals else 0,
            total_sessions=int(sessions["total"]) if sessions else 0,
            total_tokens=int(totals["tokens"]) if totals else 0,
            observations_by_type={row["observation_type"]: int(row["total"]) for row in by_type},
            oldest_observation=totals["oldest"] if totals else None,
            newest_observation=totals["newest"] if totals else None,
        )

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    def __enter__(self) -> MemoryStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
