from __future__ import annotations

import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = Path.home() / ".cc-switch" / "memory.db"
DEFAULT_BUSY_TIMEOUT_MS = 5000

SCHEMA_VERSION = 2


class StorageError(RuntimeError):
    """The embedded database could not complete an operation."""


def connect(
    db_path: Path | str,
    check_same_thread: bool = True,
    busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
) -> sqlite3.Connection:
    path = Path(db_path).expanduser()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(
            path,
            timeout=max(busy_timeout_ms, 0) / 1000.0,
            check_same_thread=check_same_thread,
        )
    except (OSError, sqlite3.Error) as exc:
        raise StorageError(f"Failed to open memory database {path}: {exc}") from exc
    conn.row_factory = sqlite3.Row
    try:
        try:
            conn.execute("PRAGMA journal_mode = WAL")
        except sqlite3.OperationalError:
            conn.execute("PRAGMA journal_mode = DELETE")
        conn.execute("PRAGMA synchronous = NORMAL")
    except sqlite3.Error as exc:
        conn.close()
        raise StorageError(f"Failed to open memory database {path}: {exc}") from exc
    return conn


def _initialize_schema_v1(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS sessions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            app TEXT NOT NULL,
            project_dir TEXT,
            started_at TEXT NOT NULL,
            ended_at TEXT,
            summary TEXT
        );
        CREATE INDEX IF NOT EXISTS idx_sessions_app ON sessions(app);
        CREATE INDEX IF NOT EXISTS idx_sessions_started ON sessions(started_at DESC);

        CREATE TABLE IF NOT EXISTS observations (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            session_id INTEGER,
            title TEXT NOT NULL,
            content TEXT NOT NULL DEFAULT '',
            observation_type TEXT NOT NULL DEFAULT 'general',
            tags TEXT NOT NULL DEFAULT '',
            tokens INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            project_dir TEXT
        );
        CREATE INDEX IF NOT EXISTS idx_observations_session ON observations(session_id);
        CREATE INDEX IF NOT EXISTS idx_observations_type ON observations(observation_type);
        CREATE INDEX IF NOT EXISTS idx_observations_created ON observations(created_at DESC);
        CREATE INDEX IF NOT EXISTS idx_observations_project ON observations(project_dir);

        CREATE VIRTUAL TABLE IF NOT EXISTS observations_fts USING fts5(
            title, content, tags,
            content='observations',
            content_rowid='id'
        );

        CREATE TRIGGER IF NOT EXISTS observations_ai AFTER INSERT ON observations BEGIN
            INSERT INTO observations_fts(rowid, title, content, tags)
            VALUES (new.id, new.title, new.content, new.tags);
        END;

        CREATE TRIGGER IF NOT EXISTS observations_ad AFTER DELETE ON observations BEGIN
            INSERT INTO observations_fts(observations_fts, rowid, title, content, tags)
            VALUES ('delete', old.id, old.title, old.content, old.tags);
        END;

        CREATE TRIGGER IF NOT EXISTS observations_au AFTER UPDATE ON observations BEGIN
            INSERT INTO observations_fts(observations_fts, rowid, title, content, tags)
            VALUES ('delete', old.id, old.title, old.content, old.tags);
            INSERT INTO observations_fts(rowid, title, content, tags)
            VALUES (new.id, new.title, new.content, new.tags);
        END;
        """
    )


def _initialize_schema_v2(conn: sqlite3.Connection) -> None:
    # Open-session lookup used by hook ingestion.
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_sessions_open ON sessions(ended_at, started_at DESC)"
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_sessions_project ON sessions(project_dir)")


def schema_version(conn: sqlite3.Connection) -> int:
    row = conn.execute("PRAGMA user_version").fetchone()
    return int(row[0]) if row else 0


def initialize_schema(conn: sqlite3.Connection) -> None:
    try:
        current = schema_version(conn)
        if current >= SCHEMA_VERSION:
            return
        for version, migrate in ((1, _initialize_schema_v1), (2, _initialize_schema_v2)):
            if current >= version:
                continue
            migrate(conn)
            conn.execute(f"PRAGMA user_version = {int(version)}")
            conn.commit()
            current = version
    except sqlite3.Error as exc:
        conn.rollback()
        raise StorageError(f"Failed to initialize memory schema: {exc}") from exc
