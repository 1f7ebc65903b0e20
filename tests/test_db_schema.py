from __future__ import annotations

from pathlib import Path

import pytest

from ccmem import db


def test_initialize_schema_sets_user_version(tmp_path: Path) -> None:
    conn = db.connect(tmp_path / "mem.sqlite")
    try:
        db.initialize_schema(conn)
        row = conn.execute("PRAGMA user_version").fetchone()
    finally:
        conn.close()

    assert row is not None
    assert int(row[0]) == db.SCHEMA_VERSION


def test_initialize_schema_creates_tables_and_fts_index(tmp_path: Path) -> None:
    conn = db.connect(tmp_path / "mem.sqlite")
    try:
        db.initialize_schema(conn)
        names = {
            row["name"]
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type IN ('table', 'trigger')")
        }
    finally:
        conn.close()

    assert {"sessions", "observations", "observations_fts"} <= names
    assert {"observations_ai", "observations_ad", "observations_au"} <= names


def test_initialize_schema_skips_reinit_at_current_version(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    conn = db.connect(tmp_path / "mem.sqlite")
    try:
        db.initialize_schema(conn)
        conn.execute(
            "INSERT INTO observations(title, content, tokens, created_at) VALUES (?, ?, ?, ?)",
            ("kept", "row survives reopen", 5, "2026-01-01T00:00:00+00:00"),
        )
        conn.commit()

        def _unexpected_reinit(_conn):
            raise AssertionError(
                "initialize_schema should not rerun full migration at current version"
            )

        monkeypatch.setattr(db, "_initialize_schema_v1", _unexpected_reinit)
        db.initialize_schema(conn)

        title = conn.execute("SELECT title FROM observations LIMIT 1").fetchone()[0]
    finally:
        conn.close()

    assert title == "kept"


def test_initialize_schema_upgrades_from_v1(tmp_path: Path) -> None:
    conn = db.connect(tmp_path / "mem.sqlite")
    try:
        db._initialize_schema_v1(conn)
        conn.execute("PRAGMA user_version = 1")
        conn.commit()

        db.initialize_schema(conn)

        indexes = {
            row["name"] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'index'")
        }
        version = db.schema_version(conn)
    finally:
        conn.close()

    assert "idx_sessions_open" in indexes
    assert version == db.SCHEMA_VERSION


def test_connect_reports_unusable_path_as_storage_error(tmp_path: Path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("")
    with pytest.raises(db.StorageError):
        db.connect(blocker / "mem.sqlite")
