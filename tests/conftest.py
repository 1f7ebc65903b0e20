from __future__ import annotations

from pathlib import Path

import pytest

from ccmem.store import MemoryStore


@pytest.fixture(autouse=True)
def _isolate_ccmem_paths(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("CCMEM_CONFIG", str(tmp_path / "config.json"))
    monkeypatch.setenv("CCMEM_DB", str(tmp_path / "mem.sqlite"))
    monkeypatch.setenv("CCMEM_AGENT_SETTINGS", str(tmp_path / "claude" / "settings.json"))
    monkeypatch.setenv("CCMEM_LOG_PATH", str(tmp_path / "ccmem.log"))


@pytest.fixture
def store(tmp_path: Path):
    store = MemoryStore(tmp_path / "mem.sqlite")
    try:
        yield store
    finally:
        store.close()
