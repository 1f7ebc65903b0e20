from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from ..observation_types import GENERAL


@dataclass(frozen=True, slots=True)
class NewObservation:
    title: str
    content: str = ""
    observation_type: str = GENERAL
    tags: tuple[str, ...] = ()
    project_dir: str | None = None
    session_id: int | None = None


@dataclass(frozen=True, slots=True)
class Observation:
    id: int
    session_id: int | None
    title: str
    content: str
    observation_type: str
    tags: tuple[str, ...]
    project_dir: str | None
    tokens: int
    created_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "title": self.title,
            "content": self.content,
            "observation_type": self.observation_type,
            "tags": list(self.tags),
            "project_dir": self.project_dir,
            "tokens": self.tokens,
            "created_at": self.created_at,
        }


@dataclass(frozen=True, slots=True)
class Session:
    id: int
    app: str
    project_dir: str | None
    started_at: str
    ended_at: str | None = None
    summary: str | None = None

    @property
    def ongoing(self) -> bool:
        return self.ended_at is None


@dataclass
class MemoryStats:
    total_observations: int
    total_sessions: int
    total_tokens: int
    observations_by_type: dict[str, int] = field(default_factory=dict)
    oldest_observation: str | None = None
    newest_observation: str | None = None


def normalize_tags(tags: Iterable[str] | None) -> tuple[str, ...]:
    """Trim, split on commas, drop empties and duplicates; first occurrence wins."""

    seen: set[str] = set()
    ordered: list[str] = []
    for raw in tags or ():
        for part in str(raw).split(","):
            tag = part.strip()
            if not tag or tag in seen:
                continue
            seen.add(tag)
            ordered.append(tag)
    return tuple(ordered)


def tags_to_text(tags: Iterable[str]) -> str:
    return ",".join(tags)


def tags_from_text(text: str | None) -> tuple[str, ...]:
    if not text:
        return ()
    return tuple(part for part in text.split(",") if part)
