"""Token-budgeted context assembly over stored observations.

Candidates come from three tiers, in priority order:

1. full-text matches for the query (relevance order),
2. observations recorded for the project (most recent first),
3. the most recent observations overall.

Tiers are concatenated, duplicates are dropped by id, and items are accepted
greedily until the next one would overflow the token budget.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Final

from .store import MemoryStore, Observation

PRIORITY_SEARCH: Final = 1
PRIORITY_PROJECT: Final = 2
PRIORITY_RECENT: Final = 3

PRIORITY_LABELS: Final[dict[int, str]] = {
    PRIORITY_SEARCH: "[FTS]",
    PRIORITY_PROJECT: "[Project]",
    PRIORITY_RECENT: "[Recent]",
}

DEFAULT_MAX_TOKENS: Final = 4000


@dataclass(frozen=True, slots=True)
class ContextItem:
    observation: Observation
    priority: int

    @property
    def label(self) -> str:
        return PRIORITY_LABELS.get(self.priority, "[Recent]")

    @property
    def tokens(self) -> int:
        return self.observation.tokens


class ContextAssembler:
    def __init__(
        self,
        store: MemoryStore,
        *,
        search_limit: int = 10,
        project_limit: int = 20,
        recent_limit: int = 50,
    ) -> None:
        self.store = store
        self.search_limit = search_limit
        self.project_limit = project_limit
        self.recent_limit = recent_limit

    def candidates(
        self,
        query: str | None = None,
        project: str | None = None,
        exclude_ids: Iterable[int] = (),
    ) -> list[ContextItem]:
        """All tiers concatenated in priority order, deduplicated by id."""

        seen: set[int] = {int(mid) for mid in exclude_ids}
        items: list[ContextItem] = []

        def take(observations: Iterable[Observation], priority: int) -> None:
            for obs in observations:
                if obs.id in seen:
                    continue
                seen.add(obs.id)
                items.append(ContextItem(observation=obs, priority=priority))

        if query and query.strip():
            take(self.store.search(query, self.search_limit), PRIORITY_SEARCH)
        if project:
            take(
                self.store.list_observations(self.project_limit, project_dir=project),
                PRIORITY_PROJECT,
            )
        take(self.store.list_observations(self.recent_limit), PRIORITY_RECENT)
        return items

    def get_context(
        self,
        query: str | None = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        project: str | None = None,
        exclude_ids: Iterable[int] = (),
    ) -> list[ContextItem]:
        return select_within_budget(
            self.candidates(query=query, project=project, exclude_ids=exclude_ids),
            max_tokens,
        )


def select_within_budget(items: Iterable[ContextItem], max_tokens: int) -> list[ContextItem]:
    """Accept items in order until the next one would exceed ``max_tokens``."""

    selected: list[ContextItem] = []
    used = 0
    for item in items:
        if used + item.tokens > max_tokens:
            break
        used += item.tokens
        selected.append(item)
    return selected


def total_tokens(items: Iterable[ContextItem]) -> int:
    return sum(item.tokens for item in items)


def truncate(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    ellipsis = "..."
    if max_len <= len(ellipsis):
        return ellipsis[:max_len]
    return text[: max_len - len(ellipsis)] + ellipsis


def format_context(items: list[ContextItem]) -> str:
    """Numbered listing used by ``ccmem context``."""

    if not items:
        return "No relevant context found."
    blocks: list[str] = []
    for index, item in enumerate(items, start=1):
        obs = item.observation
        blocks.append(
            f"{index}. {item.label} [{obs.observation_type}] {obs.title}\n"
            f"   {truncate(obs.content.replace(chr(10), ' '), 80)}\n"
        )
    return "\n".join(blocks)


def render_hook_context(items: list[ContextItem], max_items: int = 5) -> str:
    """Markdown block surfaced back to the coding agent."""

    shown = items[: max(max_items, 0)]
    if not shown:
        return ""
    lines = ["## Memory Context", ""]
    for item in shown:
        obs = item.observation
        lines.append(f"### {obs.title} ({obs.observation_type})")
        if obs.content:
            lines.append(obs.content)
        lines.append("")
    return "\n".join(lines) + "\n"
