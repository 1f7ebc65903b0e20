from __future__ import annotations

import re
from typing import TYPE_CHECKING

from .types import Observation

if TYPE_CHECKING:
    from ._store import MemoryStore

_TOKEN_RE = re.compile(r"\w+", re.UNICODE)

# Column weights for bm25(): title, content, tags.
BM25_WEIGHTS = (1.0, 1.0, 0.25)


def expand_query(query: str) -> str:
    """Turn free text into an FTS5 expression of quoted terms joined by OR.

    Each term is a double-quoted FTS5 string, so operators (AND, OR, NOT,
    NEAR), column filters, prefix stars and stray quotes in user input are
    matched literally rather than interpreted.
    """

    tokens = _TOKEN_RE.findall(query or "")
    if not tokens:
        return ""
    seen: set[str] = set()
    terms: list[str] = []
    for token in tokens:
        key = token.lower()
        if key in seen:
            continue
        seen.add(key)
        terms.append('"' + token.replace('"', '""') + '"')
    return " OR ".join(terms)


def search(store: MemoryStore, query: str, limit: int = 10) -> list[Observation]:
    expanded_query = expand_query(query)
    if not expanded_query or limit <= 0:
        return []
    weights = ", ".join(str(weight) for weight in BM25_WEIGHTS)
    sql = f"""
        SELECT observations.*, bm25(observations_fts, {weights}) AS score
        FROM observations_fts
        JOIN observations ON observations.id = observations_fts.rowid
        WHERE observations_fts MATCH ?
        ORDER BY score ASC, observations.id DESC
        LIMIT ?
    """
    rows = store._fetchall(sql, (expanded_query, limit))
    return [store._row_to_observation(row) for row in rows]
