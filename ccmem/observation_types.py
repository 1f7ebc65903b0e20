from __future__ import annotations

from typing import Final

DECISION: Final = "decision"
ERROR: Final = "error"
PATTERN: Final = "pattern"
PREFERENCE: Final = "preference"
GENERAL: Final = "general"

ALLOWED_OBSERVATION_TYPES: Final[tuple[str, ...]] = (
    DECISION,
    ERROR,
    PATTERN,
    PREFERENCE,
    GENERAL,
)


def normalize_observation_type(value: str) -> str:
    return (value or "").strip().lower()


def validate_observation_type(value: str) -> str:
    normalized = normalize_observation_type(value)
    if normalized in ALLOWED_OBSERVATION_TYPES:
        return normalized
    raise ValueError(
        f"Invalid observation type '{normalized}'. "
        f"Allowed types: {', '.join(ALLOWED_OBSERVATION_TYPES)}"
    )
