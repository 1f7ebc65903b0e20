from __future__ import annotations

import math
from typing import Final

# Persisted token figures depend on this formula; bump the version when it changes.
TOKEN_ESTIMATOR_VERSION: Final[int] = 1
BYTES_PER_TOKEN: Final[int] = 4


def estimate_tokens(text: str) -> int:
    """Approximate token count: one token per four UTF-8 bytes, rounded up."""

    if not text:
        return 0
    return math.ceil(len(text.encode("utf-8")) / BYTES_PER_TOKEN)


def observation_tokens(title: str, content: str) -> int:
    return estimate_tokens(f"{title} {content}")
