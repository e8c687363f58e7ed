"""Rough token estimate used for batch sizing."""

from __future__ import annotations

import math

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Approximate token count as ceil(len / 4); roughly right for English prose."""
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)
