"""Small text helpers shared by the pipeline.  All functions are pure."""

from __future__ import annotations

import re
from typing import Iterable, Pattern


def preview(text: str, limit: int = 80) -> str:
    """Single-line, truncated rendering of user text for log lines."""
    flat = " ".join((text or "").split())
    if len(flat) <= limit:
        return flat
    return flat[:limit] + "..."


def compile_patterns(patterns: Iterable[str]) -> tuple[Pattern[str], ...]:
    """Compile a configured pattern table, case-insensitive."""
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


def first_match(patterns: Iterable[Pattern[str]], text: str) -> Pattern[str] | None:
    """Return the first pattern that matches anywhere in ``text``."""
    for pattern in patterns:
        if pattern.search(text):
            return pattern
    return None


def split_units(text: str, size: int = 1) -> list[str]:
    """Split text into fixed-size substrings (single characters by default)."""
    if size <= 1:
        return list(text)
    return [text[i : i + size] for i in range(0, len(text), size)]
