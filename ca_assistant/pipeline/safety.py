"""
Pipeline Stage 1a: input safety gate.

Rejects empty queries and queries that look like instruction-override
attempts before any retrieval or generation happens.

The injection check is a case-insensitive pattern denylist.  It is a
best-effort heuristic that catches the common phrasings ("ignore system",
"bypass", "act as ...").  It is NOT a security boundary: a trivially
reworded or obfuscated instruction will pass, and legitimate questions that
happen to contain a listed phrase will be refused.
"""

from __future__ import annotations

from typing import Iterable

from ca_assistant.core.errors import EmptyInput, InjectionSuspected
from ca_assistant.utils.logging import get_logger
from ca_assistant.utils.text import compile_patterns, first_match, preview

logger = get_logger("ca_assistant.pipeline.safety")


class SafetyGuard:
    """Pure check over a configured denylist of compiled patterns."""

    def __init__(self, patterns: Iterable[str]):
        self.patterns = compile_patterns(patterns)

    def check(self, query: str) -> str:
        """
        Validate ``query`` and return it trimmed.

        Raises EmptyInput or InjectionSuspected.
        """
        text = (query or "").strip()
        if not text:
            raise EmptyInput("query is empty")

        hit = first_match(self.patterns, text)
        if hit is not None:
            logger.warning("[SAFETY] Rejected query (pattern=%s): %s", hit.pattern, preview(text))
            raise InjectionSuspected(hit.pattern)

        return text
