"""
Pipeline Stage 1b: rule-based complexity classification.

Zero cost, deterministic.  The tier only chooses which model the
dispatcher calls; it never blocks a request.
"""

from __future__ import annotations

from typing import Iterable

from ca_assistant.schemas.pipeline import ComplexityTier
from ca_assistant.utils.logging import get_logger
from ca_assistant.utils.text import compile_patterns, first_match

logger = get_logger("ca_assistant.pipeline.classifier")


class QueryClassifier:
    """``complex`` when any configured pattern matches, otherwise ``simple``."""

    def __init__(self, patterns: Iterable[str]):
        self.patterns = compile_patterns(patterns)

    def classify(self, query: str) -> ComplexityTier:
        hit = first_match(self.patterns, query or "")
        tier = ComplexityTier.COMPLEX if hit is not None else ComplexityTier.SIMPLE
        logger.info(
            "[CLASSIFY] tier=%s%s",
            tier.value, f" (matched {hit.pattern!r})" if hit is not None else "",
        )
        return tier
