"""
Pipeline Stage 2: Retrieval.

1. Query the vector index (best effort, bounded by a timeout)
2. Drop chunks scored below the relevance floor
3. Build the context block (dedup + join + sufficiency policy)

Retrieval is an enrichment, not a hard dependency: any index failure
degrades to an empty chunk list and generation still proceeds.
"""

from __future__ import annotations

import asyncio
from typing import Iterable

from ca_assistant.core.errors import RetrievalFailure
from ca_assistant.schemas.retrieval import ContextBlock, VectorChunk
from ca_assistant.services.base import VectorIndex
from ca_assistant.utils.logging import get_logger
from ca_assistant.utils.text import preview
from ca_assistant.utils.timing import timed

logger = get_logger("ca_assistant.pipeline.retrieval")


def filter_by_relevance(chunks: Iterable[VectorChunk], floor: float) -> list[VectorChunk]:
    """Keep unscored chunks and chunks scoring at or above ``floor``."""
    return [c for c in chunks if c.score is None or c.score >= floor]


def dedupe_texts(texts: Iterable[str]) -> list[str]:
    """Collapse byte-identical texts, preserving first-seen order."""
    seen: set[str] = set()
    unique: list[str] = []
    for text in texts:
        if text in seen:
            continue
        seen.add(text)
        unique.append(text)
    return unique


class ContextRetriever:
    def __init__(
        self,
        index: VectorIndex,
        *,
        top_k: int = 5,
        relevance_floor: float = 0.75,
        separator: str = "\n---\n",
        min_context_chars: int | None = None,
        timeout_seconds: float | None = None,
    ):
        self.index = index
        self.top_k = top_k
        self.relevance_floor = relevance_floor
        self.separator = separator
        self.min_context_chars = min_context_chars
        self.timeout_seconds = timeout_seconds

    @timed("retrieval")
    async def retrieve(self, query: str, top_k: int | None = None) -> list[VectorChunk]:
        """Ordered, floor-filtered chunks for ``query``; ``[]`` on any failure."""
        k = top_k if top_k is not None else self.top_k
        try:
            raw = await self._query_index(query, k)
        except RetrievalFailure as e:
            logger.warning("[RETRIEVAL] Degrading to empty context: %s", e)
            return []

        kept = filter_by_relevance(raw, self.relevance_floor)
        logger.info(
            "[RETRIEVAL] %d/%d chunk(s) kept (floor=%.2f) | query: %s",
            len(kept), len(raw), self.relevance_floor, preview(query),
        )
        return kept

    def build_context(self, chunks: list[VectorChunk]) -> ContextBlock:
        texts = dedupe_texts(t for t in (c.snippet for c in chunks) if t)
        text = self.separator.join(texts)
        sufficient = self.min_context_chars is None or len(text) >= self.min_context_chars
        if not sufficient:
            logger.info(
                "[RETRIEVAL] Context insufficient: %d chars < %d",
                len(text), self.min_context_chars,
            )
        return ContextBlock(text=text, chunks=list(chunks), sufficient=sufficient)

    async def _query_index(self, query: str, k: int) -> list[VectorChunk]:
        try:
            if self.timeout_seconds is None:
                return await self.index.query(query, k)
            return await asyncio.wait_for(self.index.query(query, k), self.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise RetrievalFailure(f"vector query timed out after {self.timeout_seconds}s") from e
        except Exception as e:
            raise RetrievalFailure(f"vector query failed: {e}") from e
