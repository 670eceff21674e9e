from __future__ import annotations

from ca_assistant.schemas.retrieval import VectorChunk


class NullVectorIndex:
    """Retrieval disabled: every query matches nothing."""

    async def query(self, text: str, top_k: int) -> list[VectorChunk]:
        return []
