"""Cloudflare Vectorize index: embed the query with Workers AI, then search."""

from __future__ import annotations

from typing import Any

from ca_assistant.schemas.retrieval import ChunkMetadata, VectorChunk
from ca_assistant.services.workers_ai import WorkersAIClient
from ca_assistant.utils.logging import get_logger

logger = get_logger("ca_assistant.services.vectorize")


def match_to_chunk(match: dict[str, Any]) -> VectorChunk:
    score = match.get("score")
    return VectorChunk(
        id=str(match.get("id", "")),
        score=float(score) if score is not None else None,
        metadata=ChunkMetadata.model_validate(match.get("metadata") or {}),
    )


class VectorizeIndex:
    def __init__(self, client: WorkersAIClient, index_name: str, embedding_model: str):
        self.client = client
        self.index_name = index_name
        self.embedding_model = embedding_model

    async def query(self, text: str, top_k: int) -> list[VectorChunk]:
        vector = await self.client.embed(self.embedding_model, text)
        matches = await self.client.query_vectorize(self.index_name, vector, top_k)
        logger.debug("[VECTORIZE] %s returned %d match(es)", self.index_name, len(matches))
        return [match_to_chunk(m) for m in matches]

    async def aclose(self) -> None:
        await self.client.aclose()
