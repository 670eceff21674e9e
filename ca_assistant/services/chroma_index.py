"""
ChromaDB-backed vector index for local deployments.

The collection embeds query text itself (its own embedding function), so the
index only needs the question.  Chroma returns distances; they are mapped to
similarity scores as ``1 - distance`` so the relevance floor applies the same
way it does for Vectorize (cosine space).
"""

from __future__ import annotations

import asyncio
from typing import Any

import chromadb

from ca_assistant.schemas.retrieval import ChunkMetadata, VectorChunk
from ca_assistant.utils.logging import get_logger

logger = get_logger("ca_assistant.services.chroma_index")


def _first(results: dict[str, Any], key: str) -> list:
    rows = results.get(key) or [[]]
    return list(rows[0] or []) if rows else []


def results_to_chunks(results: dict[str, Any]) -> list[VectorChunk]:
    ids = _first(results, "ids")
    documents = _first(results, "documents")
    metadatas = _first(results, "metadatas")
    distances = _first(results, "distances")

    chunks: list[VectorChunk] = []
    for i, chunk_id in enumerate(ids):
        metadata = dict(metadatas[i] or {}) if i < len(metadatas) else {}
        if i < len(documents) and documents[i] is not None:
            metadata.setdefault("text", documents[i])
        distance = distances[i] if i < len(distances) else None
        chunks.append(
            VectorChunk(
                id=str(chunk_id),
                score=1.0 - float(distance) if distance is not None else None,
                metadata=ChunkMetadata.model_validate(metadata),
            )
        )
    return chunks


class ChromaVectorIndex:
    def __init__(self, collection: Any):
        self.collection = collection

    @classmethod
    def open(cls, persist_directory: str, collection_name: str) -> "ChromaVectorIndex":
        client = chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.Settings(anonymized_telemetry=False),
        )
        collection = client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": "cosine"},
        )
        logger.info("ChromaDB collection '%s' opened at %s", collection_name, persist_directory)
        return cls(collection)

    async def query(self, text: str, top_k: int) -> list[VectorChunk]:
        # chromadb is synchronous; keep it off the event loop
        results = await asyncio.to_thread(
            self.collection.query,
            query_texts=[text],
            n_results=top_k,
            include=["documents", "metadatas", "distances"],
        )
        return results_to_chunks(results)
