"""
Collaborator contracts consumed by the pipeline.

Both collaborators are opaque to the core: a nearest-neighbour index and a
text-generation backend.  Concrete adapters live next to this module.
"""

from __future__ import annotations

from typing import Protocol, Sequence

from ca_assistant.schemas.chat import ChatMessage
from ca_assistant.schemas.generation import GenerationParams, GenerationResult
from ca_assistant.schemas.retrieval import VectorChunk


class VectorIndex(Protocol):
    async def query(self, text: str, top_k: int) -> list[VectorChunk]:
        """Return up to ``top_k`` scored matches for ``text``, best first."""


class GenerationBackend(Protocol):
    async def generate(
        self,
        model: str,
        messages: Sequence[ChatMessage],
        params: GenerationParams,
        *,
        stream: bool,
    ) -> GenerationResult:
        """Run ``model`` over ``messages``; stream when asked and supported."""

    async def aclose(self) -> None:
        """Release pooled connections."""
