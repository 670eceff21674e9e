"""
Schemas for retrieval output.

VectorChunk is produced by the vector collaborator and is read-only to the
pipeline.  ContextBlock is the derived text injected into the system prompt.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from ca_assistant.schemas.chat import SourceRef


class ChunkMetadata(BaseModel):
    model_config = ConfigDict(extra="allow")

    source: str | None = None
    text_snippet: str | None = None
    text: str | None = None


class VectorChunk(BaseModel):
    """One nearest-neighbour match.  Higher score means more relevant."""
    id: str
    score: float | None = None
    metadata: ChunkMetadata = Field(default_factory=ChunkMetadata)

    @property
    def snippet(self) -> str:
        return self.metadata.text_snippet or self.metadata.text or ""

    def to_source(self) -> SourceRef:
        return SourceRef(source=self.metadata.source, snippet=self.metadata.text_snippet)


class ContextBlock(BaseModel):
    text: str = ""
    chunks: list[VectorChunk] = Field(default_factory=list)
    sufficient: bool = True

    @property
    def is_empty(self) -> bool:
        return not self.text
