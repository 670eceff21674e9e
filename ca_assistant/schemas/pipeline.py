"""
PipelineContext carries per-request state between the pipeline stages.

Created once per inbound request and progressively enriched by each stage;
it is never shared between requests.
"""

from __future__ import annotations

import time
from enum import Enum

from pydantic import BaseModel, Field

from ca_assistant.schemas.chat import ChatMessage, SourceRef
from ca_assistant.schemas.retrieval import ContextBlock, VectorChunk


class ComplexityTier(str, Enum):
    SIMPLE = "simple"
    COMPLEX = "complex"


class PipelineContext(BaseModel):
    """Shared context object threaded through all pipeline stages."""

    # ── Inputs ───────────────────────────────────────────────────────
    query: str
    history: list[ChatMessage] = Field(default_factory=list)

    # ── Stage outputs (populated progressively) ─────────────────────
    tier: ComplexityTier | None = None
    model: str | None = None
    chunks: list[VectorChunk] = Field(default_factory=list)
    context: ContextBlock | None = None
    messages: list[ChatMessage] = Field(default_factory=list)

    # ── Timing ──────────────────────────────────────────────────────
    start_time: float = Field(default_factory=time.time)
    stage_timings: dict[str, float] = Field(default_factory=dict)

    @property
    def sources(self) -> list[SourceRef]:
        return [chunk.to_source() for chunk in self.chunks]

    @property
    def elapsed_seconds(self) -> float:
        return time.time() - self.start_time
