"""
Pydantic schemas for every pipeline boundary.
Each module covers one pipeline stage or cross-cutting concern.
"""

from ca_assistant.schemas.chat import (
    ChatAnswer,
    ChatMessage,
    ChatRequest,
    SourceRef,
)
from ca_assistant.schemas.frames import (
    DoneFrame,
    ErrorFrame,
    SentinelFrame,
    StreamFrame,
    TokenFrame,
)
from ca_assistant.schemas.generation import (
    BlockOutput,
    ByteStream,
    CompleteText,
    DeltaStream,
    GenerationParams,
    GenerationResult,
)
from ca_assistant.schemas.pipeline import ComplexityTier, PipelineContext
from ca_assistant.schemas.retrieval import ChunkMetadata, ContextBlock, VectorChunk

__all__ = [
    # Chat
    "ChatAnswer",
    "ChatMessage",
    "ChatRequest",
    "SourceRef",
    # Frames
    "DoneFrame",
    "ErrorFrame",
    "SentinelFrame",
    "StreamFrame",
    "TokenFrame",
    # Generation
    "BlockOutput",
    "ByteStream",
    "CompleteText",
    "DeltaStream",
    "GenerationParams",
    "GenerationResult",
    # Pipeline
    "ComplexityTier",
    "PipelineContext",
    # Retrieval
    "ChunkMetadata",
    "ContextBlock",
    "VectorChunk",
]
