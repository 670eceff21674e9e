"""
Response shapes a generation backend can return.

The dispatcher returns exactly one of these; the reframer has one
extraction path per shape.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Union


async def _noop_close() -> None:
    return None


@dataclass(frozen=True)
class GenerationParams:
    max_tokens: int
    temperature: float


@dataclass(frozen=True)
class CompleteText:
    """A single finished answer."""
    text: str


@dataclass(frozen=True)
class BlockOutput:
    """Structured multi-block output (e.g. several content parts or choices)."""
    blocks: tuple[str, ...]

    @property
    def text(self) -> str:
        return "".join(self.blocks)


@dataclass(frozen=True)
class ByteStream:
    """Raw backend SSE bytes with arbitrary chunk boundaries."""
    chunks: AsyncIterator[bytes]
    close: Callable[[], Awaitable[None]] = _noop_close


@dataclass(frozen=True)
class DeltaStream:
    """Already-decoded incremental text deltas."""
    deltas: AsyncIterator[str]
    close: Callable[[], Awaitable[None]] = _noop_close


GenerationResult = Union[CompleteText, BlockOutput, ByteStream, DeltaStream]
