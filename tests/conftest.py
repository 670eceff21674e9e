"""Shared fakes for the pipeline collaborators."""

from __future__ import annotations

import asyncio
import json
from typing import Any, AsyncIterator, Callable, Iterable

import pytest

from ca_assistant.core.config import Settings
from ca_assistant.schemas.chat import ChatMessage
from ca_assistant.schemas.generation import ByteStream, GenerationParams, GenerationResult
from ca_assistant.schemas.retrieval import ChunkMetadata, VectorChunk


def make_settings(**overrides: Any) -> Settings:
    base = {
        "simple_model": "simple-model",
        "complex_model": "complex-model",
        "synthetic_delay_ms": 0,
    }
    base.update(overrides)
    return Settings(**base)


def make_chunk(chunk_id: str, score: float | None, text: str, source: str | None = None) -> VectorChunk:
    return VectorChunk(
        id=chunk_id,
        score=score,
        metadata=ChunkMetadata(source=source or f"{chunk_id}.pdf", text_snippet=text),
    )


def sse_body(deltas: Iterable[str], *, done: bool = True) -> bytes:
    body = b"".join(
        b"data: " + json.dumps({"response": d}, ensure_ascii=False).encode("utf-8") + b"\n\n"
        for d in deltas
    )
    if done:
        body += b"data: [DONE]\n\n"
    return body


class CloseTracker:
    def __init__(self) -> None:
        self.count = 0

    async def __call__(self) -> None:
        self.count += 1


async def iterate(chunks: Iterable[bytes], *, then_raise: BaseException | None = None) -> AsyncIterator[bytes]:
    for chunk in chunks:
        await asyncio.sleep(0)
        yield chunk
    if then_raise is not None:
        raise then_raise


def byte_stream(chunks: Iterable[bytes], *, then_raise: BaseException | None = None) -> tuple[ByteStream, CloseTracker]:
    tracker = CloseTracker()
    return ByteStream(chunks=iterate(list(chunks), then_raise=then_raise), close=tracker), tracker


class FakeVectorIndex:
    def __init__(
        self,
        chunks: list[VectorChunk] | None = None,
        *,
        error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self.chunks = chunks or []
        self.error = error
        self.delay = delay
        self.calls: list[tuple[str, int]] = []

    async def query(self, text: str, top_k: int) -> list[VectorChunk]:
        self.calls.append((text, top_k))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.chunks)


class FakeBackend:
    """Returns ``result`` (or ``factory()``) and records every call."""

    def __init__(
        self,
        result: GenerationResult | None = None,
        *,
        factory: Callable[[], GenerationResult] | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self.result = result
        self.factory = factory
        self.error = error
        self.delay = delay
        self.calls: list[dict[str, Any]] = []
        self.closed = 0

    async def generate(
        self,
        model: str,
        messages: list[ChatMessage],
        params: GenerationParams,
        *,
        stream: bool,
    ) -> GenerationResult:
        self.calls.append({"model": model, "messages": list(messages), "params": params, "stream": stream})
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if self.factory is not None:
            return self.factory()
        return self.result

    async def aclose(self) -> None:
        self.closed += 1


def run(coro):
    return asyncio.run(coro)


async def collect(aiter: AsyncIterator[Any]) -> list[Any]:
    return [item async for item in aiter]


def parse_sse(body: str | bytes) -> list[Any]:
    """Split an SSE body into payloads; JSON payloads are decoded."""
    if isinstance(body, bytes):
        body = body.decode("utf-8")
    payloads: list[Any] = []
    for event in body.split("\n\n"):
        if not event:
            continue
        assert event.startswith("data: "), event
        data = event[len("data: "):]
        payloads.append(data if data == "[DONE]" else json.loads(data))
    return payloads


@pytest.fixture
def settings() -> Settings:
    return make_settings()
