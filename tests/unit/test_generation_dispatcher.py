import asyncio

import httpx
import pytest
from conftest import CloseTracker, FakeBackend, byte_stream, collect, run

from ca_assistant.core.errors import GenerationFailed
from ca_assistant.pipeline.dispatcher import GenerationDispatcher
from ca_assistant.schemas.chat import ChatMessage
from ca_assistant.schemas.generation import ByteStream, CompleteText, DeltaStream, GenerationParams
from ca_assistant.schemas.pipeline import ComplexityTier

MODELS = {ComplexityTier.SIMPLE: "small", ComplexityTier.COMPLEX: "large"}
PARAMS = GenerationParams(max_tokens=2200, temperature=0.15)
MESSAGES = [ChatMessage(role="system", content="s"), ChatMessage(role="user", content="q")]


def _dispatcher(backend, **kwargs) -> GenerationDispatcher:
    return GenerationDispatcher(backend, MODELS, PARAMS, **kwargs)


@pytest.mark.parametrize("tier, model", [(ComplexityTier.SIMPLE, "small"), (ComplexityTier.COMPLEX, "large")])
def test_tier_selects_model(tier: ComplexityTier, model: str) -> None:
    backend = FakeBackend(CompleteText("ok"))

    result = run(_dispatcher(backend).generate(tier, MESSAGES, stream=False))

    assert result == CompleteText("ok")
    call = backend.calls[0]
    assert call["model"] == model
    assert call["params"] == PARAMS
    assert call["stream"] is False
    assert call["messages"] == MESSAGES


def test_missing_tier_rejected() -> None:
    with pytest.raises(ValueError):
        GenerationDispatcher(FakeBackend(), {ComplexityTier.SIMPLE: "small"}, PARAMS)


def test_backend_error_becomes_generation_failed() -> None:
    backend = FakeBackend(error=RuntimeError("HTTP 503"))
    with pytest.raises(GenerationFailed):
        run(_dispatcher(backend).generate(ComplexityTier.SIMPLE, MESSAGES, stream=True))
    assert len(backend.calls) == 1


def test_backend_timeout_becomes_generation_failed() -> None:
    backend = FakeBackend(CompleteText("late"), delay=1.0)
    with pytest.raises(GenerationFailed):
        run(_dispatcher(backend, timeout_seconds=0.01).generate(ComplexityTier.SIMPLE, MESSAGES, stream=False))


def test_stream_read_failure_becomes_generation_failed() -> None:
    stream, _ = byte_stream([b"data: {}\n\n"], then_raise=httpx.ReadError("connection reset"))

    async def scenario():
        result = await _dispatcher(FakeBackend(stream)).generate(ComplexityTier.SIMPLE, MESSAGES, stream=True)
        assert isinstance(result, ByteStream)
        return await collect(result.chunks)

    with pytest.raises(GenerationFailed):
        run(scenario())


def test_stalled_stream_times_out() -> None:
    async def stalled():
        yield b"data: {}\n\n"
        await asyncio.sleep(10)
        yield b"never"

    async def scenario():
        backend = FakeBackend(DeltaStream(deltas=stalled()))
        result = await _dispatcher(backend, read_timeout_seconds=0.01).generate(
            ComplexityTier.SIMPLE, MESSAGES, stream=True
        )
        return await collect(result.deltas)

    with pytest.raises(GenerationFailed):
        run(scenario())


def test_stream_close_runs_once() -> None:
    tracker = CloseTracker()

    async def scenario():
        backend = FakeBackend(ByteStream(chunks=_empty(), close=tracker))
        result = await _dispatcher(backend).generate(ComplexityTier.SIMPLE, MESSAGES, stream=True)
        await result.close()
        await result.close()

    run(scenario())
    assert tracker.count == 1


def test_stream_items_pass_through() -> None:
    stream, _ = byte_stream([b"a", b"b"])

    async def scenario():
        result = await _dispatcher(FakeBackend(stream), read_timeout_seconds=1.0).generate(
            ComplexityTier.COMPLEX, MESSAGES, stream=True
        )
        return await collect(result.chunks)

    assert run(scenario()) == [b"a", b"b"]


async def _empty():
    return
    yield
