"""
Pipeline Stage 3b: generation dispatch.

Maps the complexity tier to a model through a static table and invokes the
backend with fixed generation parameters.  Every backend failure (error,
timeout, broken stream) surfaces as GenerationFailed; nothing is retried.
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Awaitable, Callable, Mapping, Sequence, TypeVar

from ca_assistant.core.errors import GenerationFailed
from ca_assistant.schemas.chat import ChatMessage
from ca_assistant.schemas.generation import (
    ByteStream,
    DeltaStream,
    GenerationParams,
    GenerationResult,
)
from ca_assistant.schemas.pipeline import ComplexityTier
from ca_assistant.services.base import GenerationBackend
from ca_assistant.utils.logging import get_logger

logger = get_logger("ca_assistant.pipeline.dispatcher")

T = TypeVar("T")


class GenerationDispatcher:
    def __init__(
        self,
        backend: GenerationBackend,
        models: Mapping[ComplexityTier, str],
        params: GenerationParams,
        *,
        timeout_seconds: float | None = None,
        read_timeout_seconds: float | None = None,
    ):
        missing = [tier.value for tier in ComplexityTier if tier not in models]
        if missing:
            raise ValueError(f"no model configured for tier(s): {', '.join(missing)}")
        self.backend = backend
        self.models = dict(models)
        self.params = params
        self.timeout_seconds = timeout_seconds
        self.read_timeout_seconds = read_timeout_seconds

    def model_for(self, tier: ComplexityTier) -> str:
        return self.models[tier]

    async def generate(
        self,
        tier: ComplexityTier,
        messages: Sequence[ChatMessage],
        *,
        stream: bool,
    ) -> GenerationResult:
        model = self.model_for(tier)
        logger.info(
            "[DISPATCH] tier=%s model=%s stream=%s messages=%d",
            tier.value, model, stream, len(messages),
        )
        call = self.backend.generate(model, messages, self.params, stream=stream)
        try:
            if self.timeout_seconds is None:
                result = await call
            else:
                result = await asyncio.wait_for(call, self.timeout_seconds)
        except GenerationFailed:
            raise
        except asyncio.TimeoutError as e:
            raise GenerationFailed(f"{model} did not respond within {self.timeout_seconds}s") from e
        except Exception as e:
            logger.error("[DISPATCH] Backend call failed (model=%s): %s", model, e)
            raise GenerationFailed(f"{model} call failed: {e}") from e

        if isinstance(result, ByteStream):
            return ByteStream(chunks=self._guard(result.chunks, model), close=_once(result.close))
        if isinstance(result, DeltaStream):
            return DeltaStream(deltas=self._guard(result.deltas, model), close=_once(result.close))
        return result

    async def _guard(self, source: AsyncIterator[T], model: str) -> AsyncIterator[T]:
        """Apply the per-read timeout and map read failures to GenerationFailed."""
        iterator = source.__aiter__()
        try:
            while True:
                try:
                    if self.read_timeout_seconds is None:
                        item = await iterator.__anext__()
                    else:
                        item = await asyncio.wait_for(iterator.__anext__(), self.read_timeout_seconds)
                except StopAsyncIteration:
                    return
                except GenerationFailed:
                    raise
                except asyncio.TimeoutError as e:
                    raise GenerationFailed(
                        f"{model} stream stalled for {self.read_timeout_seconds}s"
                    ) from e
                except Exception as e:
                    raise GenerationFailed(f"{model} stream broke: {e}") from e
                yield item
        finally:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()


def _once(close: Callable[[], Awaitable[None]]) -> Callable[[], Awaitable[None]]:
    """Make a stream close callback safe to call more than once."""
    closed = False

    async def wrapper() -> None:
        nonlocal closed
        if closed:
            return
        closed = True
        await close()

    return wrapper
