"""
Stage timing helpers.

    async with Timer("retrieval", into=ctx.stage_timings):
        ctx.chunks = await retriever.retrieve(query)

    @timed("retrieval")
    async def retrieve(query): ...

A Timer with ``into`` records its elapsed seconds under its label when the
block exits, including when the block raises.
"""

from __future__ import annotations

import asyncio
import functools
import time
from typing import Any, Callable, MutableMapping

from ca_assistant.utils.logging import get_logger

logger = get_logger("ca_assistant.timing")


class Timer:
    def __init__(self, label: str = "", *, into: MutableMapping[str, float] | None = None):
        if into is not None and not label:
            raise ValueError("a label is required when recording into a mapping")
        self.label = label
        self.into = into
        self._start: float | None = None
        self.elapsed_s: float = 0.0

    @property
    def elapsed_ms(self) -> float:
        return self.elapsed_s * 1000

    def start(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def stop(self) -> float:
        if self._start is None:
            raise RuntimeError("Timer.stop() called before start()")
        self.elapsed_s = time.perf_counter() - self._start
        if self.into is not None:
            self.into[self.label] = self.elapsed_s
        if self.label:
            logger.debug("[TIMING] %s took %.1fms", self.label, self.elapsed_ms)
        return self.elapsed_s

    def __enter__(self) -> "Timer":
        return self.start()

    def __exit__(self, *_: Any) -> None:
        self.stop()

    async def __aenter__(self) -> "Timer":
        return self.start()

    async def __aexit__(self, *_: Any) -> None:
        self.stop()


def timed(label: str | None = None) -> Callable:
    """Log the wall-clock time of each call (coroutine functions only)."""

    def decorator(fn: Callable) -> Callable:
        if not asyncio.iscoroutinefunction(fn):
            raise TypeError(f"@timed expects a coroutine function, got {fn.__qualname__}")
        name = label or fn.__qualname__

        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            async with Timer(name):
                return await fn(*args, **kwargs)

        return wrapper

    return decorator
