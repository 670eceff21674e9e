"""
Pipeline orchestrator: top-level entry point.

Runs one chat request through the stages in order:

  1. Safety guard (reject empty / suspicious input before any I/O)
  2. Complexity classification
  3. Retrieval + context block
  4. Prompt assembly
  5. Generation dispatch
  6. Stream re-framing

Streaming responses are pumped through a bounded queue: a producer task
drives the reframer and the response body drains the queue.  If the client
goes away the producer is cancelled and the backend stream is closed.
"""

from __future__ import annotations

import asyncio
from contextlib import aclosing
from typing import AsyncIterator

from ca_assistant.core.config import Settings
from ca_assistant.core.errors import GenerationFailed
from ca_assistant.pipeline.classifier import QueryClassifier
from ca_assistant.pipeline.dispatcher import GenerationDispatcher
from ca_assistant.pipeline.prompt_assembler import PromptAssembler
from ca_assistant.pipeline.reframer import StreamReframer, close_result
from ca_assistant.pipeline.retrieval import ContextRetriever
from ca_assistant.pipeline.safety import SafetyGuard
from ca_assistant.prompts.constants import CA_SYSTEM_PROMPT, INSUFFICIENT_CONTEXT_REPLY
from ca_assistant.schemas.chat import ChatAnswer, ChatRequest
from ca_assistant.schemas.frames import ErrorFrame, TokenFrame
from ca_assistant.schemas.generation import (
    BlockOutput,
    CompleteText,
    GenerationParams,
    GenerationResult,
)
from ca_assistant.schemas.pipeline import ComplexityTier, PipelineContext
from ca_assistant.services.base import GenerationBackend, VectorIndex
from ca_assistant.utils.logging import get_logger
from ca_assistant.utils.text import preview
from ca_assistant.utils.timing import Timer

logger = get_logger("ca_assistant.pipeline.orchestrator")


class RequestPipeline:
    def __init__(
        self,
        settings: Settings,
        *,
        index: VectorIndex,
        backend: GenerationBackend,
        system_template: str = CA_SYSTEM_PROMPT,
    ):
        self.settings = settings
        self.index = index
        self.backend = backend
        self.system_template = system_template

        self.guard = SafetyGuard(settings.injection_patterns)
        self.classifier = QueryClassifier(settings.complexity_patterns)
        self.retriever = ContextRetriever(
            index,
            top_k=settings.retrieval_top_k,
            relevance_floor=settings.relevance_floor,
            separator=settings.context_separator,
            min_context_chars=settings.min_context_chars,
            timeout_seconds=settings.retrieval_timeout_seconds,
        )
        self.assembler = PromptAssembler(settings.history_max_messages)
        self.dispatcher = GenerationDispatcher(
            backend,
            {
                ComplexityTier.SIMPLE: settings.simple_model,
                ComplexityTier.COMPLEX: settings.complex_model,
            },
            GenerationParams(
                max_tokens=settings.max_output_tokens,
                temperature=settings.temperature,
            ),
            timeout_seconds=settings.generation_timeout_seconds,
            read_timeout_seconds=settings.stream_read_timeout_seconds,
        )

    # ── Stages 1-4 ───────────────────────────────────────────────────

    async def prepare(self, request: ChatRequest) -> PipelineContext:
        """Guard, classify, retrieve and assemble.  Raises Rejected on bad input."""
        query = self.guard.check(request.query)
        ctx = PipelineContext(query=query, history=request.history)
        logger.info("[PIPELINE] Started | query: %s", preview(query))

        ctx.tier = self.classifier.classify(query)
        ctx.model = self.dispatcher.model_for(ctx.tier)

        async with Timer("retrieval", into=ctx.stage_timings):
            ctx.chunks = await self.retriever.retrieve(query)
        ctx.context = self.retriever.build_context(ctx.chunks)

        ctx.messages = self.assembler.assemble(
            self.system_template, ctx.context.text, ctx.history, query
        )
        logger.info(
            "[PIPELINE] Prepared (%.2fs) | tier=%s chunks=%d context_chars=%d",
            ctx.elapsed_seconds, ctx.tier.value, len(ctx.chunks), len(ctx.context.text),
        )
        return ctx

    # ── Stage 5 ──────────────────────────────────────────────────────

    async def generate(self, ctx: PipelineContext, *, stream: bool) -> GenerationResult:
        if (
            self.settings.insufficient_context_hard_stop
            and ctx.context is not None
            and not ctx.context.sufficient
        ):
            logger.info("[PIPELINE] Short-circuit: insufficient context (no generation)")
            return CompleteText(INSUFFICIENT_CONTEXT_REPLY)

        async with Timer("generation", into=ctx.stage_timings) as t:
            result = await self.dispatcher.generate(ctx.tier, ctx.messages, stream=stream)
        logger.info(
            "[PIPELINE] Backend answered (%.2fs) | shape=%s",
            t.elapsed_s, type(result).__name__,
        )
        return result

    # ── Stage 6 ──────────────────────────────────────────────────────

    def reframer_for(self, ctx: PipelineContext) -> StreamReframer:
        return StreamReframer(
            ctx.sources,
            chunk_size=self.settings.token_chunk_size,
            delay_seconds=self.settings.synthetic_delay_ms / 1000,
            max_pending_chars=self.settings.max_pending_fragment_chars,
        )

    async def start_stream(self, request: ChatRequest) -> AsyncIterator[bytes]:
        """
        Run stages 1-5 and return the encoded frame iterator.

        Everything that can fail before the first byte (rejection, a backend
        that fails to start) raises here, so the caller can still answer
        with a plain error status.
        """
        ctx = await self.prepare(request)
        result = await self.generate(ctx, stream=True)
        return self._pump(ctx, result)

    async def answer(self, request: ChatRequest) -> ChatAnswer:
        """Non-streaming mode: the whole answer as one JSON body."""
        ctx = await self.prepare(request)
        result = await self.generate(ctx, stream=False)
        if isinstance(result, (CompleteText, BlockOutput)):
            text = result.text
        else:
            text = await self._collect(ctx, result)
        logger.info("[PIPELINE] Complete (%.2fs) | answer_chars=%d", ctx.elapsed_seconds, len(text))
        return ChatAnswer(answer=text, sources=ctx.sources)

    async def _collect(self, ctx: PipelineContext, result: GenerationResult) -> str:
        parts: list[str] = []
        async with aclosing(self.reframer_for(ctx).frames(result)) as frames:
            async for frame in frames:
                if isinstance(frame, ErrorFrame):
                    raise GenerationFailed("backend stream failed before completion")
                if isinstance(frame, TokenFrame):
                    parts.append(frame.token)
        return "".join(parts)

    async def _pump(self, ctx: PipelineContext, result: GenerationResult) -> AsyncIterator[bytes]:
        queue: asyncio.Queue[bytes | None] = asyncio.Queue(maxsize=self.settings.frame_queue_size)
        producer = asyncio.create_task(self._produce(self.reframer_for(ctx), result, queue))
        frames = 0
        try:
            while True:
                item = await queue.get()
                if item is None:
                    break
                frames += 1
                yield item
        finally:
            if not producer.done():
                logger.info("[PIPELINE] Client went away after %d frame(s); cancelling", frames)
                producer.cancel()
            await asyncio.gather(producer, return_exceptions=True)
            # the producer may have been cancelled before it ever started
            await close_result(result)
        logger.info("[PIPELINE] Stream complete (%.2fs) | frames=%d", ctx.elapsed_seconds, frames)

    @staticmethod
    async def _produce(
        reframer: StreamReframer,
        result: GenerationResult,
        queue: asyncio.Queue[bytes | None],
    ) -> None:
        try:
            async with aclosing(reframer.frames(result)) as frames:
                async for frame in frames:
                    await queue.put(frame.encode())
        except Exception:
            logger.error("[PIPELINE] Frame producer failed", exc_info=True)
        await queue.put(None)

    async def aclose(self) -> None:
        await self.backend.aclose()
        close_index = getattr(self.index, "aclose", None)
        if close_index is not None:
            await close_index()
