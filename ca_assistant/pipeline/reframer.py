"""
Stream re-framing: backend output -> canonical client frames.

Whatever shape the backend produced (a finished text, structured blocks, raw
SSE bytes cut at arbitrary offsets, or decoded deltas) leaves this module as

    TokenFrame*  [ErrorFrame]  DoneFrame  SentinelFrame

Raw bytes go through SSEEventDecoder, which owns a persistent text buffer:

* bytes are decoded incrementally, so a multi-byte character split across
  two transport chunks is held until it is complete;
* the buffer is split on the blank-line event delimiter and only complete
  events are parsed; the trailing fragment waits for the next chunk, and is
  dropped (logged) once it grows past ``max_pending_chars``;
* a complete event whose JSON does not parse is held back and re-parsed
  together with the following event.  If the following event parses on its
  own the held fragment is dropped (logged); a held fragment larger than
  ``max_pending_chars`` or still held at end of stream is dropped too;
* the backend's own ``[DONE]`` marker is consumed and never forwarded.

Because only complete events are ever parsed, the emitted text does not
depend on where the transport cut the byte stream.
"""

from __future__ import annotations

import asyncio
import codecs
import json
from enum import Enum
from typing import Any, AsyncIterator, Sequence

from ca_assistant.core.errors import FramingAnomaly, GenerationFailed
from ca_assistant.prompts.constants import GENERATION_ERROR_MESSAGE
from ca_assistant.schemas.chat import SourceRef
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
    GenerationResult,
)
from ca_assistant.utils.logging import get_logger
from ca_assistant.utils.text import split_units

logger = get_logger("ca_assistant.pipeline.reframer")

EVENT_DELIMITER = "\n\n"
BACKEND_DONE_MARKER = "[DONE]"


class ReframerState(str, Enum):
    STREAMING = "streaming"
    FINALIZING = "finalizing"
    CLOSED = "closed"


def extract_delta(payload: Any) -> str:
    """Text delta of one backend event (Workers AI or OpenAI-style chunk)."""
    if not isinstance(payload, dict):
        return ""
    response = payload.get("response")
    if isinstance(response, str):
        return response
    choices = payload.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        delta = choices[0].get("delta")
        if isinstance(delta, dict) and isinstance(delta.get("content"), str):
            return delta["content"]
    return ""


def event_data(raw: str) -> str | None:
    """Joined ``data:`` field of one SSE event, or None if it carries no data."""
    lines: list[str] = []
    for line in raw.split("\n"):
        if not line.startswith("data:"):
            # comments (":"), event:/id:/retry: fields
            continue
        value = line[5:]
        if value.startswith(" "):
            value = value[1:]
        lines.append(value)
    if not lines:
        return None
    return "\n".join(lines)


class SSEEventDecoder:
    """Incremental bytes -> text-delta decoder for a backend SSE stream."""

    def __init__(self, max_pending_chars: int = 65536):
        self.max_pending_chars = max_pending_chars
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._pending: str | None = None
        self.finished = False
        self.closed = False

    @property
    def buffered(self) -> str:
        return self._buffer

    def feed(self, data: bytes) -> list[str]:
        """Consume one transport chunk; return deltas of the events it completed."""
        if self.closed:
            logger.debug("[REFRAME] Discarding %d byte(s) received after close", len(data))
            return []
        self._append(self._decoder.decode(data))
        *events, self._buffer = self._buffer.split(EVENT_DELIMITER)
        deltas: list[str] = []
        for raw in events:
            deltas.extend(self._handle_event(raw))
        if len(self._buffer) > self.max_pending_chars:
            logger.warning(
                "[REFRAME] Dropping undelimited event over %d chars (%d buffered)",
                self.max_pending_chars, len(self._buffer),
            )
            self._buffer = ""
        return deltas

    def close(self) -> list[str]:
        """End of stream: parse a final undelimited event, drop held fragments."""
        if self.closed:
            return []
        self._append(self._decoder.decode(b"", final=True))
        tail, self._buffer = self._buffer, ""
        deltas: list[str] = []
        if tail.strip():
            deltas.extend(self._handle_event(tail))
        if self._pending is not None:
            logger.warning(
                "[REFRAME] Dropping unparseable fragment at end of stream (%d chars)",
                len(self._pending),
            )
            self._pending = None
        self.closed = True
        return deltas

    def _append(self, text: str) -> None:
        # Only the new text is normalised; a trailing CR may pair with a leading LF.
        if self._buffer.endswith("\r") and text.startswith("\n"):
            self._buffer = self._buffer[:-1]
        self._buffer += text.replace("\r\n", "\n")

    def _handle_event(self, raw: str) -> list[str]:
        if self.finished:
            return []
        data = event_data(raw)
        if data is None:
            return []
        if data.strip() == BACKEND_DONE_MARKER:
            self._drop_pending("backend finished")
            self.finished = True
            return []

        try:
            payload = self._parse(raw, data)
        except FramingAnomaly as e:
            logger.debug("[REFRAME] %s", e)
            return []
        delta = extract_delta(payload)
        return [delta] if delta else []

    def _parse(self, raw: str, data: str) -> Any:
        if self._pending is not None:
            merged = self._pending + EVENT_DELIMITER + raw
            try:
                payload = json.loads(event_data(merged) or "")
            except json.JSONDecodeError:
                pass
            else:
                self._pending = None
                return payload

        try:
            payload = json.loads(data)
        except json.JSONDecodeError:
            held = raw if self._pending is None else self._pending + EVENT_DELIMITER + raw
            if len(held) > self.max_pending_chars:
                self._pending = None
                logger.warning("[REFRAME] Dropping oversized unparseable fragment (%d chars)", len(held))
            else:
                self._pending = held
            raise FramingAnomaly(f"incomplete event held for reassembly ({len(held)} chars)")

        self._drop_pending("next event parsed on its own")
        return payload

    def _drop_pending(self, reason: str) -> None:
        if self._pending is not None:
            logger.warning(
                "[REFRAME] Dropping unparseable fragment (%d chars): %s",
                len(self._pending), reason,
            )
            self._pending = None


class StreamReframer:
    """
    One-shot converter from a GenerationResult to canonical frames.

    States: STREAMING -> FINALIZING -> CLOSED.  The done frame carries the
    retained retrieval sources in retrieval order.
    """

    def __init__(
        self,
        sources: Sequence[SourceRef],
        *,
        chunk_size: int = 1,
        delay_seconds: float = 0.0,
        max_pending_chars: int = 65536,
        error_message: str = GENERATION_ERROR_MESSAGE,
    ):
        self.sources = list(sources)
        self.chunk_size = chunk_size
        self.delay_seconds = delay_seconds
        self.max_pending_chars = max_pending_chars
        self.error_message = error_message
        self.state = ReframerState.STREAMING

    async def frames(self, result: GenerationResult) -> AsyncIterator[StreamFrame]:
        if self.state is not ReframerState.STREAMING:
            logger.debug("[REFRAME] Reframer is %s; ignoring new source", self.state.value)
            return

        failed = False
        try:
            async for unit in self._units(result):
                yield TokenFrame(token=unit)
        except Exception as e:
            failed = True
            if isinstance(e, GenerationFailed):
                logger.warning("[REFRAME] Generation failed mid-stream: %s", e)
            else:
                logger.error("[REFRAME] Unexpected error while streaming", exc_info=True)
        finally:
            await close_result(result)

        self.state = ReframerState.FINALIZING
        if failed:
            yield ErrorFrame(error=self.error_message)
        yield DoneFrame(sources=self.sources)
        yield SentinelFrame()
        self.state = ReframerState.CLOSED

    async def _units(self, result: GenerationResult) -> AsyncIterator[str]:
        if isinstance(result, (CompleteText, BlockOutput)):
            for unit in split_units(result.text, self.chunk_size):
                yield unit
                if self.delay_seconds:
                    await asyncio.sleep(self.delay_seconds)

        elif isinstance(result, ByteStream):
            decoder = SSEEventDecoder(self.max_pending_chars)
            async for chunk in result.chunks:
                for delta in decoder.feed(chunk):
                    for unit in split_units(delta, self.chunk_size):
                        yield unit
                if decoder.finished:
                    break
            for delta in decoder.close():
                for unit in split_units(delta, self.chunk_size):
                    yield unit

        elif isinstance(result, DeltaStream):
            async for delta in result.deltas:
                for unit in split_units(delta, self.chunk_size):
                    yield unit

        else:
            raise TypeError(f"unsupported generation result: {type(result).__name__}")


async def close_result(result: GenerationResult) -> None:
    """Release the backend stream handle, if the result holds one."""
    if isinstance(result, (ByteStream, DeltaStream)):
        await result.close()
