"""OpenAI-compatible generation backend (openai AsyncOpenAI)."""

from __future__ import annotations

from typing import Any, AsyncIterator, Sequence

from openai import AsyncOpenAI

from ca_assistant.core.errors import GenerationFailed
from ca_assistant.schemas.chat import ChatMessage
from ca_assistant.schemas.generation import (
    CompleteText,
    DeltaStream,
    GenerationParams,
    GenerationResult,
)
from ca_assistant.utils.logging import get_logger

logger = get_logger("ca_assistant.services.openai_backend")


async def _deltas(stream: Any) -> AsyncIterator[str]:
    async for chunk in stream:
        if not chunk.choices:
            continue
        content = chunk.choices[0].delta.content
        if content:
            yield content


class OpenAIBackend:
    def __init__(self, client: AsyncOpenAI):
        self.client = client

    @classmethod
    def from_credentials(cls, api_key: str | None, base_url: str | None = None) -> "OpenAIBackend":
        if not api_key:
            raise ValueError("OpenAI API key not configured (CA_OPENAI_API_KEY)")
        return cls(AsyncOpenAI(api_key=api_key, base_url=base_url))

    async def generate(
        self,
        model: str,
        messages: Sequence[ChatMessage],
        params: GenerationParams,
        *,
        stream: bool,
    ) -> GenerationResult:
        kwargs = {
            "model": model,
            "messages": [m.model_dump() for m in messages],
            "max_tokens": params.max_tokens,
            "temperature": params.temperature,
        }
        logger.debug("[OPENAI] %s stream=%s", model, stream)
        if stream:
            response = await self.client.chat.completions.create(**kwargs, stream=True)
            return DeltaStream(deltas=_deltas(response), close=response.close)

        response = await self.client.chat.completions.create(**kwargs)
        content = response.choices[0].message.content if response.choices else None
        if content is None:
            raise GenerationFailed(f"{model} returned no content")
        return CompleteText(content)

    async def aclose(self) -> None:
        await self.client.close()
