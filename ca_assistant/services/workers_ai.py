"""
Cloudflare Workers AI REST client and generation backend.

One pooled httpx.AsyncClient per process.  ``run`` returns the JSON envelope,
``run_stream`` returns the raw SSE body as a ByteStream (the reframer owns all
parsing of streamed bytes), ``embed`` returns one embedding vector.

Envelope:  {"success": bool, "result": {...}, "errors": [{"code", "message"}]}
"""

from __future__ import annotations

from typing import Any, Sequence

import httpx

from ca_assistant.schemas.chat import ChatMessage
from ca_assistant.schemas.generation import (
    BlockOutput,
    ByteStream,
    CompleteText,
    GenerationParams,
    GenerationResult,
)
from ca_assistant.utils.logging import get_logger

logger = get_logger("ca_assistant.services.workers_ai")

DEFAULT_BASE_URL = "https://api.cloudflare.com/client/v4"


class WorkersAIError(Exception):
    """The Workers AI / Vectorize API refused or failed a call."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def _error_detail(body: Any) -> str:
    if isinstance(body, dict):
        errors = body.get("errors") or []
        messages = [str(e.get("message", e)) if isinstance(e, dict) else str(e) for e in errors]
        if messages:
            return "; ".join(messages)
    return "unknown error"


def _content_blocks(content: Any) -> tuple[str, ...]:
    if isinstance(content, str):
        return (content,)
    blocks: list[str] = []
    for part in content:
        if isinstance(part, str):
            blocks.append(part)
        elif isinstance(part, dict) and isinstance(part.get("text"), str):
            blocks.append(part["text"])
    return tuple(blocks)


def parse_run_result(body: Any) -> CompleteText | BlockOutput:
    """
    Map a non-streaming run response onto a generation result shape.

    Handles the native ``{"response": "..."}`` result, a list of content
    blocks under ``response``, and the OpenAI-compatible ``choices`` form.
    """
    result = body.get("result", body) if isinstance(body, dict) else body
    if isinstance(result, str):
        return CompleteText(result)
    if not isinstance(result, dict):
        raise WorkersAIError(f"unrecognised run result: {type(result).__name__}")

    response = result.get("response")
    if isinstance(response, str):
        return CompleteText(response)
    if isinstance(response, list):
        return BlockOutput(_content_blocks(response))

    choices = result.get("choices")
    if isinstance(choices, list) and choices:
        first = choices[0] if isinstance(choices[0], dict) else {}
        content = (first.get("message") or {}).get("content")
        if isinstance(content, str):
            return CompleteText(content)
        if isinstance(content, list):
            return BlockOutput(_content_blocks(content))

    raise WorkersAIError("run result carries no text response")


class WorkersAIClient:
    def __init__(
        self,
        account_id: str,
        api_token: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 60.0,
    ):
        if not account_id or not api_token:
            raise ValueError("Cloudflare account id and API token are required")
        self.account_id = account_id
        self.base_url = base_url.rstrip("/")
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._headers = {"Authorization": f"Bearer {api_token}"}

    def _url(self, path: str) -> str:
        return f"{self.base_url}/accounts/{self.account_id}/{path.lstrip('/')}"

    async def _post_json(self, path: str, payload: dict[str, Any]) -> Any:
        logger.debug("[WORKERS_AI] POST %s", path)
        response = await self._http.post(self._url(path), json=payload, headers=self._headers)
        try:
            body = response.json()
        except ValueError:
            body = None
        if response.status_code >= 400 or (isinstance(body, dict) and body.get("success") is False):
            raise WorkersAIError(
                f"{path} failed with HTTP {response.status_code}: {_error_detail(body)}",
                status_code=response.status_code,
            )
        if body is None:
            raise WorkersAIError(f"{path} returned a non-JSON body", status_code=response.status_code)
        return body

    async def run(self, model: str, payload: dict[str, Any]) -> Any:
        return await self._post_json(f"ai/run/{model}", payload)

    async def run_stream(self, model: str, payload: dict[str, Any]) -> ByteStream:
        request = self._http.build_request(
            "POST",
            self._url(f"ai/run/{model}"),
            json={**payload, "stream": True},
            headers={**self._headers, "Accept": "text/event-stream"},
        )
        response = await self._http.send(request, stream=True)
        if response.status_code >= 400:
            try:
                await response.aread()
                detail = _error_detail(response.json())
            except ValueError:
                detail = "unknown error"
            finally:
                await response.aclose()
            raise WorkersAIError(
                f"streaming run of {model} failed with HTTP {response.status_code}: {detail}",
                status_code=response.status_code,
            )
        return ByteStream(chunks=response.aiter_bytes(), close=response.aclose)

    async def embed(self, model: str, text: str) -> list[float]:
        body = await self.run(model, {"text": [text]})
        data = (body.get("result") or {}).get("data") or []
        if not data:
            raise WorkersAIError(f"{model} returned no embedding")
        return list(data[0])

    async def query_vectorize(self, index_name: str, vector: list[float], top_k: int) -> list[dict]:
        body = await self._post_json(
            f"vectorize/v2/indexes/{index_name}/query",
            {
                "vector": vector,
                "topK": top_k,
                "returnMetadata": "all",
                "returnValues": False,
            },
        )
        return list((body.get("result") or {}).get("matches") or [])

    async def aclose(self) -> None:
        await self._http.aclose()


class WorkersAIBackend:
    """GenerationBackend over Workers AI chat models."""

    def __init__(self, client: WorkersAIClient):
        self.client = client

    async def generate(
        self,
        model: str,
        messages: Sequence[ChatMessage],
        params: GenerationParams,
        *,
        stream: bool,
    ) -> GenerationResult:
        payload = {
            "messages": [m.model_dump() for m in messages],
            "max_tokens": params.max_tokens,
            "temperature": params.temperature,
        }
        if stream:
            return await self.client.run_stream(model, payload)
        return parse_run_result(await self.client.run(model, payload))

    async def aclose(self) -> None:
        await self.client.aclose()
