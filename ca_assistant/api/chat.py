"""
Thin API route for the chat endpoint.

No business logic: picks the response mode and hands the request to the
pipeline.  Rejections and pre-stream failures propagate to the exception
handlers in main.py.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import StreamingResponse

from ca_assistant.api.dependencies import get_pipeline
from ca_assistant.core.config import Settings, get_settings
from ca_assistant.pipeline.orchestrator import RequestPipeline
from ca_assistant.schemas.chat import ChatAnswer, ChatRequest
from ca_assistant.utils.logging import get_logger
from ca_assistant.utils.text import preview

logger = get_logger("ca_assistant.api.chat")

router = APIRouter(tags=["Chat"])

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}

STREAM_HEADERS = {
    **CORS_HEADERS,
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


@router.post("", response_model=ChatAnswer)
async def chat(
    request: ChatRequest,
    pipeline: RequestPipeline = Depends(get_pipeline),
    settings: Settings = Depends(get_settings),
):
    stream = settings.stream_responses if request.stream is None else request.stream
    logger.info("[CHAT] New query (stream=%s): %s", stream, preview(request.query))

    if not stream:
        return await pipeline.answer(request)

    body = await pipeline.start_stream(request)
    return StreamingResponse(body, media_type="text/event-stream", headers=STREAM_HEADERS)


@router.options("")
async def chat_preflight() -> Response:
    return Response(status_code=status.HTTP_204_NO_CONTENT, headers=CORS_HEADERS)
