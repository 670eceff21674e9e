"""
Canonical outbound stream frames.

Wire format is Server-Sent Events: every frame is ``data: <payload>\n\n``.
The sentinel payload is the literal ``[DONE]``.
"""

from __future__ import annotations

import json
from typing import Union

from pydantic import BaseModel, Field

from ca_assistant.schemas.chat import SourceRef

SENTINEL_PAYLOAD = "[DONE]"


def _sse(payload: str) -> bytes:
    return f"data: {payload}\n\n".encode("utf-8")


class TokenFrame(BaseModel):
    token: str

    def encode(self) -> bytes:
        return _sse(json.dumps({"token": self.token}, ensure_ascii=False))


class ErrorFrame(BaseModel):
    error: str

    def encode(self) -> bytes:
        return _sse(json.dumps({"error": self.error}, ensure_ascii=False))


class DoneFrame(BaseModel):
    sources: list[SourceRef] = Field(default_factory=list)

    def encode(self) -> bytes:
        body = {"done": True, "sources": [s.model_dump() for s in self.sources]}
        return _sse(json.dumps(body, ensure_ascii=False))


class SentinelFrame(BaseModel):
    def encode(self) -> bytes:
        return _sse(SENTINEL_PAYLOAD)


StreamFrame = Union[TokenFrame, ErrorFrame, DoneFrame, SentinelFrame]
