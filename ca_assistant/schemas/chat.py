"""
Schemas for the chat API boundary.

ChatRequest / ChatAnswer are the external contract; ChatMessage is also the
unit the prompt assembler and generation backends work with.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

Role = Literal["system", "user", "assistant"]


class ChatMessage(BaseModel):
    role: Role
    content: str


class ChatRequest(BaseModel):
    query: str = ""
    history: list[ChatMessage] = Field(default_factory=list)
    # None defers to Settings.stream_responses
    stream: bool | None = None


class SourceRef(BaseModel):
    """One `{source, snippet}` pair reported with the final frame."""
    source: str | None = None
    snippet: str | None = None


class ChatAnswer(BaseModel):
    """Non-streaming response body."""
    answer: str
    sources: list[SourceRef] = Field(default_factory=list)
