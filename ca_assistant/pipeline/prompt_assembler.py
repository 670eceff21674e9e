"""
Pipeline Stage 3a: prompt assembly.

Produces: [system (template + context section), *recent history, user query].
"""

from __future__ import annotations

from typing import Sequence

from ca_assistant.prompts.constants import CONTEXT_HEADING, EMPTY_CONTEXT_SENTINEL
from ca_assistant.schemas.chat import ChatMessage


def trim_history(history: Sequence[ChatMessage], max_messages: int) -> list[ChatMessage]:
    """
    Keep the most recent ``max_messages`` user/assistant turns, oldest first.

    Caller-supplied system messages are dropped: the assembled sequence has
    exactly one system message and it is always first.
    """
    turns = [m for m in history if m.role != "system"]
    if max_messages <= 0:
        return []
    return turns[-max_messages:]


class PromptAssembler:
    def __init__(self, history_max_messages: int = 6):
        self.history_max_messages = history_max_messages

    def assemble(
        self,
        system_template: str,
        context_text: str,
        history: Sequence[ChatMessage],
        query: str,
    ) -> list[ChatMessage]:
        context_section = context_text if context_text.strip() else EMPTY_CONTEXT_SENTINEL
        system = ChatMessage(
            role="system",
            content=f"{system_template}\n\n{CONTEXT_HEADING}\n{context_section}",
        )
        return [
            system,
            *trim_history(history, self.history_max_messages),
            ChatMessage(role="user", content=query),
        ]
