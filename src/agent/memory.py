"""
agent.memory - Per-search message history.

Stores messages as a plain list[BaseMessage]. Prior conversation turns are
loaded from persisted Message rows; the current turn's tool-call traffic
is appended as the loop runs and is never persisted.
"""

from __future__ import annotations

import json
import logging
from typing import Iterable

from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)

from domain.entities import Message
from domain.models import AssistantTurn

logger = logging.getLogger(__name__)


class ConversationMemory:
    """Message history for one agent run.

    NOT shared: each search gets its own instance.
    """

    def __init__(self, system_prompt: str, max_messages: int = 20):
        self._system = SystemMessage(content=system_prompt)
        self._max_messages = max_messages
        self._messages: list[BaseMessage] = []

    @property
    def messages(self) -> list[BaseMessage]:
        """System prompt followed by the history, ready for the chat model."""
        return [self._system, *self._messages]

    def load(self, history: Iterable[Message]) -> int:
        """Seed prior turns. Empty assistant placeholders are skipped.

        Returns the number of messages loaded.
        """
        prior: list[BaseMessage] = []
        for msg in history:
            if not msg.content.strip():
                continue
            if msg.role == "user":
                prior.append(HumanMessage(content=msg.content))
            elif msg.role == "assistant":
                prior.append(AIMessage(content=msg.content))
        prior = prior[-self._max_messages:]
        self._messages.extend(prior)
        if prior:
            logger.debug("Loaded %d prior message(s)", len(prior))
        return len(prior)

    def add_user_message(self, content: str) -> None:
        self._messages.append(HumanMessage(content=content))

    def add_assistant_turn(self, turn: AssistantTurn) -> None:
        """Append the model's tool-call request exactly as it was made."""
        self._messages.append(AIMessage(
            content=turn.content,
            tool_calls=[
                {"id": tc.id, "name": tc.name, "args": _args_dict(tc.arguments)}
                for tc in turn.tool_calls
            ],
        ))

    def add_tool_result(self, tool_call_id: str, content: str) -> None:
        self._messages.append(ToolMessage(content=content, tool_call_id=tool_call_id))

    def __len__(self) -> int:
        return len(self._messages)


def _args_dict(arguments: str) -> dict:
    try:
        parsed = json.loads(arguments or "{}")
    except json.JSONDecodeError:
        return {}
    return parsed if isinstance(parsed, dict) else {}
