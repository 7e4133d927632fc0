"""
infrastructure.llm.chat_model - Tool-calling chat completion adapter.

Implements ChatModelPort on top of any LangChain BaseChatModel. The agent
hands over LangChain messages plus OpenAI-style function definitions and
gets back a provider-neutral AssistantTurn.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Sequence

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage

from domain.exceptions import UpstreamLLMError
from domain.models import AssistantTurn, ToolCall

logger = logging.getLogger(__name__)


class LangChainChatModel:
    """Implements ChatModelPort (structural typing, no explicit inheritance)."""

    def __init__(self, llm: BaseChatModel):
        self._llm = llm

    async def complete(
        self, messages: Sequence[BaseMessage], tools: list[dict[str, Any]],
    ) -> AssistantTurn:
        """Run one completion with tool_choice="auto".

        Raises:
            UpstreamLLMError: On any provider failure. The search cannot
                continue without the model, so callers treat this as fatal.
        """
        runnable = self._llm.bind_tools(tools, tool_choice="auto") if tools else self._llm
        try:
            response = await runnable.ainvoke(list(messages))
        except Exception as e:
            logger.exception("Chat completion failed")
            raise UpstreamLLMError(f"Chat completion failed: {e}") from e

        if not isinstance(response, AIMessage):
            raise UpstreamLLMError(
                f"Unexpected completion type: {type(response).__name__}"
            )
        return to_assistant_turn(response)


def to_assistant_turn(message: AIMessage) -> AssistantTurn:
    """Convert a LangChain AIMessage into an AssistantTurn.

    Tool calls LangChain could not parse are kept with their raw argument
    text so the dispatcher can report the problem back to the model.
    """
    calls = []
    for tc in message.tool_calls or []:
        calls.append(ToolCall(
            id=tc.get("id") or "",
            name=tc.get("name") or "",
            arguments=json.dumps(tc.get("args") or {}),
        ))
    for tc in getattr(message, "invalid_tool_calls", None) or []:
        calls.append(ToolCall(
            id=tc.get("id") or "",
            name=tc.get("name") or "",
            arguments=tc.get("args") or "",
        ))

    content = message.content
    if isinstance(content, list):
        # Some providers return content blocks instead of a plain string
        content = "".join(
            block.get("text", "") if isinstance(block, dict) else str(block)
            for block in content
        )
    return AssistantTurn(content=content or "", tool_calls=calls)
