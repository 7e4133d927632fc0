"""
agent.dispatcher - Concurrent execution of one turn's tool calls.

All calls of a turn start together and outcomes are yielded as each call
finishes, so callers observe completion order rather than request order.
A failing call never affects its siblings: it turns into a structured
error payload that goes back to the model.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Sequence

from pydantic import ValidationError

from application.context import SearchContext
from agent.tools.base import ToolResult
from agent.tools.registry import ToolRegistry
from domain.models import ToolCall

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolOutcome:
    """A finished tool call. index is the call's position in the model's request."""
    index: int
    call: ToolCall
    result: ToolResult


class ToolDispatcher:
    """Runs tool calls concurrently against a ToolRegistry."""

    def __init__(self, registry: ToolRegistry):
        self._registry = registry

    async def dispatch(
        self, ctx: SearchContext, calls: Sequence[ToolCall],
    ) -> AsyncIterator[ToolOutcome]:
        """Yield one ToolOutcome per call, in completion order.

        Every call is awaited before the generator finishes. If the consumer
        stops early, calls still in flight are cancelled.
        """
        tasks = [
            asyncio.ensure_future(self._run(ctx, index, call))
            for index, call in enumerate(calls)
        ]
        try:
            for next_done in asyncio.as_completed(tasks):
                yield await next_done
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

    async def _run(self, ctx: SearchContext, index: int, call: ToolCall) -> ToolOutcome:
        return ToolOutcome(index=index, call=call, result=await self._execute(ctx, call))

    async def _execute(self, ctx: SearchContext, call: ToolCall) -> ToolResult:
        if not self._registry.has(call.name):
            logger.warning("Model requested unknown tool '%s'", call.name)
            return ToolResult.failure(f"Unknown tool: {call.name}")

        try:
            raw_args = json.loads(call.arguments or "{}")
        except json.JSONDecodeError as e:
            logger.warning("Unparseable arguments for %s: %s", call.name, e)
            return ToolResult.failure(f"Invalid tool arguments: {e}")
        if not isinstance(raw_args, dict):
            return ToolResult.failure("Invalid tool arguments: expected a JSON object")

        tool = self._registry.get(call.name)
        label = str(raw_args.get("categoryLabel") or "")
        try:
            args = tool.get_schema().model_validate(raw_args)
        except ValidationError as e:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            logger.warning("Invalid arguments for %s: %s", call.name, fields)
            return ToolResult.failure(f"Invalid tool arguments: {fields}", label)

        try:
            return await tool.execute(ctx, **args.model_dump())
        except Exception as e:
            logger.exception("Tool %s failed (request=%s)", call.name, ctx.request_id)
            return ToolResult.failure(str(e) or type(e).__name__, label)
