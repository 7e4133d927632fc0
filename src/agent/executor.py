"""
agent.executor - Agent execution engine.

Runs the bounded model + tool loop:

    IDLE → AWAITING_MODEL → (EXECUTING_TOOLS → AWAITING_MODEL)* → FINALIZING → DONE
                                                                            ↘ FAILED

run() is an async generator. It yields progress (StatusUpdate), each tool
call as it completes (ToolCompleted) and finally exactly one AgentFinished.
Persistence and streaming belong to the caller; the executor only owns
the loop state and the message history.

A chat model failure propagates (the run is FAILED). A tool failure never
does: it is reported back to the model as that call's result.
"""

from __future__ import annotations

import logging
from contextlib import aclosing
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Optional, Union

from application.context import SearchContext
from agent.dispatcher import ToolDispatcher, ToolOutcome
from agent.final_answer import resolve_final_answer
from agent.memory import ConversationMemory
from agent.tools.registry import ToolRegistry
from domain.models import FinalAnswer
from domain.ports import ChatModelPort

logger = logging.getLogger(__name__)

FIRST_TURN_STATUS = "Analyzing your query..."
LATER_TURN_STATUS = "Refining results..."


class AgentState(str, Enum):
    IDLE = "idle"
    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOLS = "executing_tools"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class StatusUpdate:
    text: str


@dataclass(frozen=True)
class ToolCompleted:
    outcome: ToolOutcome
    loop: int


@dataclass(frozen=True)
class AgentFinished:
    answer: FinalAnswer
    loops: int
    exhausted: bool = False


AgentEvent = Union[StatusUpdate, ToolCompleted, AgentFinished]


def searching_status(count: int) -> str:
    return f"Searching {count} categor{'y' if count == 1 else 'ies'}..."


class AgentExecutor:
    """Runs the LLM + tool selection loop.

    Constructed by factory.py with all dependencies injected.
    Stateless between calls; per-run state lives in _AgentRun.
    """

    def __init__(
        self,
        chat_model: ChatModelPort,
        tools: ToolRegistry,
        dispatcher: Optional[ToolDispatcher] = None,
        max_loops: int = 3,
    ):
        self._chat_model = chat_model
        self._tools = tools
        self._dispatcher = dispatcher or ToolDispatcher(tools)
        self._max_loops = max_loops

    @property
    def max_loops(self) -> int:
        return self._max_loops

    def run(
        self, ctx: SearchContext, memory: ConversationMemory,
    ) -> AsyncIterator[AgentEvent]:
        """Drive the loop for one search.

        memory must already contain the prior turns and the new user message.
        """
        return _AgentRun(self, ctx, memory).events()


class _AgentRun:
    """Loop state for one run of an AgentExecutor."""

    def __init__(
        self, executor: AgentExecutor, ctx: SearchContext, memory: ConversationMemory,
    ):
        self._executor = executor
        self._ctx = ctx
        self._memory = memory
        self.state = AgentState.IDLE
        self.loop = 0

    def _transition(self, state: AgentState) -> None:
        logger.debug(
            "Agent %s: %s -> %s (loop %d)",
            self._ctx.request_id, self.state.value, state.value, self.loop,
        )
        self.state = state

    async def events(self) -> AsyncIterator[AgentEvent]:
        executor = self._executor
        tool_defs = executor._tools.tool_definitions()

        try:
            for loop in range(executor.max_loops):
                self.loop = loop
                self._transition(AgentState.AWAITING_MODEL)
                yield StatusUpdate(FIRST_TURN_STATUS if loop == 0 else LATER_TURN_STATUS)

                turn = await executor._chat_model.complete(self._memory.messages, tool_defs)

                if not turn.wants_tools:
                    self._transition(AgentState.FINALIZING)
                    answer = resolve_final_answer(turn.content)
                    self._transition(AgentState.DONE)
                    logger.info(
                        "Agent %s finished after %d loop(s)", self._ctx.request_id, loop + 1,
                    )
                    yield AgentFinished(answer=answer, loops=loop + 1)
                    return

                self._transition(AgentState.EXECUTING_TOOLS)
                self._memory.add_assistant_turn(turn)
                calls = turn.tool_calls
                yield StatusUpdate(searching_status(len(calls)))

                outcomes: list[Optional[ToolOutcome]] = [None] * len(calls)
                async with aclosing(executor._dispatcher.dispatch(self._ctx, calls)) as stream:
                    async for outcome in stream:
                        outcomes[outcome.index] = outcome
                        yield ToolCompleted(outcome=outcome, loop=loop)

                # Join barrier passed: results go back in request order
                for outcome in outcomes:
                    self._memory.add_tool_result(outcome.call.id, outcome.result.output)

            self._transition(AgentState.FINALIZING)
            logger.warning(
                "Agent %s exhausted %d loop(s) without a final answer",
                self._ctx.request_id, executor.max_loops,
            )
            self._transition(AgentState.DONE)
            yield AgentFinished(
                answer=resolve_final_answer(None),
                loops=executor.max_loops,
                exhausted=True,
            )
        except Exception:
            self._transition(AgentState.FAILED)
            raise
