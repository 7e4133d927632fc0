"""
application.services.agent_search - The streaming agent search orchestrator.

Turns one admitted search into a sequence of StreamEvents:

    status* → (category | status)* → summary → done
                                  ↘ error          (any fatal failure)

Exactly one terminal event (done or error) is produced, always last.
Identity and the rate-limit pre-check happen before stream() is called
(they must fail before any streaming starts); consumption of the quota
happens here, after the search succeeded.
"""

from __future__ import annotations

import logging
from contextlib import aclosing
from typing import AsyncIterator

from agent.executor import AgentExecutor, AgentFinished, StatusUpdate, ToolCompleted
from agent.memory import ConversationMemory
from application.context import SearchContext
from application.dto import CategoryWithProducts, RateLimitDecision, SearchRequest
from application.events import (
    StreamEvent,
    category_event,
    done_event,
    error_event,
    status_event,
    summary_event,
)
from application.services.rate_limiter import RateLimiter
from application.services.search_persistence import SearchPersistenceService
from domain.models import FinalAnswer, Identity

logger = logging.getLogger(__name__)


class AgentSearchService:
    """Coordinates persistence, the agent loop and the rate limiter for a search."""

    def __init__(
        self,
        executor: AgentExecutor,
        persistence: SearchPersistenceService,
        rate_limiter: RateLimiter,
        system_prompt: str,
        history_limit: int = 20,
    ):
        self._executor = executor
        self._persistence = persistence
        self._rate_limiter = rate_limiter
        self._system_prompt = system_prompt
        self._history_limit = history_limit

    async def stream(
        self, identity: Identity, request: SearchRequest,
    ) -> AsyncIterator[StreamEvent]:
        """Run one search and yield its events, ending with done or error."""
        try:
            async with aclosing(self._run(identity, request)) as events:
                async for event in events:
                    yield event
        except Exception:
            logger.exception("Agent search failed for %s", identity.subject)
            yield error_event()

    async def _run(
        self, identity: Identity, request: SearchRequest,
    ) -> AsyncIterator[StreamEvent]:
        query = request.query.strip()
        ctx = SearchContext(identity=identity, country=request.country)

        conversation, created = await self._persistence.resolve_conversation(
            identity, request.conversation_id, query,
        )
        ctx.conversation_id = conversation.id

        memory = ConversationMemory(self._system_prompt, self._history_limit)
        if not created:
            memory.load(await self._persistence.load_history(conversation.id))
        memory.add_user_message(query)

        await self._persistence.save_user_message(conversation.id, query)
        placeholder = await self._persistence.create_placeholder(conversation.id)
        ctx.message_id = placeholder.id

        logger.info(
            "Search %s started (conversation=%s, subject=%s): %s",
            ctx.request_id, conversation.id, identity.subject, query[:80],
        )

        saved: list[CategoryWithProducts] = []
        answer = FinalAnswer()
        async with aclosing(self._executor.run(ctx, memory)) as agent_events:
            async for event in agent_events:
                if isinstance(event, StatusUpdate):
                    yield status_event(event.text)
                elif isinstance(event, ToolCompleted):
                    result = event.outcome.result
                    if not result.ok or result.data is None:
                        continue
                    # sort_order follows completion order across all loops
                    category = await self._persistence.save_category(
                        ctx, result.data, sort_order=len(saved),
                    )
                    saved.append(category)
                    yield category_event(category.to_dict())
                elif isinstance(event, AgentFinished):
                    answer = event.answer

        await self._persistence.finalize_message(placeholder.id, answer, len(saved))
        yield summary_event(answer.to_payload())

        await self._persistence.update_aggregates(conversation.id, saved)
        await self._persistence.update_thumbnail(conversation, created, saved, answer)
        await self._persistence.record_analytics(identity)
        decision = await self._record_usage(identity)

        logger.info(
            "Search %s done: %d categor(ies), %d product(s)",
            ctx.request_id, len(saved), sum(len(c.products) for c in saved),
        )
        yield done_event(
            conversation_id=conversation.id,
            message_id=placeholder.id,
            categories=[c.to_dict() for c in saved],
            rate_limit=decision.to_dict(),
        )

    async def _record_usage(self, identity: Identity) -> RateLimitDecision:
        try:
            return await self._rate_limiter.record(identity)
        except Exception:
            logger.exception("Failed to record search usage for %s", identity.subject)
            return self._rate_limiter.describe(identity)
