"""Streaming agent search endpoint (text/event-stream)."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from factory import ServiceFactory
from adapters.rest.dependencies import get_factory, get_identity
from adapters.rest.schemas import SearchBody
from application.dto import SearchRequest
from application.events import StreamEvent
from domain.exceptions import InvalidRequestError
from domain.models import Identity

logger = logging.getLogger(__name__)

router = APIRouter(tags=["search"])

# Searches outlive their HTTP response: a client disconnect does not cancel
# them. Strong references keep the detached tasks from being collected.
_running_searches: set[asyncio.Task] = set()


@router.post("/search")
async def agent_search(
    request: Request,
    identity: Identity = Depends(get_identity),
    factory: ServiceFactory = Depends(get_factory),
):
    """Run an agentic product search and stream its events.

    Checks run in order: identity (dependency), quota, then the body, so
    auth and rate-limit rejections never depend on the payload.
    """
    await factory.create_rate_limiter().check(identity)
    body = await _parse_body(request)

    service = factory.create_agent_search_service()
    search_request = SearchRequest(
        query=body.query.strip(),
        conversation_id=body.conversation_id,
        country=body.country or factory.config.default_country,
    )

    queue: asyncio.Queue[Optional[str]] = asyncio.Queue()
    task = asyncio.create_task(_pump(service.stream(identity, search_request), queue))
    _running_searches.add(task)
    task.add_done_callback(_running_searches.discard)

    return StreamingResponse(
        _drain(queue),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


async def _parse_body(request: Request) -> SearchBody:
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise InvalidRequestError("Invalid JSON body")
    if not isinstance(payload, dict):
        raise InvalidRequestError("Invalid JSON body")
    try:
        return SearchBody.model_validate(payload)
    except ValidationError as e:
        if any(err["loc"][:1] == ("query",) for err in e.errors()):
            raise InvalidRequestError("query is required")
        raise InvalidRequestError(f"Invalid request body: {e.error_count()} error(s)")


async def _pump(events: AsyncIterator[StreamEvent], queue: asyncio.Queue) -> None:
    try:
        async for event in events:
            await queue.put(event.encode())
    finally:
        await queue.put(None)


async def _drain(queue: asyncio.Queue) -> AsyncIterator[str]:
    while True:
        frame = await queue.get()
        if frame is None:
            return
        yield frame
