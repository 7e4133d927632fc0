"""
application.events - Stream event kinds and their wire encoding.

Five event kinds travel over one text/event-stream response:

    status    0..n    ephemeral progress text
    category  0..n    one persisted result category with its products
    summary   1       the finalized assistant answer
    done      1       terminal, success
    error     1       terminal, failure (never together with done)

Each frame is "event: <name>\\ndata: <json>\\n\\n".
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

STATUS = "status"
CATEGORY = "category"
SUMMARY = "summary"
DONE = "done"
ERROR = "error"

TERMINAL_EVENTS = frozenset({DONE, ERROR})

GENERIC_ERROR_MESSAGE = "Something went wrong while searching. Please try again."


@dataclass(frozen=True)
class StreamEvent:
    name: str
    data: dict[str, Any]

    @property
    def is_terminal(self) -> bool:
        return self.name in TERMINAL_EVENTS

    def encode(self) -> str:
        return encode_frame(self.name, self.data)


def encode_frame(name: str, data: dict[str, Any]) -> str:
    # json.dumps never emits raw newlines, so the data line stays single-line
    return f"event: {name}\ndata: {json.dumps(data, ensure_ascii=False)}\n\n"


def status_event(text: str) -> StreamEvent:
    return StreamEvent(STATUS, {"text": text})


def category_event(category: dict[str, Any]) -> StreamEvent:
    return StreamEvent(CATEGORY, category)


def summary_event(payload: dict[str, Any]) -> StreamEvent:
    return StreamEvent(SUMMARY, payload)


def done_event(
    conversation_id: str,
    message_id: str,
    categories: list[dict[str, Any]],
    rate_limit: dict[str, Any],
) -> StreamEvent:
    return StreamEvent(DONE, {
        "conversationId": conversation_id,
        "messageId": message_id,
        "categories": categories,
        "rateLimit": rate_limit,
    })


def error_event(message: str = GENERIC_ERROR_MESSAGE) -> StreamEvent:
    return StreamEvent(ERROR, {"message": message})
