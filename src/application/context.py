"""
application.context - Request-scoped search context.

Every layer receives its context explicitly. Two concurrent searches get
two different SearchContext instances, so tools never share state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional
from uuid import uuid4

from domain.models import Identity


@dataclass
class SearchContext:
    """Per-search context passed through the agent and its tools.

    Attributes:
        identity:         Resolved caller (subject is the ownership key).
        conversation_id:  Set once the conversation is created or loaded.
        message_id:       The assistant placeholder that categories hang off.
        country:          Marketplace country code for provider lookups.
        request_id:       Unique per search, for tracing/logging.
        scratch:          Request-scoped scratchpad for inter-tool data sharing.
    """
    identity: Identity
    conversation_id: str = ""
    message_id: str = ""
    country: Optional[str] = None
    request_id: str = field(default_factory=lambda: uuid4().hex)
    scratch: dict[str, Any] = field(default_factory=dict)
