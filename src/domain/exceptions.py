"""
domain.exceptions - Custom exception hierarchy for the agentic search service.

All domain-level errors inherit from DomainError so callers can catch
broad or specific exceptions as needed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from application.dto import RateLimitDecision


class DomainError(Exception):
    """Base exception for all domain-level errors."""


class AuthenticationError(DomainError):
    """Raised when no valid user or guest identity is present."""


class InvalidRequestError(DomainError):
    """Raised when a search request is malformed (e.g. empty query)."""


class RateLimitedError(DomainError):
    """Raised when a subject has exhausted its search quota."""

    def __init__(self, message: str, decision: RateLimitDecision):
        super().__init__(message)
        self.decision = decision


class ConversationNotFoundError(DomainError):
    """Raised when a conversation does not exist or belongs to someone else."""


class UpstreamLLMError(DomainError):
    """Raised when the chat-completion endpoint fails. Fatal for a search."""


class UpstreamSearchError(DomainError):
    """Raised when the product search provider fails. Isolated per tool call."""


class RepositoryError(DomainError):
    """Raised when a database operation fails."""
