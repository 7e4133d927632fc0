"""Pydantic models for REST API request/response validation."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# --- Search ---

class SearchBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: str = Field(..., max_length=2000)
    conversation_id: Optional[str] = Field(default=None, alias="conversationId")
    country: Optional[str] = Field(default=None, min_length=2, max_length=2)

    @field_validator("query")
    @classmethod
    def query_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("query is required")
        return value


class RateLimitOut(BaseModel):
    remaining: int
    limit: int
    reset_at: str
    used: int
    reason: str


# --- Conversations ---

class ConversationOut(BaseModel):
    id: str
    title: str
    status: str
    total_categories: int
    total_products: int
    thumbnail_url: Optional[str]
    created_at: str
    updated_at: str


class MessageOut(BaseModel):
    id: str
    role: str
    content: str
    metadata: dict[str, Any]
    created_at: str
    categories: list[dict[str, Any]] = []


class ConversationDetailOut(ConversationOut):
    messages: list[MessageOut]


class ConversationPatchBody(BaseModel):
    status: Literal["active", "archived"]
