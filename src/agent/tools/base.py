"""
agent.tools.base - Base tool interface and result container.

All agent tools inherit from BaseTool and return ToolResult.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel

from application.context import SearchContext


@dataclass
class ToolResult:
    """Result returned by a tool execution.

    output:  JSON text fed back to the model as the tool message.
    data:    Structured data for persistence/streaming (never sent to the model).
    error:   Set when the call failed; output then carries the error payload.
    """
    output: str
    data: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, message: str, category_label: str = "") -> ToolResult:
        """Structured error payload for the model: no products for this category."""
        payload = {"error": message, "categoryLabel": category_label, "products": []}
        return cls(output=json.dumps(payload), error=message)


class BaseTool(ABC):
    """Abstract base for all agent tools."""

    name: str
    description: str

    @abstractmethod
    async def execute(self, ctx: SearchContext, **kwargs) -> ToolResult:
        """Execute the tool with the given search context and validated arguments."""
        ...

    @abstractmethod
    def get_schema(self) -> type[BaseModel]:
        """Return the Pydantic schema for this tool's input arguments."""
        ...

    def definition(self) -> dict[str, Any]:
        """OpenAI function-tool definition, as accepted by bind_tools()."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.get_schema().model_json_schema(by_alias=True),
            },
        }
