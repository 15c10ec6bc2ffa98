"""Async Tool abstract base class for local tools."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from polychat.types import ToolDescriptor, ToolResult


@dataclass
class ToolParameter:
    """Definition of a tool parameter."""

    name: str
    type: str  # string, integer, number, boolean, array, object
    description: str
    required: bool = True
    default: Any = None
    enum: list[str] | None = None


class Tool(ABC):
    """Base class for local tools.

    Subclasses set ``name``, ``description``, ``parameters`` as class
    attributes and implement the async ``execute()`` method.  ``execute``
    may return a plain string or a :class:`ToolResult` of content blocks.
    """

    name: str
    description: str
    parameters: list[ToolParameter] = []
    max_output: int = 5000  # Per-tool text output limit (chars).

    @abstractmethod
    async def execute(self, **kwargs: Any) -> ToolResult | str:
        """Execute the tool asynchronously."""

    def input_schema(self) -> dict[str, Any]:
        properties: dict[str, Any] = {}
        required: list[str] = []
        for p in self.parameters:
            prop: dict[str, Any] = {
                "type": p.type,
                "description": p.description,
            }
            if p.enum:
                prop["enum"] = p.enum
            if p.default is not None:
                prop["default"] = p.default
            properties[p.name] = prop
            if p.required:
                required.append(p.name)
        return {"type": "object", "properties": properties, "required": required}

    def to_descriptor(self) -> ToolDescriptor:
        return ToolDescriptor(
            name=self.name,
            description=self.description,
            input_schema=self.input_schema(),
        )
