"""Local tool registry implementing the tool-provider interface."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from polychat.tools.base import Tool
from polychat.types import ToolDescriptor, ToolResult

_logger = logging.getLogger(__name__)


class ToolProvider(Protocol):
    """What the chat service needs from a tool collaborator."""

    async def list_tools(self) -> list[ToolDescriptor]: ...

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> ToolResult: ...


def _smart_truncate(text: str, max_length: int) -> str:
    """Keep head and tail with a marker in the middle.

    Keeps the first 25% and last 75% so trailing errors stay visible.
    """
    if len(text) <= max_length:
        return text
    head_size = max_length // 4
    tail_size = max_length - head_size
    omitted = len(text) - max_length
    return (
        text[:head_size]
        + f"\n\n... [{omitted} chars truncated] ...\n\n"
        + text[-tail_size:]
    )


class ToolRegistry:
    """Registry of local tools with async execution."""

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def tool_names(self) -> list[str]:
        return list(self._tools.keys())

    async def list_tools(self) -> list[ToolDescriptor]:
        return [t.to_descriptor() for t in self._tools.values()]

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        """Execute a tool by name.

        Applies per-tool truncation to text blocks.  Unknown tools and tool
        exceptions come back as an error result rather than raising.
        """
        tool = self._tools.get(name)
        if tool is None:
            return ToolResult.failure(
                f"Unknown tool: {name}. Available: {', '.join(self._tools.keys())}"
            )
        try:
            result = await tool.execute(**arguments)
        except Exception as e:
            _logger.warning("Tool %r failed: %s", name, e)
            return ToolResult.failure(
                f"Tool '{name}' execution failed: {type(e).__name__}: {e}"
            )
        if isinstance(result, str):
            result = ToolResult.text(result)
        max_out = getattr(tool, "max_output", 5000)
        if max_out > 0:
            result = ToolResult(
                content=[
                    {**b, "text": _smart_truncate(b["text"], max_out)}
                    if b.get("type") == "text" and isinstance(b.get("text"), str)
                    else b
                    for b in result.content
                ],
                is_error=result.is_error,
            )
        return result
