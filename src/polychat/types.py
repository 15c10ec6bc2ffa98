"""Shared data types for polychat."""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field
from typing import Any, Union


# ---------------------------------------------------------------------------
# Request content
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TextPart:
    """Plain text segment of a message."""

    text: str


@dataclass(frozen=True)
class ImagePart:
    """Image segment: inline base64 data or a URL reference."""

    data: str
    mime_type: str = "image/png"
    is_url: bool = False

    @property
    def data_url(self) -> str:
        if self.is_url:
            return self.data
        return f"data:{self.mime_type};base64,{self.data}"


@dataclass(frozen=True)
class AudioPart:
    """Inline base64 audio segment."""

    data: str
    mime_type: str = "audio/mpeg"

    @property
    def format(self) -> str:
        return self.mime_type.split("/")[-1] if "/" in self.mime_type else "mpeg"


ContentPart = Union[TextPart, ImagePart, AudioPart]


@dataclass(frozen=True)
class ToolCall:
    """A normalized tool invocation requested by the model."""

    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    id: str = ""
    raw: str = ""


@dataclass(frozen=True)
class RequestMessage:
    """One turn to send to the vendor.

    ``content`` is either a plain string or an ordered tuple of parts.
    Assistant turns that invoke a tool carry ``tool_calls``; tool results use
    ``role="tool"`` with ``tool_call_id`` and ``name``.
    """

    role: str
    content: str | tuple[ContentPart, ...] = ""
    tool_call_id: str = ""
    name: str = ""
    tool_calls: tuple[ToolCall, ...] = ()

    @property
    def parts(self) -> tuple[ContentPart, ...]:
        if isinstance(self.content, str):
            return (TextPart(self.content),) if self.content else ()
        return self.content

    @property
    def text(self) -> str:
        """Concatenated text of all text parts."""
        if isinstance(self.content, str):
            return self.content
        return "".join(p.text for p in self.content if isinstance(p, TextPart))


# ---------------------------------------------------------------------------
# Stream decoding
# ---------------------------------------------------------------------------

@dataclass
class ToolCallDelta:
    """A fragment of a tool call as delivered by one wire unit.

    ``arguments`` is a string fragment for vendors that stream arguments
    (OpenAI, Anthropic) and a complete dict for vendors that deliver them
    whole (Google, Ollama).
    """

    index: int = 0
    id: str = ""
    name: str = ""
    arguments: str | dict[str, Any] = ""


@dataclass
class ResponseMessage:
    """Normalized decode of one wire unit."""

    content: str = ""
    reasoning: str = ""
    is_end: bool = False
    input_tokens: int | None = None
    output_tokens: int | None = None
    tool_calls: list[ToolCallDelta] = field(default_factory=list)


@dataclass(frozen=True)
class ReadResult:
    """Terminal output of one stream read (or one full chat turn)."""

    content: str = ""
    reasoning: str = ""
    tool: ToolCall | None = None
    input_tokens: int = 0
    output_tokens: int = 0


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ToolDescriptor:
    """Vendor-neutral tool definition with a JSON Schema for its input."""

    name: str
    description: str = ""
    input_schema: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )


@dataclass
class ToolResult:
    """Result of a tool execution as a list of MCP-style content blocks."""

    content: list[dict[str, Any]] = field(default_factory=list)
    is_error: bool = False

    @classmethod
    def text(cls, text: str) -> ToolResult:
        return cls(content=[{"type": "text", "text": text}])

    @classmethod
    def failure(cls, error: str) -> ToolResult:
        return cls(content=[{"type": "text", "text": error}], is_error=True)

    @property
    def error_text(self) -> str:
        return "\n".join(
            b.get("text", "") for b in self.content if b.get("type") == "text"
        )


# ---------------------------------------------------------------------------
# Event types
# ---------------------------------------------------------------------------

class EventType(enum.Enum):
    """Events emitted by the chat service."""

    CHAT_STARTED = "chat.started"
    CHAT_PROGRESS = "chat.progress"
    CHAT_TOOL_CALL = "chat.tool_call"
    CHAT_ERROR = "chat.error"
    CHAT_DONE = "chat.done"
    CHAT_ABORTED = "chat.aborted"

    TOOL_EXECUTING = "tool.executing"
    TOOL_EXECUTED = "tool.executed"
    TOOL_ERROR = "tool.error"


@dataclass
class ChatEvent:
    """Event emitted by the chat service via the EventBus."""

    type: EventType
    chat_id: str = ""
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)
