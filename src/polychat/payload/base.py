"""Shared payload-building machinery.

A builder turns a :class:`~polychat.context.ChatContext` plus normalized
:class:`~polychat.types.RequestMessage` turns into a vendor JSON body.  The
base class owns everything vendor-neutral: replaying history, expanding
HTML prompts into parts, enforcing model capabilities, and building the
normalized follow-up messages for a tool round.  Subclasses only render.
"""

from __future__ import annotations

import html
import logging
import re
import uuid
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Any, Iterable, Sequence

from polychat.context import ChatContext
from polychat.errors import CapabilityError
from polychat.mcp.content import ContentBlockConverter, block_to_part
from polychat.providers.descriptor import FILTER_PARTS
from polychat.types import (
    AudioPart,
    ContentPart,
    ImagePart,
    RequestMessage,
    TextPart,
    ToolCall,
    ToolDescriptor,
    ToolResult,
)

_logger = logging.getLogger(__name__)

TOOL_PLACEHOLDER = (
    "NOTE: This tool output is only a placeholder. See the following parts "
    "of this message for the actual tool result. Please use that for processing."
)
TOOL_PLACEHOLDER_NEXT_MESSAGE = (
    "NOTE: This tool output is only a placeholder. The actual result from the "
    'tool is included in the next message with role "user". Please use that '
    "for processing."
)

# ---------------------------------------------------------------------------
# HTML prompt helpers
# ---------------------------------------------------------------------------

_IMG_RE = re.compile(r"<img\b[^>]*?\bsrc\s*=\s*([\"'])(.*?)\1[^>]*>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"</?[a-zA-Z][^>]*>")
_DATA_URL_RE = re.compile(r"^data:([\w.+-]+/[\w.+-]+);base64,(.*)$", re.DOTALL)


def strip_html_tags(text: str) -> str:
    """Remove tags and unescape entities; line breaks survive as newlines."""
    text = re.sub(r"<br\s*/?>", "\n", text, flags=re.IGNORECASE)
    text = re.sub(r"</p\s*>", "\n", text, flags=re.IGNORECASE)
    return html.unescape(_TAG_RE.sub("", text)).strip()


def split_by_img(text: str) -> list[ContentPart]:
    """Split an HTML prompt into ordered text and image parts."""
    parts: list[ContentPart] = []
    pos = 0
    for m in _IMG_RE.finditer(text):
        before = strip_html_tags(text[pos:m.start()])
        if before:
            parts.append(TextPart(before))
        src = html.unescape(m.group(2)).strip()
        data_url = _DATA_URL_RE.match(src)
        if data_url:
            parts.append(ImagePart(data_url.group(2), data_url.group(1)))
        elif src:
            parts.append(ImagePart(src, _guess_image_mime(src), is_url=True))
        pos = m.end()
    tail = strip_html_tags(text[pos:])
    if tail:
        parts.append(TextPart(tail))
    return parts


def _guess_image_mime(url: str) -> str:
    path = url.split("?", 1)[0].lower()
    for ext, mime in ((".jpg", "image/jpeg"), (".jpeg", "image/jpeg"),
                      (".gif", "image/gif"), (".webp", "image/webp")):
        if path.endswith(ext):
            return mime
    return "image/png"


# ---------------------------------------------------------------------------
# JSON Schema helpers
# ---------------------------------------------------------------------------

def remove_additional_properties(schema: Any) -> Any:
    """Return a copy of *schema* with every ``additionalProperties`` key removed."""
    if isinstance(schema, dict):
        return {
            k: remove_additional_properties(v)
            for k, v in schema.items()
            if k != "additionalProperties"
        }
    if isinstance(schema, list):
        return [remove_additional_properties(v) for v in schema]
    return schema


def object_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """Normalize a tool input schema to an object schema without nulls."""
    result: dict[str, Any] = {
        "type": schema.get("type") or "object",
        "properties": remove_additional_properties(schema.get("properties") or {}),
    }
    required = schema.get("required")
    if required:
        result["required"] = list(required)
    return result


# ---------------------------------------------------------------------------
# PayloadBuilder
# ---------------------------------------------------------------------------

class PayloadBuilder(ABC):
    """Pure, deterministic translator from context + turns to a vendor body."""

    supports_audio = False

    def __init__(self, converter: ContentBlockConverter | None = None) -> None:
        self.converter = converter or ContentBlockConverter()

    # -- public API -----------------------------------------------------

    @abstractmethod
    def build(
        self,
        context: ChatContext,
        messages: Sequence[RequestMessage],
        tools: Sequence[ToolDescriptor] = (),
        msg_id: str | None = None,
    ) -> dict[str, Any]:
        ...

    @abstractmethod
    def make_tool(self, descriptor: ToolDescriptor) -> dict[str, Any]:
        ...

    def make_tool_messages(
        self,
        tool: ToolCall,
        result: ToolResult,
        content: str = "",
    ) -> list[RequestMessage]:
        """Normalized follow-up turns for one executed tool call.

        Result blocks are rebuilt through the content converter, so any field
        outside the supported block shapes is dropped here.
        """
        if not tool.id:
            tool = replace(tool, id=f"call_{uuid.uuid4().hex[:24]}")
        if result.is_error:
            text = result.error_text or "Tool execution failed"
            parts: tuple[ContentPart, ...] = (TextPart(text),)
        else:
            parts = tuple(
                block_to_part(b) for b in self.converter.convert_all(result.content)
            )
        return [
            RequestMessage(role="assistant", content=content, tool_calls=(tool,)),
            RequestMessage(
                role="tool", content=parts, tool_call_id=tool.id, name=tool.name,
            ),
        ]

    # -- shared steps ---------------------------------------------------

    def conversation(
        self,
        context: ChatContext,
        messages: Sequence[RequestMessage],
        msg_id: str | None = None,
    ) -> list[RequestMessage]:
        """History followed by the new turns, capability-checked."""
        result = [
            m for m in (self._prepare(context, h, strict=False)
                        for h in self.history(context, msg_id))
            if m is not None
        ]
        strict = not context.provider.has_quirk(FILTER_PARTS)
        for msg in messages:
            prepared = self._prepare(context, msg, strict=strict)
            if prepared is not None:
                result.append(prepared)
        return result

    def history(self, context: ChatContext, msg_id: str | None = None) -> list[RequestMessage]:
        turns: list[RequestMessage] = []
        for turn in context.ctx_messages(msg_id):
            if turn.structured_prompts:
                for prompt in turn.structured_prompts:
                    turns.append(RequestMessage(
                        role=prompt.get("role") or "user",
                        content=tuple(block_to_part(b) for b in prompt.get("content") or []),
                    ))
            else:
                turns.append(RequestMessage(role="user", content=turn.prompt))
            turns.append(RequestMessage(role="assistant", content=turn.reply))
        return turns

    def _prepare(
        self,
        context: ChatContext,
        msg: RequestMessage,
        *,
        strict: bool,
    ) -> RequestMessage | None:
        """Expand HTML prompts and enforce what the model can accept.

        With *strict*, unsupported parts raise :class:`CapabilityError`;
        otherwise they are dropped, and a message left empty is dropped too.
        """
        if msg.role == "user" and isinstance(msg.content, str):
            if context.model.vision.enabled and "<img" in msg.content.lower():
                content: str | tuple[ContentPart, ...] = tuple(split_by_img(msg.content))
            elif _TAG_RE.search(msg.content):
                content = strip_html_tags(msg.content)
            else:
                content = msg.content
            msg = replace(msg, content=content)
        if isinstance(msg.content, str):
            return msg

        kept = tuple(self._check_parts(context, msg.content, strict=strict))
        if not kept and msg.role != "tool" and not msg.tool_calls:
            _logger.debug("Dropping %s message with no supported parts", msg.role)
            return None
        return replace(msg, content=kept)

    def _check_parts(
        self,
        context: ChatContext,
        parts: Iterable[ContentPart],
        *,
        strict: bool,
    ) -> Iterable[ContentPart]:
        model = context.model
        for part in parts:
            problem = ""
            if isinstance(part, ImagePart):
                if not model.vision.enabled:
                    problem = f"Model {model.name} does not accept images"
                elif part.is_url and not model.vision.allow_url:
                    problem = f"Model {model.name} does not accept image URLs"
                elif not part.is_url and not model.vision.allow_base64:
                    problem = f"Model {model.name} does not accept inline images"
            elif isinstance(part, AudioPart):
                if not (self.supports_audio and model.audio):
                    problem = f"Model {model.name} does not accept audio"
            if not problem:
                yield part
            elif strict:
                raise CapabilityError(
                    problem, hint="Pick a model with the required capability.",
                )
            else:
                _logger.debug("%s; dropping part", problem)

    # -- rendering helpers ----------------------------------------------

    @staticmethod
    def all_text(parts: Sequence[ContentPart]) -> bool:
        return all(isinstance(p, TextPart) for p in parts)

    @staticmethod
    def joined_text(parts: Sequence[ContentPart], sep: str = "\n\n\n") -> str:
        return sep.join(p.text for p in parts if isinstance(p, TextPart))
