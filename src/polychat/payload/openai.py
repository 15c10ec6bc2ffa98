"""OpenAI-compatible chat completions payloads."""

from __future__ import annotations

import json
import logging
from typing import Any, Sequence

from polychat.context import ChatContext
from polychat.payload.base import (
    TOOL_PLACEHOLDER_NEXT_MESSAGE,
    PayloadBuilder,
    object_schema,
)
from polychat.providers.descriptor import (
    DEVELOPER_ROLE,
    LOWERCASE_MODEL,
    MAX_COMPLETION_TOKENS,
    STREAM_USAGE,
    TOOL_BRIDGE,
)
from polychat.types import (
    AudioPart,
    ContentPart,
    ImagePart,
    RequestMessage,
    TextPart,
    ToolDescriptor,
)

_logger = logging.getLogger(__name__)

MAX_DESCRIPTION_LENGTH = 1000

BRIDGE_TEXT = (
    "Got it. Please ignore the placeholder tool output above and continue "
    "with the next user message."
)

_AUDIO_FORMATS = {"mpeg": "mp3", "mp3": "mp3", "wav": "wav", "x-wav": "wav"}


def is_reasoning_model(name: str) -> bool:
    """o1/o3 models reject system messages and custom temperature."""
    return name.startswith(("o1", "o3"))


def render_part(part: ContentPart) -> dict[str, Any]:
    if isinstance(part, TextPart):
        return {"type": "text", "text": part.text}
    if isinstance(part, ImagePart):
        return {"type": "image_url", "image_url": {"url": part.data_url}}
    if isinstance(part, AudioPart):
        return {
            "type": "input_audio",
            "input_audio": {
                "data": part.data,
                "format": _AUDIO_FORMATS.get(part.format, part.format),
            },
        }
    raise TypeError(f"Unknown content part: {part!r}")


class OpenAIPayloadBuilder(PayloadBuilder):
    supports_audio = True

    def model_name(self, context: ChatContext) -> str:
        name = context.model.wire_name
        if context.provider.has_quirk(LOWERCASE_MODEL):
            return name.lower()
        return name

    def system_role(self, context: ChatContext) -> str:
        if is_reasoning_model(context.model.name):
            return "user"
        if context.provider.has_quirk(DEVELOPER_ROLE):
            return "developer"
        return "system"

    def build(
        self,
        context: ChatContext,
        messages: Sequence[RequestMessage],
        tools: Sequence[ToolDescriptor] = (),
        msg_id: str | None = None,
    ) -> dict[str, Any]:
        provider = context.provider
        rendered: list[dict[str, Any]] = []
        system = context.system_message
        if system is not None:
            rendered.append({"role": self.system_role(context), "content": system})
        for msg in self.conversation(context, messages, msg_id):
            rendered.extend(self.render_message(context, msg))

        payload: dict[str, Any] = {
            "model": self.model_name(context),
            "messages": rendered,
            "temperature": context.temperature,
            "stream": context.is_stream,
        }
        if is_reasoning_model(context.model.name):
            payload["temperature"] = 1
        max_tokens_key = (
            "max_completion_tokens"
            if provider.has_quirk(MAX_COMPLETION_TOKENS) else "max_tokens"
        )
        payload[max_tokens_key] = context.max_tokens
        if context.is_stream and provider.has_quirk(STREAM_USAGE):
            payload["stream_options"] = {"include_usage": True}
        if tools:
            payload["tools"] = [self.make_tool(t) for t in tools]
            payload["tool_choice"] = "auto"
        return payload

    def make_tool(self, descriptor: ToolDescriptor) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": descriptor.name,
                "description": descriptor.description[:MAX_DESCRIPTION_LENGTH],
                "parameters": object_schema(descriptor.input_schema),
            },
        }

    def render_message(
        self,
        context: ChatContext,
        msg: RequestMessage,
    ) -> list[dict[str, Any]]:
        if msg.role == "assistant" and msg.tool_calls:
            out: dict[str, Any] = {
                "role": "assistant",
                "tool_calls": [
                    {
                        "id": tc.id,
                        "type": "function",
                        "function": {
                            "name": tc.name,
                            "arguments": json.dumps(tc.arguments, ensure_ascii=False),
                        },
                    }
                    for tc in msg.tool_calls
                ],
            }
            if msg.text:
                out["content"] = msg.text
            return [out]

        if msg.role == "tool":
            return self.render_tool_result(context, msg)

        if isinstance(msg.content, str):
            return [{"role": msg.role, "content": msg.content}]
        return [{"role": msg.role, "content": [render_part(p) for p in msg.content]}]

    def render_tool_result(
        self,
        context: ChatContext,
        msg: RequestMessage,
    ) -> list[dict[str, Any]]:
        parts = msg.parts
        tool_msg: dict[str, Any] = {
            "role": "tool",
            "tool_call_id": msg.tool_call_id,
            "name": msg.name,
        }
        if self.all_text(parts):
            tool_msg["content"] = self.joined_text(parts, "\n\n")
            return [tool_msg]

        # Non-text output cannot ride in a tool message: send a placeholder
        # and the real parts in a user message right after it.
        tool_msg["content"] = json.dumps({"message": TOOL_PLACEHOLDER_NEXT_MESSAGE})
        result = [tool_msg]
        if context.provider.has_quirk(TOOL_BRIDGE):
            result.append({"role": "assistant", "content": BRIDGE_TEXT})
        result.append({"role": "user", "content": [render_part(p) for p in parts]})
        return result
