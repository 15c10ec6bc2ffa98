"""Anthropic Messages API payloads."""

from __future__ import annotations

from typing import Any, Sequence

from polychat.context import ChatContext
from polychat.payload.base import (
    TOOL_PLACEHOLDER,
    PayloadBuilder,
    object_schema,
)
from polychat.types import (
    ContentPart,
    ImagePart,
    RequestMessage,
    TextPart,
    ToolDescriptor,
)


def render_part(part: ContentPart) -> dict[str, Any]:
    if isinstance(part, TextPart):
        return {"type": "text", "text": part.text}
    if isinstance(part, ImagePart):
        if part.is_url:
            return {"type": "image", "source": {"type": "url", "url": part.data}}
        return {
            "type": "image",
            "source": {"type": "base64", "media_type": part.mime_type, "data": part.data},
        }
    # Audio never gets here: the capability check rejects it first.
    raise TypeError(f"Unsupported content part: {part!r}")


class AnthropicPayloadBuilder(PayloadBuilder):
    supports_audio = False

    def build(
        self,
        context: ChatContext,
        messages: Sequence[RequestMessage],
        tools: Sequence[ToolDescriptor] = (),
        msg_id: str | None = None,
    ) -> dict[str, Any]:
        rendered = [
            self.render_message(m)
            for m in self.conversation(context, messages, msg_id)
            if m.role != "system"
        ]
        payload: dict[str, Any] = {
            "model": context.model.wire_name,
            "messages": rendered,
            "temperature": context.temperature,
            "stream": context.is_stream,
            # Required by the Messages API.
            "max_tokens": context.max_tokens,
        }
        system = context.system_message
        if system is not None:
            payload["system"] = system
        if tools:
            payload["tools"] = [self.make_tool(t) for t in tools]
            payload["tool_choice"] = {"type": "auto", "disable_parallel_tool_use": True}
        return payload

    def make_tool(self, descriptor: ToolDescriptor) -> dict[str, Any]:
        schema = object_schema(descriptor.input_schema)
        schema.setdefault("required", [])
        return {
            "name": descriptor.name,
            "description": descriptor.description,
            "input_schema": schema,
        }

    def render_message(self, msg: RequestMessage) -> dict[str, Any]:
        if msg.role == "assistant" and msg.tool_calls:
            blocks: list[dict[str, Any]] = []
            if msg.text:
                blocks.append({"type": "text", "text": msg.text})
            for tc in msg.tool_calls:
                blocks.append({
                    "type": "tool_use",
                    "id": tc.id,
                    "name": tc.name,
                    "input": tc.arguments,
                })
            return {"role": "assistant", "content": blocks}

        if msg.role == "tool":
            parts = msg.parts
            if self.all_text(parts):
                return {
                    "role": "user",
                    "content": [{
                        "type": "tool_result",
                        "tool_use_id": msg.tool_call_id,
                        "content": self.joined_text(parts),
                    }],
                }
            return {
                "role": "user",
                "content": [
                    {
                        "type": "tool_result",
                        "tool_use_id": msg.tool_call_id,
                        "content": TOOL_PLACEHOLDER,
                    },
                    *(render_part(p) for p in parts),
                ],
            }

        if isinstance(msg.content, str):
            return {"role": msg.role, "content": msg.content}
        return {"role": msg.role, "content": [render_part(p) for p in msg.content]}
