"""Ollama native ``/api/chat`` payloads."""

from __future__ import annotations

from typing import Any, Sequence

from polychat.context import ChatContext
from polychat.payload.base import (
    TOOL_PLACEHOLDER_NEXT_MESSAGE,
    PayloadBuilder,
    object_schema,
)
from polychat.payload.openai import MAX_DESCRIPTION_LENGTH
from polychat.types import ImagePart, RequestMessage, TextPart, ToolDescriptor


class OllamaPayloadBuilder(PayloadBuilder):
    supports_audio = False

    def build(
        self,
        context: ChatContext,
        messages: Sequence[RequestMessage],
        tools: Sequence[ToolDescriptor] = (),
        msg_id: str | None = None,
    ) -> dict[str, Any]:
        rendered: list[dict[str, Any]] = []
        system = context.system_message
        if system is not None:
            rendered.append({"role": "system", "content": system})
        for msg in self.conversation(context, messages, msg_id):
            rendered.extend(self.render_message(msg))

        payload: dict[str, Any] = {
            "model": context.model.wire_name,
            "messages": rendered,
            "stream": context.is_stream,
            "options": {
                "temperature": context.temperature,
                "num_predict": context.max_tokens,
            },
        }
        if tools:
            payload["tools"] = [self.make_tool(t) for t in tools]
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

    @staticmethod
    def _flatten(role: str, msg: RequestMessage) -> dict[str, Any]:
        text = msg.content if isinstance(msg.content, str) else "\n".join(
            p.text for p in msg.content if isinstance(p, TextPart)
        )
        out: dict[str, Any] = {"role": role, "content": text}
        images = [p.data for p in msg.parts if isinstance(p, ImagePart)]
        if images:
            out["images"] = images
        return out

    def render_message(self, msg: RequestMessage) -> list[dict[str, Any]]:
        if msg.role == "assistant" and msg.tool_calls:
            return [{
                "role": "assistant",
                "content": msg.text,
                "tool_calls": [
                    {"function": {"name": tc.name, "arguments": tc.arguments}}
                    for tc in msg.tool_calls
                ],
            }]

        if msg.role == "tool":
            parts = msg.parts
            if self.all_text(parts):
                return [{
                    "role": "tool",
                    "content": self.joined_text(parts, "\n\n"),
                    "tool_name": msg.name,
                }]
            return [
                {
                    "role": "tool",
                    "content": TOOL_PLACEHOLDER_NEXT_MESSAGE,
                    "tool_name": msg.name,
                },
                self._flatten("user", msg),
            ]

        return [self._flatten(msg.role, msg)]
