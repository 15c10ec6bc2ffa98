"""Gemini ``generateContent`` payloads."""

from __future__ import annotations

from typing import Any, Sequence

from polychat.context import ChatContext
from polychat.payload.base import TOOL_PLACEHOLDER, PayloadBuilder
from polychat.types import (
    AudioPart,
    ContentPart,
    ImagePart,
    RequestMessage,
    TextPart,
    ToolDescriptor,
)

# Gemini rejects these JSON Schema keywords in function declarations.
_DROPPED_KEYS = frozenset({"additionalProperties", "$schema", "default", "examples", "title"})


def gemini_schema(schema: Any) -> Any:
    """Adapt a JSON Schema fragment to Gemini's OpenAPI subset.

    Types are upper-cased, enum properties are typed as strings, and
    unsupported keywords are dropped at every depth.
    """
    if isinstance(schema, list):
        return [gemini_schema(s) for s in schema]
    if not isinstance(schema, dict):
        return schema
    result: dict[str, Any] = {}
    for key, value in schema.items():
        if key in _DROPPED_KEYS:
            continue
        if key == "type" and isinstance(value, str):
            result[key] = value.upper()
        elif key == "properties" and isinstance(value, dict):
            result[key] = {k: gemini_schema(v) for k, v in value.items()}
        elif key == "enum" and isinstance(value, list):
            result[key] = [str(v) for v in value]
        else:
            result[key] = gemini_schema(value)
    if "enum" in result:
        result["type"] = "STRING"
    return result


def render_part(part: ContentPart) -> dict[str, Any]:
    if isinstance(part, TextPart):
        return {"text": part.text}
    if isinstance(part, ImagePart):
        if part.is_url:
            return {"file_data": {"file_uri": part.data, "mime_type": part.mime_type}}
        return {"inline_data": {"mime_type": part.mime_type, "data": part.data}}
    if isinstance(part, AudioPart):
        return {"inline_data": {"mime_type": part.mime_type, "data": part.data}}
    raise TypeError(f"Unknown content part: {part!r}")


class GooglePayloadBuilder(PayloadBuilder):
    supports_audio = True

    def build(
        self,
        context: ChatContext,
        messages: Sequence[RequestMessage],
        tools: Sequence[ToolDescriptor] = (),
        msg_id: str | None = None,
    ) -> dict[str, Any]:
        generation: dict[str, Any] = {"temperature": context.temperature}
        if context.max_tokens:
            generation["maxOutputTokens"] = context.max_tokens
        payload: dict[str, Any] = {
            "contents": [
                self.render_message(m)
                for m in self.conversation(context, messages, msg_id)
                if m.role != "system"
            ],
            "generationConfig": generation,
        }
        system = context.system_message
        if system is not None:
            payload["system_instruction"] = {"parts": [{"text": system}]}
        if tools:
            payload["tools"] = [
                {"function_declarations": [self.make_tool(t) for t in tools]}
            ]
            payload["tool_config"] = {"function_calling_config": {"mode": "AUTO"}}
        return payload

    def make_tool(self, descriptor: ToolDescriptor) -> dict[str, Any]:
        decl: dict[str, Any] = {
            "name": descriptor.name,
            "description": descriptor.description,
        }
        schema = descriptor.input_schema
        if schema.get("properties"):
            params: dict[str, Any] = {
                "type": str(schema.get("type") or "object").upper(),
                "properties": {
                    k: gemini_schema(v) for k, v in schema["properties"].items()
                },
            }
            if schema.get("required"):
                params["required"] = list(schema["required"])
            decl["parameters"] = params
        return decl

    def render_message(self, msg: RequestMessage) -> dict[str, Any]:
        if msg.role == "assistant" and msg.tool_calls:
            parts: list[dict[str, Any]] = []
            if msg.text:
                parts.append({"text": msg.text})
            for tc in msg.tool_calls:
                parts.append({"functionCall": {"name": tc.name, "args": tc.arguments}})
            return {"role": "model", "parts": parts}

        if msg.role == "tool":
            content = msg.parts
            text_only = self.all_text(content)
            response = self.joined_text(content) if text_only else TOOL_PLACEHOLDER
            parts = [{"functionResponse": {"name": msg.name, "response": {"content": response}}}]
            if not text_only:
                parts.extend(render_part(p) for p in content)
            return {"role": "user", "parts": parts}

        role = "model" if msg.role == "assistant" else "user"
        if isinstance(msg.content, str):
            return {"role": role, "parts": [{"text": msg.content}]}
        return {"role": role, "parts": [render_part(p) for p in msg.content]}
