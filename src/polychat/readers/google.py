"""Gemini ``streamGenerateContent`` wire format.

The streaming body is a JSON array whose elements arrive one by one, so
units are framed by brace balance rather than by lines.  Function calls
arrive whole; each gets its own index in arrival order.
"""

from __future__ import annotations

from typing import Any

from polychat.errors import ParseError, VendorError
from polychat.readers.base import TokenMode, load_unit
from polychat.readers.scanner import JsonObjectFramer
from polychat.types import ResponseMessage, ToolCallDelta


def _parts(data: dict[str, Any]) -> list[dict[str, Any]]:
    candidates = data.get("candidates") or []
    if not candidates:
        return []
    content = candidates[0].get("content") or {}
    return [p for p in content.get("parts") or [] if isinstance(p, dict)]


class GoogleWire:
    token_mode = TokenMode.CUMULATIVE

    def __init__(self) -> None:
        self._calls = 0

    def make_framer(self) -> JsonObjectFramer:
        return JsonObjectFramer()

    def parse_reply(self, unit: str) -> ResponseMessage:
        data = load_unit(unit)
        if not isinstance(data, dict):
            raise ParseError(f"Expected an object, got {type(data).__name__}")
        err = data.get("error")
        if err:
            if isinstance(err, dict):
                raise VendorError(
                    str(err.get("message") or err),
                    code=err.get("status") or err.get("code"),
                    payload=data,
                )
            raise VendorError(str(err), payload=data)

        feedback = data.get("promptFeedback") or {}
        if feedback.get("blockReason") and not data.get("candidates"):
            raise VendorError(
                f"Prompt blocked: {feedback['blockReason']}", payload=data,
            )

        msg = ResponseMessage()
        for part in _parts(data):
            text = part.get("text")
            if not isinstance(text, str):
                continue
            if part.get("thought"):
                msg.reasoning += text
            else:
                msg.content += text

        usage = data.get("usageMetadata")
        if isinstance(usage, dict):
            if usage.get("promptTokenCount") is not None:
                msg.input_tokens = int(usage["promptTokenCount"])
            if usage.get("candidatesTokenCount") is not None:
                msg.output_tokens = int(usage["candidatesTokenCount"])

        candidates = data.get("candidates") or []
        msg.is_end = bool(candidates and candidates[0].get("finishReason"))
        msg.tool_calls = self.parse_tools(data)
        return msg

    def parse_tools(self, data: dict[str, Any]) -> list[ToolCallDelta]:
        calls = []
        for part in _parts(data):
            fc = part.get("functionCall")
            if not isinstance(fc, dict) or not fc.get("name"):
                continue
            calls.append(ToolCallDelta(
                index=self._calls,
                id=fc.get("id") or "",
                name=fc["name"],
                arguments=fc.get("args") or {},
            ))
            self._calls += 1
        return calls

    def parse_tool_args(self, data: dict[str, Any]) -> list[ToolCallDelta]:
        # Arguments travel with the call in parse_tools.
        return []

    def detect_end(self, unit: str, message: ResponseMessage) -> bool:
        return message.is_end
