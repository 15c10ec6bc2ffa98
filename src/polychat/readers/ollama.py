"""Ollama native ``/api/chat`` wire format (newline-delimited JSON)."""

from __future__ import annotations

from typing import Any

from polychat.errors import ParseError, VendorError
from polychat.readers.base import TokenMode, load_unit
from polychat.readers.scanner import LineFramer
from polychat.types import ResponseMessage, ToolCallDelta


class OllamaWire:
    token_mode = TokenMode.CUMULATIVE

    def __init__(self) -> None:
        self._calls = 0

    def make_framer(self) -> LineFramer:
        return LineFramer()

    def parse_reply(self, unit: str) -> ResponseMessage:
        data = load_unit(unit)
        if not isinstance(data, dict):
            raise ParseError(f"Expected an object, got {type(data).__name__}")
        if data.get("error"):
            raise VendorError(str(data["error"]), payload=data)

        message = data.get("message") or {}
        msg = ResponseMessage(
            content=message.get("content") or "",
            reasoning=message.get("thinking") or "",
            is_end=bool(data.get("done")),
        )
        # Final chunk: extract usage
        if data.get("done"):
            if "prompt_eval_count" in data:
                msg.input_tokens = int(data["prompt_eval_count"])
            if "eval_count" in data:
                msg.output_tokens = int(data["eval_count"])
        msg.tool_calls = self.parse_tools(data)
        return msg

    def parse_tools(self, data: dict[str, Any]) -> list[ToolCallDelta]:
        calls = []
        for tc in (data.get("message") or {}).get("tool_calls") or []:
            func = tc.get("function") or {}
            if not func.get("name"):
                continue
            calls.append(ToolCallDelta(
                index=self._calls,
                id=tc.get("id") or "",
                name=func["name"],
                arguments=func.get("arguments") or {},
            ))
            self._calls += 1
        return calls

    def parse_tool_args(self, data: dict[str, Any]) -> list[ToolCallDelta]:
        # Ollama delivers arguments whole, alongside the name.
        return []

    def detect_end(self, unit: str, message: ResponseMessage) -> bool:
        return message.is_end
