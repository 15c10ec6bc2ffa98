"""Anthropic Messages API wire format.

Event sequence: ``message_start`` (input usage), ``content_block_start``
(text, thinking or tool_use with id and name), ``content_block_delta``
(``text_delta``, ``thinking_delta`` or ``input_json_delta``),
``message_delta`` (cumulative output usage), ``message_stop``.  ``ping``
and ``content_block_stop`` carry nothing.  A complete (non-streaming)
response has ``type == "message"``.
"""

from __future__ import annotations

from typing import Any

from polychat.errors import ParseError, VendorError
from polychat.readers.base import TokenMode, load_unit
from polychat.readers.scanner import SseFramer
from polychat.types import ResponseMessage, ToolCallDelta


def _usage(msg: ResponseMessage, usage: Any) -> None:
    if not isinstance(usage, dict):
        return
    if usage.get("input_tokens") is not None:
        msg.input_tokens = int(usage["input_tokens"])
    if usage.get("output_tokens") is not None:
        msg.output_tokens = int(usage["output_tokens"])


class AnthropicWire:
    token_mode = TokenMode.CUMULATIVE

    def make_framer(self) -> SseFramer:
        return SseFramer()

    def parse_reply(self, unit: str) -> ResponseMessage:
        data = load_unit(unit)
        if not isinstance(data, dict):
            raise ParseError(f"Expected an object, got {type(data).__name__}")
        kind = data.get("type")
        msg = ResponseMessage()

        if kind == "error" or (kind is None and "error" in data):
            err = data.get("error") or {}
            if isinstance(err, dict):
                raise VendorError(
                    str(err.get("message") or err), code=err.get("type"), payload=data,
                )
            raise VendorError(str(err), payload=data)

        if kind == "message_start":
            _usage(msg, (data.get("message") or {}).get("usage"))
        elif kind == "content_block_start":
            block = data.get("content_block") or {}
            if block.get("type") == "text":
                msg.content = block.get("text") or ""
            elif block.get("type") == "thinking":
                msg.reasoning = block.get("thinking") or ""
        elif kind == "content_block_delta":
            delta = data.get("delta") or {}
            if delta.get("type") == "text_delta":
                msg.content = delta.get("text") or ""
            elif delta.get("type") == "thinking_delta":
                msg.reasoning = delta.get("thinking") or ""
        elif kind == "message_delta":
            _usage(msg, data.get("usage"))
        elif kind == "message_stop":
            msg.is_end = True
        elif kind == "message":
            for block in data.get("content") or []:
                if block.get("type") == "text":
                    msg.content += block.get("text") or ""
                elif block.get("type") == "thinking":
                    msg.reasoning += block.get("thinking") or ""
            _usage(msg, data.get("usage"))
            msg.is_end = True

        msg.tool_calls = self.parse_tools(data) + self.parse_tool_args(data)
        return msg

    def parse_tools(self, data: dict[str, Any]) -> list[ToolCallDelta]:
        kind = data.get("type")
        if kind == "content_block_start":
            block = data.get("content_block") or {}
            if block.get("type") == "tool_use":
                return [ToolCallDelta(
                    index=data.get("index", 0),
                    id=block.get("id") or "",
                    name=block.get("name") or "",
                )]
        elif kind == "message":
            return [
                ToolCallDelta(index=i, id=b.get("id") or "", name=b.get("name") or "")
                for i, b in enumerate(data.get("content") or [])
                if b.get("type") == "tool_use"
            ]
        return []

    def parse_tool_args(self, data: dict[str, Any]) -> list[ToolCallDelta]:
        kind = data.get("type")
        if kind == "content_block_delta":
            delta = data.get("delta") or {}
            if delta.get("type") == "input_json_delta" and delta.get("partial_json"):
                return [ToolCallDelta(
                    index=data.get("index", 0), arguments=delta["partial_json"],
                )]
        elif kind == "message":
            return [
                ToolCallDelta(index=i, arguments=b.get("input") or {})
                for i, b in enumerate(data.get("content") or [])
                if b.get("type") == "tool_use"
            ]
        return []

    def detect_end(self, unit: str, message: ResponseMessage) -> bool:
        return message.is_end
