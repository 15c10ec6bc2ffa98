"""OpenAI-compatible chat completions wire format.

Used by OpenAI, Azure, DeepSeek, Grok, Mistral, Moonshot, Zhipu, Baidu v2,
Doubao, Perplexity and 5ire.  Streaming bodies are SSE ``data:`` frames
terminated by ``[DONE]``; usage arrives in a final chunk after
``finish_reason`` (when ``stream_options.include_usage`` is set), so the
stream is only considered finished at the sentinel.
"""

from __future__ import annotations

from typing import Any

from polychat.errors import ParseError, VendorError
from polychat.readers.base import TokenMode, load_unit
from polychat.readers.scanner import SseFramer
from polychat.types import ResponseMessage, ToolCallDelta

DONE = "[DONE]"


def error_message(err: Any) -> str:
    if isinstance(err, dict):
        return str(err.get("message") or err.get("msg") or err)
    return str(err)


def _first_choice(data: dict[str, Any]) -> dict[str, Any]:
    choices = data.get("choices") or []
    if choices and isinstance(choices[0], dict):
        return choices[0]
    return {}


def _delta(data: dict[str, Any]) -> dict[str, Any]:
    choice = _first_choice(data)
    # Streaming chunks carry "delta"; complete responses carry "message".
    return choice.get("delta") or choice.get("message") or {}


def _text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return "".join(
            p.get("text", "") for p in value if isinstance(p, dict)
        )
    return ""


class OpenAIWire:
    token_mode = TokenMode.CUMULATIVE

    def make_framer(self) -> SseFramer:
        return SseFramer()

    def parse_reply(self, unit: str) -> ResponseMessage:
        if unit == DONE:
            return ResponseMessage(is_end=True)
        data = load_unit(unit)
        if not isinstance(data, dict):
            raise ParseError(f"Expected an object, got {type(data).__name__}")
        err = data.get("error")
        if err:
            code = err.get("code") if isinstance(err, dict) else None
            raise VendorError(error_message(err), code=code, payload=data)

        choice = _first_choice(data)
        delta = _delta(data)
        msg = ResponseMessage(
            content=_text(delta.get("content")),
            reasoning=_text(delta.get("reasoning_content") or delta.get("reasoning")),
            is_end="message" in choice,
        )
        # Moonshot reports usage on the choice rather than the chunk.
        usage = data.get("usage") or choice.get("usage")
        if isinstance(usage, dict):
            if usage.get("prompt_tokens") is not None:
                msg.input_tokens = int(usage["prompt_tokens"])
            if usage.get("completion_tokens") is not None:
                msg.output_tokens = int(usage["completion_tokens"])
        msg.tool_calls = self.parse_tools(data) + self.parse_tool_args(data)
        return msg

    def parse_tools(self, data: dict[str, Any]) -> list[ToolCallDelta]:
        starts = []
        for pos, tc in enumerate(_delta(data).get("tool_calls") or []):
            func = tc.get("function") or {}
            if func.get("name"):
                starts.append(ToolCallDelta(
                    index=tc.get("index", pos),
                    id=tc.get("id") or "",
                    name=func["name"],
                ))
        return starts

    def parse_tool_args(self, data: dict[str, Any]) -> list[ToolCallDelta]:
        fragments = []
        for pos, tc in enumerate(_delta(data).get("tool_calls") or []):
            args = (tc.get("function") or {}).get("arguments")
            if args:
                fragments.append(ToolCallDelta(index=tc.get("index", pos), arguments=args))
        return fragments

    def detect_end(self, unit: str, message: ResponseMessage) -> bool:
        return unit == DONE or message.is_end
