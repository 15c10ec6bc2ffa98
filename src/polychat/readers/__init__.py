"""Streaming response readers."""

from __future__ import annotations

from typing import AsyncIterable, Callable

from polychat.providers.descriptor import WireFormat
from polychat.readers.anthropic import AnthropicWire
from polychat.readers.base import (
    Signal,
    StreamReader,
    TokenMode,
    ToolCallAccumulator,
    WireVariant,
)
from polychat.readers.google import GoogleWire
from polychat.readers.ollama import OllamaWire
from polychat.readers.openai import OpenAIWire
from polychat.readers.scanner import FrameScanner, JsonObjectFramer, LineFramer, SseFramer

_VARIANTS: dict[WireFormat, Callable[[], WireVariant]] = {
    WireFormat.OPENAI: OpenAIWire,
    WireFormat.ANTHROPIC: AnthropicWire,
    WireFormat.GOOGLE: GoogleWire,
    WireFormat.OLLAMA: OllamaWire,
}


def create_variant(wire: WireFormat) -> WireVariant:
    try:
        return _VARIANTS[wire]()
    except KeyError:
        raise ValueError(f"No reader for wire format: {wire}") from None


def create_reader(
    wire: WireFormat,
    stream: AsyncIterable[bytes],
    signal: Signal | None = None,
) -> StreamReader:
    """Build a single-use reader for *stream* in the given wire format."""
    return StreamReader(create_variant(wire), stream, signal)


__all__ = [
    "AnthropicWire",
    "FrameScanner",
    "GoogleWire",
    "JsonObjectFramer",
    "LineFramer",
    "OllamaWire",
    "OpenAIWire",
    "SseFramer",
    "StreamReader",
    "TokenMode",
    "ToolCallAccumulator",
    "create_reader",
    "create_variant",
]
