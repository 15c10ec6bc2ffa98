"""Vendor payload builders."""

from __future__ import annotations

from polychat.payload.anthropic import AnthropicPayloadBuilder
from polychat.payload.base import (
    PayloadBuilder,
    remove_additional_properties,
    split_by_img,
    strip_html_tags,
)
from polychat.payload.google import GooglePayloadBuilder
from polychat.payload.ollama import OllamaPayloadBuilder
from polychat.payload.openai import OpenAIPayloadBuilder
from polychat.providers.descriptor import WireFormat

_BUILDERS: dict[WireFormat, type[PayloadBuilder]] = {
    WireFormat.OPENAI: OpenAIPayloadBuilder,
    WireFormat.ANTHROPIC: AnthropicPayloadBuilder,
    WireFormat.GOOGLE: GooglePayloadBuilder,
    WireFormat.OLLAMA: OllamaPayloadBuilder,
}


def get_builder(wire: WireFormat) -> PayloadBuilder:
    try:
        return _BUILDERS[wire]()
    except KeyError:
        raise ValueError(f"No payload builder for wire format: {wire}") from None


__all__ = [
    "AnthropicPayloadBuilder",
    "GooglePayloadBuilder",
    "OllamaPayloadBuilder",
    "OpenAIPayloadBuilder",
    "PayloadBuilder",
    "get_builder",
    "remove_additional_properties",
    "split_by_img",
    "strip_html_tags",
]
