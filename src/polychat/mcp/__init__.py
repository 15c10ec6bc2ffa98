"""MCP tool-result content handling."""

from polychat.mcp.content import (
    ContentBlockConverter,
    block_to_part,
    convert_to_parts,
    detect_mime_type,
)

__all__ = [
    "ContentBlockConverter",
    "block_to_part",
    "convert_to_parts",
    "detect_mime_type",
]
