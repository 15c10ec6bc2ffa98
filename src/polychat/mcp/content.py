"""Convert MCP tool-result content blocks into model-ready content.

Tool servers return blocks with fields no vendor accepts (``mimeType`` on
text, ``annotations``, ``_meta``...).  Every block is rebuilt from its
supported fields only, so nothing else can leak into a follow-up request.

Final block shapes::

    {"type": "text", "text": ...}
    {"type": "image", "source": {"type": "base64", "data": ..., "mimeType": ...}}
    {"type": "image", "source": {"type": "url", "url": ...}}
    {"type": "audio", "source": {"type": "base64", "data": ..., "mimeType": ...}}
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any, Iterable

from polychat.errors import UnsupportedContentError
from polychat.types import AudioPart, ContentPart, ImagePart, TextPart

_logger = logging.getLogger(__name__)

SUPPORTED_IMAGE_MIMETYPES = ("image/jpeg", "image/png", "image/gif", "image/webp")
SUPPORTED_AUDIO_MIMETYPES = ("audio/mpeg", "audio/wav")

# (offset, signature, mime type); checked in order.
_SIGNATURES: tuple[tuple[int, bytes, str], ...] = (
    (0, b"\x89PNG\r\n\x1a\n", "image/png"),
    (0, b"\xff\xd8\xff", "image/jpeg"),
    (0, b"GIF87a", "image/gif"),
    (0, b"GIF89a", "image/gif"),
    (8, b"WEBP", "image/webp"),
    (8, b"WAVE", "audio/wav"),
    (0, b"ID3", "audio/mpeg"),
    (0, b"\xff\xfb", "audio/mpeg"),
    (0, b"\xff\xf3", "audio/mpeg"),
    (0, b"\xff\xf2", "audio/mpeg"),
    (0, b"%PDF-", "application/pdf"),
)


def _b64decode(blob: str) -> bytes:
    try:
        return base64.b64decode(blob, validate=False)
    except (binascii.Error, ValueError) as e:
        raise UnsupportedContentError("Resource blob is not valid base64") from e


def detect_mime_type(blob: str) -> str | None:
    """Sniff the MIME type of a base64 blob from its magic bytes."""
    head = _b64decode(blob[:64])
    for offset, signature, mime in _SIGNATURES:
        if head[offset:offset + len(signature)] == signature:
            if mime in ("image/webp", "audio/wav") and not head.startswith(b"RIFF"):
                continue
            return mime
    return None


def _document(uri: str, mime_type: str, text: str) -> str:
    return "\n".join([
        "[Document Start]",
        f"URI: {uri}",
        f"MimeType: {mime_type}",
        "Content:",
        '"""',
        text,
        '"""',
        "[Document End]",
    ])


class ContentBlockConverter:
    """Stateless converter from MCP content blocks to final blocks."""

    def convert(self, block: dict[str, Any]) -> dict[str, Any]:
        kind = block.get("type")
        if kind == "text":
            return {"type": "text", "text": str(block.get("text") or "")}
        if kind == "image":
            return self._image(block.get("data") or "", block.get("mimeType") or "")
        if kind == "audio":
            return self._audio(block.get("data") or "", block.get("mimeType") or "")
        if kind == "resource":
            return self._resource(block.get("resource") or {})
        if kind == "resource_link":
            return self._resource_link(block)
        raise UnsupportedContentError(f"Unknown content block type: {kind!r}")

    def convert_all(self, blocks: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
        return [self.convert(b) for b in blocks]

    # ------------------------------------------------------------------

    @staticmethod
    def _image(data: str, mime_type: str) -> dict[str, Any]:
        if mime_type not in SUPPORTED_IMAGE_MIMETYPES:
            raise UnsupportedContentError(f"Unsupported image mimetype: {mime_type!r}")
        return {
            "type": "image",
            "source": {"type": "base64", "data": data, "mimeType": mime_type},
        }

    @staticmethod
    def _audio(data: str, mime_type: str) -> dict[str, Any]:
        if mime_type not in SUPPORTED_AUDIO_MIMETYPES:
            raise UnsupportedContentError(f"Unsupported audio mimetype: {mime_type!r}")
        return {
            "type": "audio",
            "source": {"type": "base64", "data": data, "mimeType": mime_type},
        }

    def _resource(self, resource: dict[str, Any]) -> dict[str, Any]:
        uri = resource.get("uri") or ""
        if isinstance(resource.get("text"), str):
            mime_type = resource.get("mimeType") or "text/plain"
            return {"type": "text", "text": _document(uri, mime_type, resource["text"])}

        blob = resource.get("blob")
        if isinstance(blob, str):
            mime_type = resource.get("mimeType") or detect_mime_type(blob)
            if not mime_type:
                raise UnsupportedContentError("Unknown resource mimetype")
            if mime_type.startswith("image/"):
                return self._image(blob, mime_type)
            if mime_type.startswith("audio/"):
                return self._audio(blob, mime_type)
            if mime_type.startswith("text/"):
                text = _b64decode(blob).decode("utf-8", errors="replace")
                return {"type": "text", "text": _document(uri, mime_type, text)}
            _logger.debug("Rejecting resource %s with mimetype %s", uri, mime_type)
        raise UnsupportedContentError("Unsupported resource type")

    @staticmethod
    def _resource_link(block: dict[str, Any]) -> dict[str, Any]:
        return {
            "type": "text",
            "text": "\n".join([
                "[Resource Start]",
                f"Name: {block.get('name', '')}",
                f"Title: {block.get('title', '')}",
                f"Description: {block.get('description', '')}",
                f"URI: {block.get('uri', '')}",
                "[Resource End]",
            ]),
        }


def block_to_part(block: dict[str, Any]) -> ContentPart:
    """Map a final block onto a request content part."""
    kind = block.get("type")
    source = block.get("source") or {}
    if kind == "text":
        return TextPart(block.get("text") or "")
    if kind == "image":
        if source.get("type") == "url":
            return ImagePart(source.get("url") or "", is_url=True)
        return ImagePart(source.get("data") or "", source.get("mimeType") or "image/png")
    if kind == "audio":
        return AudioPart(source.get("data") or "", source.get("mimeType") or "audio/mpeg")
    raise UnsupportedContentError(f"Unknown final block type: {kind!r}")


def convert_to_parts(
    blocks: Iterable[dict[str, Any]],
    converter: ContentBlockConverter | None = None,
) -> tuple[ContentPart, ...]:
    converter = converter or ContentBlockConverter()
    return tuple(block_to_part(converter.convert(b)) for b in blocks)
