"""Exception hierarchy for polychat."""

from __future__ import annotations

from typing import Any


class ChatError(Exception):
    """Base exception for all polychat errors."""

    def __init__(
        self,
        message: str,
        *,
        code: int | str | None = None,
        hint: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.hint = hint


class ConfigError(ChatError):
    """Configuration file could not be parsed or validated."""


class AuthenticationError(ChatError):
    """Credentials are missing or unusable; raised before any request."""


class CapabilityError(ChatError):
    """The active model cannot accept the requested content."""


class UnsupportedContentError(CapabilityError):
    """A tool returned a content block that cannot be forwarded."""


class TransportError(ChatError):
    """Network failure or non-2xx HTTP status."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: Any = None,
        hint: str | None = None,
    ) -> None:
        super().__init__(message, code=status_code, hint=hint)
        self.status_code = status_code
        self.body = body


class VendorError(ChatError):
    """Error object embedded in an otherwise successful response stream."""

    def __init__(self, message: str, *, code: int | str | None = None, payload: Any = None) -> None:
        super().__init__(message, code=code)
        self.payload = payload


class ParseError(ChatError):
    """A framed unit could not be decoded. Recoverable."""


class ToolLoopError(ChatError):
    """The tool-use loop exceeded its round limit."""
