"""Incremental framing of decoded stream text into parseable units.

Three framers cover every supported wire format:

- :class:`SseFramer` for ``text/event-stream`` bodies (OpenAI-compatible,
  Anthropic).  ``data:`` payloads are units; anything that is not SSE (a
  raw JSON error body, a non-streaming response) falls through to a
  :class:`FrameScanner`.
- :class:`JsonObjectFramer` for Gemini's streamed JSON array.
- :class:`LineFramer` for newline-delimited JSON (Ollama).

All framers expose ``feed(text) -> list[str]`` and ``flush() -> list[str]``.
``flush`` hands back whatever partial text remains so the reader can make
one last parse attempt.
"""

from __future__ import annotations

import logging

_logger = logging.getLogger(__name__)

_SSE_SKIP_PREFIXES = ("event:", "id:", "retry:", ":")


class FrameScanner:
    """Extract top-level balanced ``{...}`` objects from a text stream.

    State (brace depth, string/escape flags, scan position) persists across
    :meth:`feed` calls, so every character is examined exactly once no
    matter how the input is split.  Text outside any object (``[``, ``,``,
    ``]``, whitespace, stray prose) is discarded.
    """

    def __init__(self) -> None:
        self._buf = ""
        self._pos = 0
        self._depth = 0
        self._in_string = False
        self._escape = False

    @property
    def in_object(self) -> bool:
        return self._depth > 0

    @property
    def remainder(self) -> str:
        """Text of the object currently being scanned (may be empty)."""
        return self._buf

    def reset(self) -> None:
        self.__init__()

    def feed(self, text: str) -> list[str]:
        if not text:
            return []
        buf = self._buf + text
        objects: list[str] = []
        start: int | None = 0 if self._depth > 0 else None
        i = self._pos
        n = len(buf)
        while i < n:
            ch = buf[i]
            if self._depth == 0:
                if ch == "{":
                    self._depth = 1
                    start = i
            elif self._escape:
                self._escape = False
            elif self._in_string:
                if ch == "\\":
                    self._escape = True
                elif ch == '"':
                    self._in_string = False
            elif ch == '"':
                self._in_string = True
            elif ch == "{":
                self._depth += 1
            elif ch == "}":
                self._depth -= 1
                if self._depth == 0:
                    objects.append(buf[start:i + 1])
                    start = None
            i += 1

        if start is None:
            self._buf = ""
            self._pos = 0
        else:
            self._buf = buf[start:]
            self._pos = i - start
        return objects


# ---------------------------------------------------------------------------
# Framers
# ---------------------------------------------------------------------------

class SseFramer:
    """Server-sent events framer with a balanced-JSON fallback."""

    def __init__(self) -> None:
        self._pending = ""
        self._scanner = FrameScanner()

    def feed(self, text: str) -> list[str]:
        self._pending += text
        if "\n" not in self._pending:
            return []
        *lines, self._pending = self._pending.split("\n")
        units: list[str] = []
        for line in lines:
            units.extend(self._line(line, terminated=True))
        return units

    def flush(self) -> list[str]:
        units: list[str] = []
        if self._pending:
            line, self._pending = self._pending, ""
            units.extend(self._line(line, terminated=False))
        leftover = self._scanner.remainder.strip()
        if leftover:
            units.append(leftover)
        self._scanner.reset()
        return units

    def _line(self, line: str, *, terminated: bool) -> list[str]:
        if self._scanner.in_object:
            return self._scanner.feed(line + ("\n" if terminated else ""))
        stripped = line.strip()
        if not stripped:
            return []
        if stripped.startswith("data:"):
            payload = stripped[5:].strip()
            return [payload] if payload else []
        if stripped.startswith(_SSE_SKIP_PREFIXES):
            return []
        # Not SSE: raw JSON body (error object or non-streaming reply).
        return self._scanner.feed(line + ("\n" if terminated else ""))


class JsonObjectFramer:
    """Framer for a streamed JSON array of objects."""

    def __init__(self) -> None:
        self._scanner = FrameScanner()

    def feed(self, text: str) -> list[str]:
        return self._scanner.feed(text)

    def flush(self) -> list[str]:
        leftover = self._scanner.remainder.strip()
        self._scanner.reset()
        return [leftover] if leftover else []


class LineFramer:
    """Newline-delimited JSON framer."""

    def __init__(self) -> None:
        self._pending = ""

    def feed(self, text: str) -> list[str]:
        self._pending += text
        if "\n" not in self._pending:
            return []
        *lines, self._pending = self._pending.split("\n")
        return [ln.strip() for ln in lines if ln.strip()]

    def flush(self) -> list[str]:
        leftover, self._pending = self._pending.strip(), ""
        return [leftover] if leftover else []
