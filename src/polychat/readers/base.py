"""Stream reader: folds a vendor byte stream into progress callbacks and one result.

The reader itself is vendor-agnostic.  All wire knowledge lives in a
*variant* object (see :mod:`polychat.readers.openai` and siblings) that
supplies a framer and turns each framed unit into a
:class:`~polychat.types.ResponseMessage`.
"""

from __future__ import annotations

import asyncio
import codecs
import enum
import inspect
import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterable, AsyncIterator, Callable, Protocol

from polychat.errors import ChatError, ParseError, TransportError, VendorError
from polychat.types import ReadResult, ResponseMessage, ToolCall, ToolCallDelta

_logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, str], Any]
ToolCallsCallback = Callable[[str], Any]
ErrorCallback = Callable[[Exception], Any]


class TokenMode(enum.Enum):
    """How a variant's usage numbers combine across units."""

    CUMULATIVE = "cumulative"    # each report is the running total: replace
    INCREMENTAL = "incremental"  # each report is a delta: add output tokens


class Framer(Protocol):
    def feed(self, text: str) -> list[str]: ...

    def flush(self) -> list[str]: ...


class WireVariant(Protocol):
    """Capability set every wire variant provides."""

    token_mode: TokenMode

    def make_framer(self) -> Framer: ...

    def parse_reply(self, unit: str) -> ResponseMessage: ...

    def parse_tools(self, data: dict[str, Any]) -> list[ToolCallDelta]: ...

    def parse_tool_args(self, data: dict[str, Any]) -> list[ToolCallDelta]: ...

    def detect_end(self, unit: str, message: ResponseMessage) -> bool: ...


class Signal(Protocol):
    def is_set(self) -> bool: ...

    async def wait(self) -> None: ...


async def invoke_callback(callback: Callable[..., Any] | None, *args: Any) -> None:
    """Call a sync or async callback in place."""
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


async def _next_or_stop(
    source: AsyncIterator[bytes], stop: asyncio.Future[None] | None,
) -> bytes | None:
    """Next chunk from *source*, or None once *stop* completes first."""
    if stop is None:
        return await source.__anext__()
    step = asyncio.ensure_future(source.__anext__())
    try:
        await asyncio.wait({step, stop}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        if not step.done():
            step.cancel()
            await asyncio.wait({step})
    if step.cancelled():
        return None
    return step.result()


def load_unit(unit: str) -> Any:
    """Decode one framed unit as JSON, raising :class:`ParseError`."""
    try:
        return json.loads(unit)
    except (json.JSONDecodeError, ValueError) as e:
        raise ParseError(f"Undecodable unit: {unit[:200]!r}") from e


# ---------------------------------------------------------------------------
# Tool-call accumulation
# ---------------------------------------------------------------------------

@dataclass
class _ToolSlot:
    id: str = ""
    name: str = ""
    arguments: str = ""


class ToolCallAccumulator:
    """Accumulate tool-call deltas keyed by index.

    String fragments are concatenated in arrival order; dict arguments are
    atomic and replace the slot.  Only the first announced tool survives
    :meth:`finalize`; later indices are dropped with a warning.
    """

    def __init__(self) -> None:
        self._slots: dict[int, _ToolSlot] = {}
        self._first: int | None = None

    @property
    def first_name(self) -> str:
        if self._first is None:
            return ""
        return self._slots[self._first].name

    def feed(self, delta: ToolCallDelta) -> bool:
        """Apply *delta*.  Returns True when this delta announced the first tool."""
        slot = self._slots.setdefault(delta.index, _ToolSlot())
        announced = False
        if delta.id:
            slot.id = delta.id
        if delta.name:
            slot.name = delta.name
            if self._first is None:
                self._first = delta.index
                announced = True
        if isinstance(delta.arguments, dict):
            slot.arguments = json.dumps(delta.arguments, ensure_ascii=False)
        elif delta.arguments:
            slot.arguments += delta.arguments
        return announced

    def finalize(self) -> ToolCall | None:
        if self._first is None:
            return None
        extra = [i for i, s in self._slots.items() if s.name and i != self._first]
        if extra:
            _logger.warning(
                "Dropping %d parallel tool call(s); only %r is executed",
                len(extra), self._slots[self._first].name,
            )
        slot = self._slots[self._first]
        raw = slot.arguments
        args: dict[str, Any] = {}
        if raw.strip():
            try:
                parsed = json.loads(raw)
            except json.JSONDecodeError:
                _logger.warning(
                    "Malformed arguments for tool %r: %.200s", slot.name, raw,
                )
            else:
                if isinstance(parsed, dict):
                    args = parsed
                else:
                    _logger.warning(
                        "Arguments for tool %r are not an object: %.200s",
                        slot.name, raw,
                    )
        return ToolCall(name=slot.name, arguments=args, id=slot.id, raw=raw)


# ---------------------------------------------------------------------------
# StreamReader
# ---------------------------------------------------------------------------

class StreamReader:
    """Drive one wire variant over one response stream.

    States: awaiting data -> buffering -> unit ready -> parsed ->
    (progress | tool delta | error) -> awaiting data.  End of stream
    (variant-detected or transport close) always runs the final flush and
    returns the accumulated :class:`ReadResult`.

    A reader is single-use.  Errors reported through ``on_error`` are also
    kept on :attr:`error` so the caller can re-raise after the result is in.
    """

    def __init__(
        self,
        variant: WireVariant,
        stream: AsyncIterable[bytes],
        signal: Signal | None = None,
    ) -> None:
        self.variant = variant
        self._stream = stream
        self._signal = signal
        self.error: Exception | None = None

        self._content: list[str] = []
        self._reasoning: list[str] = []
        self._input_tokens = 0
        self._output_tokens = 0
        self._tools = ToolCallAccumulator()
        self._ended = False
        self._on_progress: ProgressCallback | None = None
        self._on_tool_calls: ToolCallsCallback | None = None
        self._on_error: ErrorCallback | None = None

    @property
    def aborted(self) -> bool:
        return self._signal is not None and self._signal.is_set()

    async def read(
        self,
        *,
        on_progress: ProgressCallback | None = None,
        on_tool_calls: ToolCallsCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> ReadResult:
        self._on_progress = on_progress
        self._on_tool_calls = on_tool_calls
        self._on_error = on_error

        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        framer = self.variant.make_framer()
        leftover: list[str] = []
        chunks = self._chunks()
        try:
            async for chunk in chunks:
                if self.aborted:
                    _logger.debug("Read aborted")
                    break
                units = framer.feed(decoder.decode(chunk))
                for i, unit in enumerate(units):
                    await self._handle(unit)
                    if self._ended or self.error is not None:
                        leftover = units[i + 1:]
                        break
                if self._ended or self.error is not None:
                    break
        except ChatError as e:
            await self._fail(e)
        finally:
            await chunks.aclose()
            await self._final_flush(framer, decoder, leftover)

        return self._result()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _chunks(self) -> AsyncIterator[bytes]:
        """Pull chunks from the stream until it ends or the signal fires.

        A pending read is cancelled as soon as the signal is set, so a
        stalled body cannot hold the reader.  Failures of the stream itself
        surface as :class:`TransportError`.
        """
        source = self._stream.__aiter__()
        stop = (
            asyncio.ensure_future(self._signal.wait()) if self._signal is not None else None
        )
        try:
            while not self.aborted:
                try:
                    chunk = await _next_or_stop(source, stop)
                except StopAsyncIteration:
                    return
                except ChatError:
                    raise
                except Exception as e:
                    if self.aborted:
                        _logger.debug("Stream closed after abort: %s", e)
                        return
                    raise TransportError(f"Stream interrupted: {e}") from e
                if chunk is None:
                    _logger.debug("Read aborted while waiting for data")
                    return
                yield chunk
        finally:
            if stop is not None:
                stop.cancel()
            aclose = getattr(source, "aclose", None)
            if aclose is not None:
                await aclose()

    async def _final_flush(self, framer: Framer, decoder: Any, leftover: list[str]) -> None:
        units = list(leftover)
        units.extend(framer.feed(decoder.decode(b"", final=True)))
        units.extend(framer.flush())
        for unit in units:
            await self._handle(unit)

    async def _handle(self, unit: str) -> None:
        if self.error is not None:
            return
        _logger.debug("unit: %.500s", unit)
        try:
            msg = self.variant.parse_reply(unit)
        except ParseError as e:
            _logger.debug("Skipping unparseable unit: %s", e)
            return
        except VendorError as e:
            await self._fail(e)
            return

        if msg.content or msg.reasoning:
            if msg.content:
                self._content.append(msg.content)
            if msg.reasoning:
                self._reasoning.append(msg.reasoning)
            await invoke_callback(self._on_progress, msg.content, msg.reasoning)

        for delta in msg.tool_calls:
            if self._tools.feed(delta):
                await invoke_callback(self._on_tool_calls, delta.name)

        self._apply_usage(msg)

        if self.variant.detect_end(unit, msg):
            self._ended = True

    def _apply_usage(self, msg: ResponseMessage) -> None:
        if msg.input_tokens is not None:
            self._input_tokens = msg.input_tokens
        if msg.output_tokens is not None:
            if self.variant.token_mode is TokenMode.INCREMENTAL:
                self._output_tokens += msg.output_tokens
            else:
                self._output_tokens = msg.output_tokens

    async def _fail(self, error: Exception) -> None:
        if self.error is not None:
            return
        self.error = error
        _logger.debug("Read failed: %s", error)
        await invoke_callback(self._on_error, error)

    def _result(self) -> ReadResult:
        return ReadResult(
            content="".join(self._content),
            reasoning="".join(self._reasoning),
            tool=self._tools.finalize(),
            input_tokens=self._input_tokens,
            output_tokens=self._output_tokens,
        )
