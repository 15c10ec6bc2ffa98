"""Chat service: one conversational turn end to end, including tool use.

    context -> payload -> transport -> reader -> (tool -> follow-up)* -> result

The service owns no vendor knowledge.  The payload builder and reader are
picked from the provider's wire format; URL and headers come from
:func:`polychat.endpoints.resolve_endpoint`.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Sequence

from polychat.context import ChatContext, Credentials
from polychat.endpoints import resolve_endpoint
from polychat.errors import ChatError, ToolLoopError
from polychat.events.bus import EventBus
from polychat.payload import PayloadBuilder, get_builder
from polychat.readers import create_reader
from polychat.readers.base import (
    ProgressCallback,
    ToolCallsCallback,
    invoke_callback,
)
from polychat.tokens import CharEstimator, TokenEstimator
from polychat.tools.registry import ToolProvider
from polychat.transport import AbortSignal, HttpTransport
from polychat.types import (
    ChatEvent,
    EventType,
    ReadResult,
    RequestMessage,
    ToolCall,
    ToolDescriptor,
    ToolResult,
)

_logger = logging.getLogger(__name__)


class ChatService:
    """Drive chat turns against one provider.

    Turns on one service run one at a time; use a service per concurrent
    turn.  :meth:`abort` targets the running turn, or the next one when
    called before it starts.

    Parameters
    ----------
    context:
        Resolved provider, model and sampling parameters.
    transport:
        HTTP transport.  When omitted one is created from config and closed
        by :meth:`aclose`.
    tools:
        Tool collaborator.  Without one, tool calls end the turn.
    event_bus:
        Receives ``chat.*`` and ``tool.*`` events.
    credentials:
        Explicit credentials; defaults to ``context.credentials()``.
    estimator:
        Token estimator used when the vendor reports no usage.
    max_tool_rounds:
        Tool executions allowed per turn before :class:`ToolLoopError`.
    """

    def __init__(
        self,
        context: ChatContext,
        *,
        transport: HttpTransport | None = None,
        tools: ToolProvider | None = None,
        event_bus: EventBus | None = None,
        credentials: Credentials | None = None,
        estimator: TokenEstimator | None = None,
        max_tool_rounds: int | None = None,
        builder: PayloadBuilder | None = None,
    ) -> None:
        self.context = context
        self._owns_transport = transport is None
        self._transport = transport
        self._tools = tools
        self.event_bus = event_bus or EventBus()
        self._credentials = credentials
        self._estimator = estimator or CharEstimator()
        self.max_tool_rounds = (
            max_tool_rounds if max_tool_rounds is not None
            else context.config.max_tool_rounds
        )
        self.builder = builder or get_builder(context.provider.wire)
        self._signal = AbortSignal()
        self._running = False
        self.used_tool_names: list[str] = []

    @property
    def transport(self) -> HttpTransport:
        if self._transport is None:
            settings = self.context.config.settings_for(self.context.provider.name)
            self._transport = HttpTransport(
                timeout=self.context.config.timeout, proxy=settings.proxy or None,
            )
        return self._transport

    def abort(self) -> None:
        """Cancel the pending read or tool call; the turn returns a partial result."""
        self._signal.set()

    @property
    def aborted(self) -> bool:
        """True once :meth:`abort` was called and the turn has not finished."""
        return self._signal.is_set()

    async def aclose(self) -> None:
        if self._owns_transport and self._transport is not None:
            await self._transport.aclose()
            self._transport = None

    async def __aenter__(self) -> ChatService:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Turn
    # ------------------------------------------------------------------

    async def send_message(
        self,
        messages: Sequence[RequestMessage],
        msg_id: str | None = None,
        *,
        on_progress: ProgressCallback | None = None,
        on_tool_calls: ToolCallsCallback | None = None,
    ) -> ReadResult:
        """Run one turn and return the accumulated result.

        Content, reasoning and token counts accumulate across tool rounds;
        the returned result never carries a tool.
        """
        if self._running:
            raise ChatError(
                "A turn is already running on this service",
                hint="Use one ChatService per concurrent turn.",
            )
        self._running = True
        signal = self._signal
        self.used_tool_names = []
        ctx = self.context
        history = list(messages)
        content: list[str] = []
        reasoning: list[str] = []
        input_tokens = output_tokens = 0
        rounds = 0

        try:
            credentials = self._credentials or ctx.credentials()
            url, headers = resolve_endpoint(
                ctx.provider, ctx.model, credentials, stream=ctx.is_stream,
            )
            await self._emit(EventType.CHAT_STARTED, {
                "provider": ctx.provider.name,
                "model": ctx.model.name,
                "stream": ctx.is_stream,
            })

            while not signal.is_set():
                result = await self._request(
                    url, headers, history, msg_id, signal, on_progress, on_tool_calls,
                )
                content.append(result.content)
                reasoning.append(result.reasoning)
                input_tokens += result.input_tokens
                output_tokens += result.output_tokens

                tool = result.tool
                if signal.is_set() or tool is None:
                    break
                if self._tools is None or not ctx.tools_enabled:
                    break
                rounds += 1
                if rounds > self.max_tool_rounds:
                    raise ToolLoopError(
                        f"Tool loop exceeded {self.max_tool_rounds} rounds "
                        f"(last tool: {tool.name})",
                        hint="Raise max_tool_rounds or check the tool results.",
                    )
                tool_result = await self._call_tool(tool, signal)
                self.used_tool_names.append(tool.name)
                history.extend(
                    self.builder.make_tool_messages(tool, tool_result, result.content)
                )

            if signal.is_set():
                await self._emit(EventType.CHAT_ABORTED, {"tool_rounds": rounds})
        except ChatError as e:
            await self._emit(EventType.CHAT_ERROR, {
                "error": str(e), "type": type(e).__name__,
            })
            raise
        finally:
            self._running = False
            if signal.is_set():
                self._signal = AbortSignal()

        final = ReadResult(
            content="".join(content),
            reasoning="".join(reasoning),
            tool=None,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
        await self._emit(EventType.CHAT_DONE, {
            "input_tokens": final.input_tokens,
            "output_tokens": final.output_tokens,
            "tool_rounds": rounds,
        })
        return final

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _offered_tools(self) -> list[ToolDescriptor]:
        if self._tools is None or not self.context.tools_enabled:
            return []
        tools = await self._tools.list_tools()
        return [t for t in tools if t.name not in self.used_tool_names]

    async def _request(
        self,
        url: str,
        headers: dict[str, str],
        history: list[RequestMessage],
        msg_id: str | None,
        signal: AbortSignal,
        on_progress: ProgressCallback | None,
        on_tool_calls: ToolCallsCallback | None,
    ) -> ReadResult:
        ctx = self.context
        tools = await self._offered_tools()
        payload = self.builder.build(ctx, history, tools, msg_id)
        _logger.debug("payload: %s", payload)

        handle = await self.transport.open(url, headers, payload, signal)
        reader = create_reader(ctx.provider.wire, handle.aiter_bytes(), signal)

        async def progress(delta: str, thought: str) -> None:
            await self._emit(EventType.CHAT_PROGRESS, {
                "content": delta, "reasoning": thought,
            })
            await invoke_callback(on_progress, delta, thought)

        async def tool_calls(name: str) -> None:
            await self._emit(EventType.CHAT_TOOL_CALL, {"name": name})
            await invoke_callback(on_tool_calls, name)

        try:
            result = await reader.read(on_progress=progress, on_tool_calls=tool_calls)
        finally:
            await handle.aclose()
        if reader.error is not None:
            raise reader.error

        if not result.input_tokens or not result.output_tokens:
            result = ReadResult(
                content=result.content,
                reasoning=result.reasoning,
                tool=result.tool,
                input_tokens=result.input_tokens or self._estimator.count_input(payload),
                output_tokens=result.output_tokens or self._estimator.count_output(
                    result.content + result.reasoning
                ),
            )
        return result

    async def _call_tool(self, tool: ToolCall, signal: AbortSignal) -> ToolResult:
        assert self._tools is not None
        await self._emit(EventType.TOOL_EXECUTING, {
            "name": tool.name, "arguments": tool.arguments,
        })
        call = asyncio.ensure_future(self._tools.call_tool(tool.name, tool.arguments))
        stop = asyncio.ensure_future(signal.wait())
        try:
            await asyncio.wait({call, stop}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop.cancel()
            if not call.done():
                call.cancel()
                await asyncio.wait({call})
        try:
            if call.cancelled():
                _logger.info("Tool %r cancelled by abort", tool.name)
                result = ToolResult.failure("Tool call aborted")
            else:
                result = call.result()
        except Exception as e:
            _logger.warning("Tool %r raised: %s", tool.name, e)
            result = ToolResult.failure(f"{type(e).__name__}: {e}")
        if result.is_error:
            await self._emit(EventType.TOOL_ERROR, {
                "name": tool.name, "error": result.error_text,
            })
        else:
            await self._emit(EventType.TOOL_EXECUTED, {"name": tool.name})
        return result

    async def _emit(self, event_type: EventType, data: dict[str, Any]) -> None:
        await self.event_bus.emit(ChatEvent(
            type=event_type, chat_id=self.context.chat_id, data=data,
        ))
