"""Async pub/sub EventBus for observing chat turns."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import deque
from typing import Any, Callable

from polychat.types import ChatEvent, EventType

_logger = logging.getLogger(__name__)

WILDCARD = "*"

Handler = Callable[[ChatEvent], Any]


class EventBus:
    """Fan chat events out to subscribers.

    A subscription names an :class:`EventType` (or its string value), or
    ``"*"`` for everything.  Handlers may be plain callables or coroutines;
    all matching handlers of one event run concurrently.  A handler that
    raises is logged and never reaches the chat service.

    The bus keeps a bounded log of recent events so callers can inspect a
    finished turn with :meth:`history_for`.
    """

    def __init__(self, max_history: int = 200) -> None:
        self._subs: dict[str, list[Handler]] = {}
        self._log: deque[ChatEvent] = deque(maxlen=max_history)

    def subscribe(self, event_type: EventType | str, handler: Handler) -> None:
        self._subs.setdefault(_topic(event_type), []).append(handler)

    def unsubscribe(self, event_type: EventType | str, handler: Handler) -> None:
        subs = self._subs.get(_topic(event_type))
        if subs and handler in subs:
            subs.remove(handler)

    async def emit(self, event: ChatEvent) -> None:
        self._log.append(event)
        targets = [*self._subs.get(_topic(event.type), ()), *self._subs.get(WILDCARD, ())]
        if targets:
            await asyncio.gather(*(_deliver(h, event) for h in targets))

    @property
    def history(self) -> list[ChatEvent]:
        """Recent events, oldest first."""
        return list(self._log)

    def history_for(self, chat_id: str) -> list[EventType]:
        """Event types logged for one chat, in emission order."""
        return [e.type for e in self._log if e.chat_id == chat_id]

    def clear(self) -> None:
        self._subs.clear()
        self._log.clear()


def _topic(event_type: EventType | str) -> str:
    return event_type.value if isinstance(event_type, EventType) else str(event_type)


async def _deliver(handler: Handler, event: ChatEvent) -> None:
    try:
        outcome = handler(event)
        if inspect.isawaitable(outcome):
            await outcome
    except Exception:
        _logger.exception(
            "Event handler %s failed on %s (chat %s)",
            getattr(handler, "__name__", handler), event.type.value, event.chat_id or "-",
        )
