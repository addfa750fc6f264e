"""Conversation lifecycle events.

Observers subscribe to a fixed set of events. Callbacks may be plain
functions or coroutines; the engine awaits each one, in registration order,
before it moves on.

Payloads per event:
- START, MESSAGE, INTERRUPT: the ``ChatRecord`` just written
- TERMINATE: the ``Route`` that ended
- ERROR: the ``APIError`` and the error ``ChatRecord``
"""

from __future__ import annotations

import inspect
import logging
from enum import Enum, auto
from typing import TYPE_CHECKING, Any, Callable

if TYPE_CHECKING:
    from aibitat.errors import APIError

    from .ledger import ChatRecord, Route

logger = logging.getLogger(__name__)

EventCallback = Callable[..., Any]


class EventType(Enum):
    """Types of events emitted by the engine."""

    START = auto()  # Seed message recorded
    MESSAGE = auto()  # Any successful message recorded
    INTERRUPT = auto()  # Chat paused for feedback
    TERMINATE = auto()  # Chat ended
    ERROR = auto()  # Provider failure recorded


class EventNotifier:
    """Keeps callbacks per event type and runs them in order."""

    def __init__(self) -> None:
        self._callbacks: dict[EventType, list[EventCallback]] = {
            event_type: [] for event_type in EventType
        }

    def on(self, event_type: EventType, callback: EventCallback) -> None:
        """Register a callback for one event type."""
        self._callbacks[event_type].append(callback)

    def subscribe(self, listener: "ConversationListener") -> None:
        """Register every callback of a listener."""
        self.on(EventType.START, listener.on_start)
        self.on(EventType.MESSAGE, listener.on_message)
        self.on(EventType.INTERRUPT, listener.on_interrupt)
        self.on(EventType.TERMINATE, listener.on_terminate)
        self.on(EventType.ERROR, listener.on_error)

    async def notify(self, event_type: EventType, *payload: Any) -> None:
        """Run the callbacks of an event, awaiting coroutine results.

        Exceptions raised by callbacks propagate to the caller.
        """
        for callback in list(self._callbacks[event_type]):
            result = callback(*payload)
            if inspect.isawaitable(result):
                await result

    def count(self, event_type: EventType) -> int:
        """Number of callbacks registered for an event type."""
        return len(self._callbacks[event_type])


class ConversationListener:
    """Base class for observers interested in several events.

    Override the methods you need; the rest do nothing.
    """

    async def on_start(self, record: "ChatRecord") -> None:
        pass

    async def on_message(self, record: "ChatRecord") -> None:
        pass

    async def on_interrupt(self, record: "ChatRecord") -> None:
        pass

    async def on_terminate(self, route: "Route") -> None:
        pass

    async def on_error(self, error: "APIError", record: "ChatRecord") -> None:
        pass
