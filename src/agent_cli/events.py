"""
Stream events and the lifecycle event bus.

Backends translate their wire format into a sequence of StreamEvents:

    BlockStart → (TextDelta | ToolInputDelta)* → BlockStop

The TurnOrchestrator reports its own lifecycle through an EventBus.
Handlers can observe a turn, block a tool call, or rewrite a tool result
by returning result objects.

Example:
    from agent_cli.events import BEFORE_TOOL_CALL, EventBus, ToolCallEventResult

    bus = EventBus()

    @bus.on(BEFORE_TOOL_CALL)
    async def guard(event):
        if event.name == "delete_everything":
            return ToolCallEventResult(block=True, reason="Not allowed")
        return None
"""

from __future__ import annotations

import inspect
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from agent_cli.logging import get_logger

logger = get_logger("events")


# ---------------------------------------------------------------------------
# Stream event types
# ---------------------------------------------------------------------------


class BlockType(str, Enum):
    """Kind of content block opened by a BlockStart."""

    TEXT = "text"
    TOOL_USE = "tool_use"
    OTHER = "other"


@dataclass(frozen=True)
class BlockStart:
    """Opens a content block. Tool-use blocks carry the call id and name."""

    type: BlockType = BlockType.TEXT
    tool_use_id: str | None = None
    name: str | None = None

    @classmethod
    def text(cls) -> BlockStart:
        return cls(type=BlockType.TEXT)

    @classmethod
    def tool_use(cls, tool_use_id: str, name: str) -> BlockStart:
        return cls(type=BlockType.TOOL_USE, tool_use_id=tool_use_id, name=name)

    @classmethod
    def other(cls) -> BlockStart:
        return cls(type=BlockType.OTHER)


@dataclass(frozen=True)
class TextDelta:
    """A fragment of text for the open block."""

    text: str


@dataclass(frozen=True)
class ToolInputDelta:
    """A fragment of the JSON-encoded arguments of the open tool call."""

    partial_json: str


@dataclass(frozen=True)
class BlockStop:
    """Closes the open content block."""


StreamEvent = Union[BlockStart, TextDelta, ToolInputDelta, BlockStop]


# ---------------------------------------------------------------------------
# Lifecycle event types
# ---------------------------------------------------------------------------

STATE_CHANGE = "state_change"
TURN_START = "turn_start"
TURN_END = "turn_end"
BEFORE_TOOL_CALL = "before_tool_call"
AFTER_TOOL_RESULT = "after_tool_result"


@dataclass
class StateChangeEvent:
    """Emitted on every TurnOrchestrator state transition."""

    previous: Any  # TurnState, avoid circular import
    current: Any


@dataclass
class TurnStartEvent:
    """Emitted before each request to the model backend."""

    round: int  # 0 for the user request, >0 for tool continuations
    message_count: int


@dataclass
class TurnEndEvent:
    """Emitted after a reply has been committed to history."""

    round: int
    block_count: int
    tool_use_count: int = 0


@dataclass
class BeforeToolCallEvent:
    """Emitted before a tool is invoked. Handlers can block the call."""

    tool_use_id: str
    name: str
    input: dict[str, Any]
    round: int


@dataclass
class ToolCallEventResult:
    """Result returned by a before_tool_call handler."""

    block: bool = False
    reason: str = ""


@dataclass
class AfterToolResultEvent:
    """Emitted after a tool returned (or failed)."""

    tool_use_id: str
    name: str
    payload: Any
    is_error: bool
    round: int


@dataclass
class ToolResultEventResult:
    """Result returned by an after_tool_result handler."""

    modified_payload: Any = None  # None = no modification


# ---------------------------------------------------------------------------
# EventBus
# ---------------------------------------------------------------------------

# Handlers can be sync or async, and optionally return a result object.
EventHandler = Callable[..., Any]


@dataclass(eq=False)
class _Subscription:
    handler: EventHandler
    priority: int  # lower runs first
    source: str


class EventBus:
    """
    Dispatches turn lifecycle events to subscribed handlers.

    Handlers for one event run one after another, lowest priority first and
    in subscription order among equals. A handler may be sync or async. A
    handler that raises is logged and skipped so observers can never abort
    a turn.

    Usage:
        bus = EventBus()

        @bus.on(TURN_START)
        def on_start(event: TurnStartEvent):
            print(f"round {event.round}")

        unsubscribe = bus.on(TURN_END, on_end)
        unsubscribe()
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, list[_Subscription]] = defaultdict(list)

    def on(
        self,
        event: str,
        handler: EventHandler | None = None,
        priority: int = 0,
        source: str = "",
    ) -> Callable[[], None] | Callable[[EventHandler], EventHandler]:
        """
        Subscribe ``handler`` to ``event``.

        Called with a handler it returns an unsubscribe function; called
        without one it is a decorator returning the handler unchanged.
        """
        if handler is None:

            def decorator(fn: EventHandler) -> EventHandler:
                self.on(event, fn, priority=priority, source=source)
                return fn

            return decorator

        subscription = _Subscription(handler, priority, source)
        subscriptions = self._subscriptions[event]
        # Insert after every subscription with priority <= ours
        index = len(subscriptions)
        while index and subscriptions[index - 1].priority > priority:
            index -= 1
        subscriptions.insert(index, subscription)

        def unsubscribe() -> None:
            if subscription in subscriptions:
                subscriptions.remove(subscription)

        return unsubscribe

    async def emit(self, event: str, data: Any = None) -> list[Any]:
        """
        Call every handler of ``event`` with ``data``.

        Returns:
            The non-None values returned by handlers, in call order
        """
        results: list[Any] = []
        for subscription in list(self._subscriptions.get(event, ())):
            try:
                result = subscription.handler(data)
                if inspect.isawaitable(result):
                    result = await result
            except Exception as e:
                logger.warning(
                    "Handler for %s from %s failed: %s",
                    event,
                    subscription.source or "unknown source",
                    e,
                )
                continue
            if result is not None:
                results.append(result)
        return results
