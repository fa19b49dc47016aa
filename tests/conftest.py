"""Shared pytest fixtures for agent-cli tests."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Sequence
from typing import Any

import pytest

from agent_cli.backends.base import ModelBackend
from agent_cli.events import BlockStart, BlockStop, StreamEvent, TextDelta, ToolInputDelta
from agent_cli.indicator import OutputSink, ProgressIndicator
from agent_cli.messages import Message
from agent_cli.tools.base import ToolDescriptor
from agent_cli.tools.registry import LocalToolInvoker


def text_events(*fragments: str) -> list[StreamEvent]:
    """One text block built from ``fragments``."""
    return [BlockStart.text(), *(TextDelta(f) for f in fragments), BlockStop()]


def tool_events(tool_use_id: str, name: str, *fragments: str) -> list[StreamEvent]:
    """One tool-use block whose input arrives as ``fragments``."""
    return [
        BlockStart.tool_use(tool_use_id, name),
        *(ToolInputDelta(f) for f in fragments),
        BlockStop(),
    ]


class ScriptedBackend(ModelBackend):
    """
    Backend replaying one scripted reply per request.

    A reply is a list of StreamEvents. An exception in place of a reply is
    raised when the request is sent; an exception inside a reply is raised
    mid-stream. ``gate`` (if set) is awaited before the first event.
    """

    model_id = "scripted"

    def __init__(self, *replies: Any, gate: asyncio.Event | None = None, delay: float = 0.0) -> None:
        self.replies = list(replies)
        self.requests: list[tuple[tuple[Message, ...], list[ToolDescriptor] | None]] = []
        self.gate = gate
        self.delay = delay

    async def send(
        self,
        messages: Sequence[Message],
        tools: Sequence[ToolDescriptor] | None = None,
    ) -> AsyncIterator[StreamEvent]:
        self.requests.append((tuple(messages), list(tools) if tools is not None else None))
        if not self.replies:
            raise AssertionError("No scripted reply left")
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return self._events(reply)

    async def _events(self, reply: list[Any]) -> AsyncIterator[StreamEvent]:
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        for item in reply:
            if isinstance(item, BaseException):
                raise item
            await asyncio.sleep(0)
            yield item


class RecordingSink(OutputSink):
    """Sink that keeps every write."""

    def __init__(self) -> None:
        self.writes: list[str] = []

    def write(self, text: str) -> None:
        self.writes.append(text)

    @property
    def output(self) -> str:
        return "".join(self.writes)


class CountingIndicator(ProgressIndicator):
    """ProgressIndicator that counts cancel calls and effective cancellations."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.cancel_calls = 0
        self.cancellations = 0

    def cancel(self) -> bool:
        self.cancel_calls += 1
        cancelled = super().cancel()
        if cancelled:
            self.cancellations += 1
        return cancelled


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def indicators() -> list[CountingIndicator]:
    """Collects every indicator created by ``indicator_factory``."""
    return []


@pytest.fixture
def indicator_factory(indicators: list[CountingIndicator]):
    def factory() -> CountingIndicator:
        indicator = CountingIndicator(None, interval=0.01)
        indicators.append(indicator)
        return indicator

    return factory


@pytest.fixture
def local_tools() -> LocalToolInvoker:
    """Local tool provider with a few simple tools; calls are recorded on ``.calls``."""
    tools = LocalToolInvoker()
    calls: list[tuple[str, dict[str, Any]]] = []
    tools.calls = calls  # type: ignore[attr-defined]

    @tools.tool(
        "add",
        "Add two numbers",
        {
            "type": "object",
            "properties": {"a": {"type": "number"}, "b": {"type": "number"}},
            "required": ["a", "b"],
        },
    )
    def add(args: dict[str, Any]) -> dict[str, Any]:
        calls.append(("add", args))
        return {"sum": args["a"] + args["b"]}

    @tools.tool("echo", "Echo the arguments back")
    async def echo(args: dict[str, Any]) -> dict[str, Any]:
        calls.append(("echo", args))
        return {"echo": args}

    @tools.tool("fail", "Always fails")
    def fail(args: dict[str, Any]) -> None:
        calls.append(("fail", args))
        raise RuntimeError("disk on fire")

    return tools
