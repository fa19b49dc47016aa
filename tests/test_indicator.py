"""Tests for ProgressIndicator and output sinks."""

from __future__ import annotations

import asyncio
import io

import pytest
from rich.console import Console

from agent_cli.indicator import ConsoleSink, OutputSink, ProgressIndicator


class BrokenSink(OutputSink):
    def __init__(self) -> None:
        self.attempts = 0

    def write(self, text: str) -> None:
        self.attempts += 1
        raise OSError("broken pipe")


@pytest.mark.asyncio
class TestProgressIndicator:
    async def test_ticks_until_cancelled(self, sink) -> None:
        indicator = ProgressIndicator(sink, interval=0.01, symbol=".")
        indicator.start()
        await asyncio.sleep(0.06)
        assert indicator.cancel() is True
        await indicator.wait_closed()

        assert indicator.ticks >= 1
        assert sink.writes[: indicator.ticks] == ["."] * indicator.ticks

    async def test_cancel_is_idempotent(self, sink) -> None:
        indicator = ProgressIndicator(sink, interval=0.01)
        indicator.start()

        assert indicator.cancel() is True
        assert indicator.cancel() is False
        assert indicator.cancelled
        await indicator.wait_closed()

    async def test_no_output_after_cancel(self, sink) -> None:
        indicator = ProgressIndicator(sink, interval=0.01, symbol="*")
        indicator.start()
        await asyncio.sleep(0.03)
        indicator.cancel()
        written = list(sink.writes)

        await asyncio.sleep(0.05)
        await indicator.wait_closed()
        assert sink.writes == written

    async def test_cancel_clears_written_symbols(self, sink) -> None:
        indicator = ProgressIndicator(sink, interval=0.01, symbol=".", prefix="Assistant > ")
        indicator.start()
        await asyncio.sleep(0.05)
        indicator.cancel()
        await indicator.wait_closed()

        width = indicator.ticks
        assert width > 0
        assert sink.writes[-1] == f"\rAssistant > {' ' * width}\rAssistant > "

    async def test_cancel_without_ticks_writes_nothing(self, sink) -> None:
        indicator = ProgressIndicator(sink, interval=10)
        indicator.start()
        await asyncio.sleep(0)
        indicator.cancel()
        await indicator.wait_closed()

        assert sink.writes == []
        assert indicator.ticks == 0

    async def test_cancel_does_not_wait_for_tick(self, sink) -> None:
        indicator = ProgressIndicator(sink, interval=10)
        indicator.start()
        await asyncio.sleep(0)

        loop = asyncio.get_running_loop()
        started = loop.time()
        indicator.cancel()
        await asyncio.wait_for(indicator.wait_closed(), timeout=1)
        assert loop.time() - started < 1

    async def test_cancel_before_start(self, sink) -> None:
        indicator = ProgressIndicator(sink, interval=0.01)
        indicator.cancel()
        indicator.start()

        assert not indicator.started
        await asyncio.sleep(0.03)
        assert sink.writes == []

    async def test_start_twice_keeps_one_task(self, sink) -> None:
        indicator = ProgressIndicator(sink, interval=0.01)
        indicator.start()
        task = indicator._task
        indicator.start()

        assert indicator._task is task
        indicator.cancel()
        await indicator.wait_closed()

    async def test_broken_sink_stops_indicator(self) -> None:
        sink = BrokenSink()
        indicator = ProgressIndicator(sink, interval=0.01)
        indicator.start()

        await asyncio.wait_for(indicator.wait_closed(), timeout=1)
        assert sink.attempts == 1
        assert indicator.ticks == 0

    async def test_silent_without_sink(self) -> None:
        indicator = ProgressIndicator(None, interval=0.01)
        indicator.start()
        await asyncio.sleep(0.03)
        indicator.cancel()
        await indicator.wait_closed()

        assert indicator.ticks >= 1


class TestConsoleSink:
    def test_writes_raw_text(self) -> None:
        buffer = io.StringIO()
        sink = ConsoleSink(Console(file=buffer))

        sink.write("[bold]not markup[/bold]")
        sink.write("\r")

        assert buffer.getvalue() == "[bold]not markup[/bold]\r"
