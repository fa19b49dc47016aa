"""
Progress indicator shown while waiting for the first streamed event.

The indicator and the reply renderer share one output sink. They never
write concurrently: the orchestrator cancels the indicator before the
first piece of content is rendered, and a cancelled indicator never
writes again.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod

from rich.console import Console

from agent_cli.logging import get_logger

logger = get_logger("indicator")


class OutputSink(ABC):
    """Append-only text output shared by the indicator and the renderer."""

    @abstractmethod
    def write(self, text: str) -> None: ...


class ConsoleSink(OutputSink):
    """Writes raw text to a rich console's file, flushing after every write."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def write(self, text: str) -> None:
        self.console.file.write(text)
        self.console.file.flush()


class ProgressIndicator:
    """
    A cancellable repeating activity that writes one symbol per interval.

    Cancellation is a flag checked on every tick plus a wake-up signal, so
    ``cancel()`` returns immediately without waiting for an in-flight tick.

    Args:
        sink: Where symbols are written (None = silent)
        interval: Seconds between symbols
        symbol: Text written on each tick
        prefix: Text already on the line before the indicator started; it is
            rewritten when the indicator clears its output
    """

    def __init__(
        self,
        sink: OutputSink | None = None,
        interval: float = 0.2,
        symbol: str = ".",
        prefix: str = "",
    ) -> None:
        self.sink = sink
        self.interval = interval
        self.symbol = symbol
        self.prefix = prefix
        self.ticks = 0
        self._cancelled = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def started(self) -> bool:
        return self._task is not None

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def start(self) -> None:
        """Start ticking in the background. Must be called from a running loop."""
        if self._task is not None or self.cancelled:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    def cancel(self) -> bool:
        """
        Stop the indicator and clear what it wrote.

        Returns:
            True if this call cancelled the indicator, False if it was
            already cancelled
        """
        if self._cancelled.is_set():
            return False
        self._cancelled.set()
        if self.ticks and self.sink is not None:
            width = self.ticks * len(self.symbol)
            self.sink.write(f"\r{self.prefix}{' ' * width}\r{self.prefix}")
        return True

    async def wait_closed(self) -> None:
        """Wait for the background task to exit after cancellation."""
        if self._task is not None:
            await self._task

    async def _run(self) -> None:
        while not self._cancelled.is_set():
            try:
                await asyncio.wait_for(self._cancelled.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
            if self._cancelled.is_set():
                break
            if self.sink is not None:
                try:
                    self.sink.write(self.symbol)
                except OSError as e:
                    logger.debug("Indicator output failed, stopping: %s", e)
                    break
            self.ticks += 1
