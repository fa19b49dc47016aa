"""
Assembly of streamed events into content blocks.

A TurnDecoder is created per turn and fed one StreamEvent at a time. Text
fragments accumulate until the block closes; tool calls accumulate their
JSON-encoded input and are parsed when the block closes. The resulting
blocks keep the order in which their blocks closed.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterable, Callable
from dataclasses import dataclass
from typing import Any

from agent_cli.errors import StreamProtocolError, ToolInputDecodeError
from agent_cli.events import (
    BlockStart,
    BlockStop,
    BlockType,
    StreamEvent,
    TextDelta,
    ToolInputDelta,
)
from agent_cli.logging import get_logger
from agent_cli.messages import ContentBlock, TextBlock, ToolUseBlock

logger = get_logger("decoder")


@dataclass
class PendingToolCall:
    """A tool call whose input is still arriving."""

    id: str
    name: str
    input_buffer: str = ""

    def parse_input(self) -> Any:
        """
        Parse the accumulated input as JSON.

        An empty or whitespace-only buffer is not parsed: it yields ``{}``
        instead of a decode error, because backends stream no input
        fragments at all for tools called without arguments. Any other
        buffer must be valid JSON.

        Raises:
            ToolInputDecodeError: the buffer is non-empty and not valid JSON
        """
        if not self.input_buffer.strip():
            return {}
        try:
            return json.loads(self.input_buffer)
        except json.JSONDecodeError as e:
            raise ToolInputDecodeError(self.id, self.name, self.input_buffer, str(e)) from e


class TurnDecoder:
    """
    Stateful assembler for one turn's stream.

    Args:
        on_text: Optional callback invoked with every text fragment as it
            arrives, used to render the reply while it streams.
    """

    def __init__(self, on_text: Callable[[str], None] | None = None) -> None:
        self.on_text = on_text
        self.current_text = ""
        self.pending: PendingToolCall | None = None
        self._output: list[ContentBlock] = []
        self._finished = False

    @property
    def blocks(self) -> list[ContentBlock]:
        """Blocks closed so far."""
        return list(self._output)

    def feed(self, event: StreamEvent) -> None:
        """Apply one stream event."""
        if self._finished:
            raise StreamProtocolError("Decoder already finished")

        if isinstance(event, BlockStart):
            if event.type == BlockType.TOOL_USE:
                if self.pending is not None:
                    raise StreamProtocolError(
                        f"Tool call '{event.name}' started while '{self.pending.name}' is still open"
                    )
                self.pending = PendingToolCall(
                    id=event.tool_use_id or "", name=event.name or ""
                )
        elif isinstance(event, TextDelta):
            self.current_text += event.text
            if self.on_text is not None and event.text:
                self.on_text(event.text)
        elif isinstance(event, ToolInputDelta):
            if self.pending is None:
                raise StreamProtocolError("Tool input fragment received with no open tool call")
            self.pending.input_buffer += event.partial_json
        elif isinstance(event, BlockStop):
            self._flush_text()
            if self.pending is not None:
                pending = self.pending
                self._output.append(
                    ToolUseBlock(id=pending.id, name=pending.name, input=pending.parse_input())
                )
                self.pending = None
        else:
            raise TypeError(f"Unknown stream event: {event!r}")

    def finish(self) -> list[ContentBlock]:
        """
        Close the decode at end of stream and return all blocks.

        Streams may omit the terminal BlockStop: leftover text becomes a
        trailing text block. A leftover tool call with no input is dropped;
        one with input is parsed like a normal close.
        """
        if not self._finished:
            self._finished = True
            self._flush_text()
            pending = self.pending
            self.pending = None
            if pending is not None:
                if pending.input_buffer.strip():
                    self._output.append(
                        ToolUseBlock(id=pending.id, name=pending.name, input=pending.parse_input())
                    )
                else:
                    logger.debug("Dropping unterminated tool call '%s' with no input", pending.name)
        return list(self._output)

    def _flush_text(self) -> None:
        if self.current_text:
            self._output.append(TextBlock(self.current_text))
            self.current_text = ""


async def decode_stream(
    events: AsyncIterable[StreamEvent],
    on_text: Callable[[str], None] | None = None,
) -> list[ContentBlock]:
    """Decode a complete stream into content blocks."""
    decoder = TurnDecoder(on_text=on_text)
    async for event in events:
        decoder.feed(event)
    return decoder.finish()
