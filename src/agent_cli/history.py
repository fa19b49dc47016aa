"""Ordered, rollback-capable conversation history."""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from typing import Any

from agent_cli.errors import BuildError
from agent_cli.logging import get_logger
from agent_cli.messages import ContentBlock, Message, Role, TextBlock, ToolResultBlock

logger = get_logger("history")


class HistoryStore:
    """
    Append-only log of conversation messages with last-message rollback.

    Messages are immutable once appended; the only removal is
    ``rollback_last_if_user``, which undoes a user message whose request
    failed before a reply was produced.
    """

    def __init__(self, messages: Sequence[Message] | None = None) -> None:
        self._messages: list[Message] = list(messages or [])

    def append_user(self, text: str) -> Message:
        message = Message(role=Role.USER, blocks=(TextBlock(text),))
        self._messages.append(message)
        return message

    def append_assistant(self, blocks: Sequence[ContentBlock]) -> Message:
        """Append an assistant reply. An assistant turn must carry at least one block."""
        if not blocks:
            raise BuildError("Assistant message must contain at least one content block")
        message = Message(role=Role.ASSISTANT, blocks=tuple(blocks))
        self._messages.append(message)
        return message

    def append_tool_result(self, tool_use_id: str, payload: Any) -> Message:
        message = Message(
            role=Role.USER,
            blocks=(ToolResultBlock(tool_use_id=tool_use_id, payload=payload),),
        )
        self._messages.append(message)
        return message

    def rollback_last_if_user(self) -> bool:
        """
        Remove the last message if it is user-authored.

        Returns:
            True if a message was removed, False otherwise
        """
        if self._messages and self._messages[-1].role == Role.USER:
            removed = self._messages.pop()
            logger.debug("Rolled back user message (%d blocks)", len(removed.blocks))
            return True
        return False

    def snapshot(self) -> tuple[Message, ...]:
        """Read-only view used to build the next outbound request."""
        return tuple(self._messages)

    def clear(self) -> None:
        self._messages.clear()

    @property
    def last(self) -> Message | None:
        return self._messages[-1] if self._messages else None

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._messages))
