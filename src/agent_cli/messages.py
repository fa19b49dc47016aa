"""
Conversation data model.

A Message carries a role and an ordered tuple of content blocks. Content
blocks form a closed set: TextBlock, ToolUseBlock and ToolResultBlock.
Tool results always travel inside a user-role message.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


class Role(str, Enum):
    """Author of a message."""

    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class TextBlock:
    """A span of text."""

    text: str


@dataclass(frozen=True)
class ToolUseBlock:
    """A request from the assistant to invoke a tool."""

    id: str
    name: str
    input: Any


@dataclass(frozen=True)
class ToolResultBlock:
    """The result of a previously requested tool call."""

    tool_use_id: str
    payload: Any


ContentBlock = Union[TextBlock, ToolUseBlock, ToolResultBlock]


@dataclass(frozen=True)
class Message:
    """A message in the conversation history."""

    role: Role
    blocks: tuple[ContentBlock, ...]

    @property
    def text(self) -> str:
        """Concatenated text of all text blocks."""
        return "".join(b.text for b in self.blocks if isinstance(b, TextBlock))

    @property
    def tool_uses(self) -> list[ToolUseBlock]:
        return [b for b in self.blocks if isinstance(b, ToolUseBlock)]

    @property
    def tool_results(self) -> list[ToolResultBlock]:
        return [b for b in self.blocks if isinstance(b, ToolResultBlock)]

    @property
    def is_empty_user_turn(self) -> bool:
        """True for a user message whose only content is empty text."""
        return self.role == Role.USER and all(
            isinstance(b, TextBlock) and not b.text for b in self.blocks
        )
