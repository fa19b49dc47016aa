"""
Anthropic backend, direct or through Amazon Bedrock.

Requires the 'anthropic' package. Bedrock access additionally needs the
SDK's bedrock extra: pip install "anthropic[bedrock]"
"""

from __future__ import annotations

import json
import os
from collections.abc import AsyncIterator, Sequence
from typing import Any

from anthropic import APIError, AsyncAnthropic, AsyncAnthropicBedrock

from agent_cli.errors import TransportError
from agent_cli.events import BlockStart, BlockStop, StreamEvent, TextDelta, ToolInputDelta
from agent_cli.backends.base import ModelBackend
from agent_cli.logging import get_logger
from agent_cli.messages import Message, TextBlock, ToolResultBlock, ToolUseBlock
from agent_cli.tools.base import ToolDescriptor

logger = get_logger("backends.anthropic")

DEFAULT_MODEL = "claude-3-5-sonnet-20241022"
DEFAULT_BEDROCK_MODEL = "anthropic.claude-3-5-sonnet-20240620-v1:0"
DEFAULT_REGION = "us-east-1"


def format_messages(messages: Sequence[Message]) -> list[dict[str, Any]]:
    """
    Convert history into Anthropic message params.

    Consecutive messages with the same role are merged into one turn and
    empty text blocks are dropped, so the synthetic continuation message
    and per-call tool result messages form a valid request.
    """
    formatted: list[dict[str, Any]] = []

    for msg in messages:
        content: list[dict[str, Any]] = []
        for block in msg.blocks:
            if isinstance(block, TextBlock):
                if block.text:
                    content.append({"type": "text", "text": block.text})
            elif isinstance(block, ToolUseBlock):
                content.append(
                    {"type": "tool_use", "id": block.id, "name": block.name, "input": block.input}
                )
            elif isinstance(block, ToolResultBlock):
                content.append(
                    {
                        "type": "tool_result",
                        "tool_use_id": block.tool_use_id,
                        "content": json.dumps(block.payload, ensure_ascii=False),
                    }
                )

        if not content:
            continue
        if formatted and formatted[-1]["role"] == msg.role.value:
            formatted[-1]["content"].extend(content)
        else:
            formatted.append({"role": msg.role.value, "content": content})

    return formatted


def format_tools(tools: Sequence[ToolDescriptor]) -> list[dict[str, Any]]:
    """Convert tool descriptors to Anthropic tool definitions."""
    return [
        {
            "name": tool.name,
            "description": tool.description,
            "input_schema": tool.input_schema,
        }
        for tool in tools
        if tool.input_schema is not None
    ]


class AnthropicBackend(ModelBackend):
    """
    Streaming backend over the Anthropic Messages API.

    Example:
        backend = AnthropicBackend.bedrock(profile="default", region="us-east-1")
        stream = await backend.send(history.snapshot())
        async for event in stream:
            ...
    """

    def __init__(
        self,
        client: AsyncAnthropic | AsyncAnthropicBedrock | None = None,
        model: str = DEFAULT_MODEL,
        max_tokens: int = 4096,
        system_prompt: str = "",
    ) -> None:
        self.client = client or AsyncAnthropic()
        self.model_id = model
        self.max_tokens = max_tokens
        self.system_prompt = system_prompt

    @classmethod
    def bedrock(
        cls,
        profile: str | None = None,
        region: str | None = None,
        model: str | None = None,
        **kwargs: Any,
    ) -> AnthropicBackend:
        """
        Create a backend that reaches Claude through Amazon Bedrock.

        The region falls back to ``AWS_REGION`` / ``AWS_DEFAULT_REGION`` and
        finally to us-east-1.
        """
        resolved_region = (
            region
            or os.environ.get("AWS_REGION")
            or os.environ.get("AWS_DEFAULT_REGION")
            or DEFAULT_REGION
        )
        client = AsyncAnthropicBedrock(aws_profile=profile, aws_region=resolved_region)
        logger.debug("Bedrock client: profile=%s region=%s", profile, resolved_region)
        return cls(client=client, model=model or DEFAULT_BEDROCK_MODEL, **kwargs)

    async def send(
        self,
        messages: Sequence[Message],
        tools: Sequence[ToolDescriptor] | None = None,
    ) -> AsyncIterator[StreamEvent]:
        request_kwargs: dict[str, Any] = {
            "model": self.model_id,
            "max_tokens": self.max_tokens,
            "messages": format_messages(messages),
            "stream": True,
        }
        if self.system_prompt:
            request_kwargs["system"] = self.system_prompt
        if tools:
            tool_defs = format_tools(tools)
            if tool_defs:
                request_kwargs["tools"] = tool_defs

        try:
            stream = await self.client.messages.create(**request_kwargs)
        except APIError as e:
            raise TransportError(f"Anthropic API call failed: {e}") from e

        return self._events(stream)

    async def _events(self, stream: Any) -> AsyncIterator[StreamEvent]:
        """Map raw Messages API stream events to StreamEvents."""
        try:
            async for event in stream:
                if event.type == "content_block_start":
                    block = event.content_block
                    if block.type == "text":
                        yield BlockStart.text()
                        if block.text:
                            yield TextDelta(block.text)
                    elif block.type == "tool_use":
                        yield BlockStart.tool_use(block.id, block.name)
                    else:
                        yield BlockStart.other()
                elif event.type == "content_block_delta":
                    delta = event.delta
                    if delta.type == "text_delta":
                        yield TextDelta(delta.text)
                    elif delta.type == "input_json_delta":
                        yield ToolInputDelta(delta.partial_json)
                elif event.type == "content_block_stop":
                    yield BlockStop()
        except APIError as e:
            raise TransportError(f"Stream receive error: {e}") from e

    async def aclose(self) -> None:
        await self.client.close()
