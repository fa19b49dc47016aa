"""
OpenAI-compatible backend (OpenAI, vLLM, OpenRouter, local gateways).

Requires the 'openai' package. The HTTP client is built with httpx directly
so that proxy settings from the environment are ignored.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Sequence
from typing import Any, TypedDict

import httpx
from openai import APIError, AsyncOpenAI

from agent_cli.backends.base import ModelBackend
from agent_cli.errors import StreamProtocolError, TransportError
from agent_cli.events import BlockStart, BlockStop, StreamEvent, TextDelta, ToolInputDelta
from agent_cli.logging import get_logger
from agent_cli.messages import Message, Role, TextBlock, ToolResultBlock, ToolUseBlock
from agent_cli.tools.base import ToolDescriptor

logger = get_logger("backends.openai")

DEFAULT_MODEL = "gpt-4o"


class OpenAIFunction(TypedDict):
    """OpenAI function definition."""

    name: str
    description: str
    parameters: dict[str, Any]


class OpenAITool(TypedDict):
    """OpenAI tool definition."""

    type: str
    function: OpenAIFunction


def format_messages(
    messages: Sequence[Message], system_prompt: str = ""
) -> list[dict[str, Any]]:
    """
    Convert history into Chat Completions messages.

    Tool results become ``role: "tool"`` messages, one per call. User turns
    with no text (the continuation placeholder) are skipped.
    """
    formatted: list[dict[str, Any]] = []
    if system_prompt:
        formatted.append({"role": "system", "content": system_prompt})

    for msg in messages:
        if msg.role is Role.ASSISTANT:
            entry: dict[str, Any] = {"role": "assistant", "content": msg.text or None}
            tool_calls = [
                {
                    "id": block.id,
                    "type": "function",
                    "function": {
                        "name": block.name,
                        "arguments": json.dumps(block.input, ensure_ascii=False),
                    },
                }
                for block in msg.blocks
                if isinstance(block, ToolUseBlock)
            ]
            if tool_calls:
                entry["tool_calls"] = tool_calls
            formatted.append(entry)
            continue

        for block in msg.blocks:
            if isinstance(block, ToolResultBlock):
                formatted.append(
                    {
                        "role": "tool",
                        "tool_call_id": block.tool_use_id,
                        "content": json.dumps(block.payload, ensure_ascii=False),
                    }
                )
        text = "".join(b.text for b in msg.blocks if isinstance(b, TextBlock))
        if text:
            formatted.append({"role": "user", "content": text})

    return formatted


def format_tools(tools: Sequence[ToolDescriptor]) -> list[OpenAITool]:
    """Convert tool descriptors to OpenAI function tools."""
    return [
        {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.input_schema,
            },
        }
        for tool in tools
        if tool.input_schema is not None
    ]


class OpenAIBackend(ModelBackend):
    """
    Streaming backend over the Chat Completions API.

    Example:
        backend = OpenAIBackend(model="gpt-4o", base_url="http://localhost:8000/v1")
    """

    def __init__(
        self,
        client: AsyncOpenAI | None = None,
        model: str = DEFAULT_MODEL,
        base_url: str | None = None,
        api_key: str | None = None,
        system_prompt: str = "",
        timeout: float = 300.0,
    ) -> None:
        if client is None:
            # trust_env=False keeps SOCKS/HTTP proxy variables out of the client
            http_client = httpx.AsyncClient(
                trust_env=False,
                timeout=httpx.Timeout(timeout, connect=30.0),
            )
            client = AsyncOpenAI(base_url=base_url, api_key=api_key, http_client=http_client)
        self.client = client
        self.model_id = model
        self.system_prompt = system_prompt

    async def send(
        self,
        messages: Sequence[Message],
        tools: Sequence[ToolDescriptor] | None = None,
    ) -> AsyncIterator[StreamEvent]:
        request_kwargs: dict[str, Any] = {
            "model": self.model_id,
            "messages": format_messages(messages, self.system_prompt),
            "stream": True,
        }
        if tools:
            tool_defs = format_tools(tools)
            if tool_defs:
                request_kwargs["tools"] = tool_defs

        try:
            stream = await self.client.chat.completions.create(**request_kwargs)
        except (APIError, httpx.HTTPError) as e:
            raise TransportError(f"OpenAI API call failed: {e}") from e

        return self._events(stream)

    async def _events(self, stream: Any) -> AsyncIterator[StreamEvent]:
        """
        Map Chat Completions chunks to StreamEvents.

        Only one block is open at a time: a new tool call or text after a
        tool call closes the open block first.
        """
        open_block: str | None = None  # "text" or "tool"
        current_index: int | None = None
        closed_indexes: set[int] = set()

        try:
            async for chunk in stream:
                if not chunk.choices:
                    continue
                choice = chunk.choices[0]
                delta = choice.delta

                if delta.content:
                    if open_block == "tool":
                        yield BlockStop()
                        closed_indexes.add(current_index)
                        open_block = None
                    if open_block is None:
                        yield BlockStart.text()
                        open_block = "text"
                    yield TextDelta(delta.content)

                for tc_delta in delta.tool_calls or []:
                    idx = tc_delta.index
                    if idx in closed_indexes:
                        raise StreamProtocolError(
                            f"Arguments for tool call #{idx} arrived after it was closed"
                        )
                    if idx != current_index or open_block != "tool":
                        if open_block is not None:
                            yield BlockStop()
                            if open_block == "tool":
                                closed_indexes.add(current_index)
                        name = tc_delta.function.name if tc_delta.function else None
                        yield BlockStart.tool_use(tc_delta.id or "", name or "")
                        open_block = "tool"
                        current_index = idx
                    if tc_delta.function and tc_delta.function.arguments:
                        yield ToolInputDelta(tc_delta.function.arguments)

                if choice.finish_reason is not None and open_block is not None:
                    yield BlockStop()
                    if open_block == "tool":
                        closed_indexes.add(current_index)
                    open_block = None
        except (APIError, httpx.HTTPError) as e:
            raise TransportError(f"Stream receive error: {e}") from e

    async def aclose(self) -> None:
        await self.client.close()
