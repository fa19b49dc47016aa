"""
Base model backend interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence

from agent_cli.events import StreamEvent
from agent_cli.messages import Message
from agent_cli.tools.base import ToolDescriptor


class ModelBackend(ABC):
    """
    Abstract handle on a streaming model backend.

    ``send`` is awaited to issue the request; a failure at that point is a
    failure "before any event". The returned iterator then yields the
    reply as StreamEvents. Implementations raise ``TransportError`` both
    when the request fails and when the stream breaks mid-way.

    Example implementation for a custom provider:

        class MyBackend(ModelBackend):
            model_id = "my-model"

            async def send(self, messages, tools=None):
                response = await self.client.start(...)
                return self._events(response)

            async def _events(self, response):
                async for chunk in response:
                    yield TextDelta(chunk.text)
    """

    model_id: str = ""

    @abstractmethod
    async def send(
        self,
        messages: Sequence[Message],
        tools: Sequence[ToolDescriptor] | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """
        Start a streamed completion over the full conversation.

        Args:
            messages: History snapshot, oldest first
            tools: Tool catalog to advertise, if any

        Returns:
            Lazy iterator of stream events
        """

    async def aclose(self) -> None:
        """Release client resources. Default: nothing to release."""
