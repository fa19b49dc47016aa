"""
Turn orchestration: request, decode, commit, execute tools, continue.

One call to ``TurnOrchestrator.send`` drives a full turn. Each round sends
the history snapshot to the backend, decodes the streamed reply while a
progress indicator runs, and commits the reply. If the reply asks for
tools, they run one at a time in the order they were decoded, their
results are appended to history, and another round continues the turn.

Example:
    orchestrator = TurnOrchestrator(
        backend=AnthropicBackend.bedrock(),
        tools=local_tools,
        sink=ConsoleSink(),
    )
    result = await orchestrator.send("What files are in this repo?")
    print(result.finish_reason)
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from agent_cli.backends.base import ModelBackend
from agent_cli.decoder import TurnDecoder
from agent_cli.errors import BuildError, ToolError
from agent_cli.events import (
    AFTER_TOOL_RESULT,
    BEFORE_TOOL_CALL,
    STATE_CHANGE,
    TURN_END,
    TURN_START,
    AfterToolResultEvent,
    BeforeToolCallEvent,
    EventBus,
    StateChangeEvent,
    ToolCallEventResult,
    ToolResultEventResult,
    TurnEndEvent,
    TurnStartEvent,
)
from agent_cli.history import HistoryStore
from agent_cli.indicator import OutputSink, ProgressIndicator
from agent_cli.logging import get_logger
from agent_cli.messages import ContentBlock, TextBlock, ToolUseBlock
from agent_cli.tools.base import ToolDescriptor, ToolInvoker

logger = get_logger("orchestrator")


class TurnState(str, Enum):
    """Orchestrator states."""

    IDLE = "idle"
    AWAITING_RESPONSE = "awaiting_response"
    DECODING = "decoding"
    EXECUTING_TOOLS = "executing_tools"
    FAILED = "failed"


@dataclass
class TurnResult:
    """Outcome of one ``send`` call."""

    blocks: list[ContentBlock] = field(default_factory=list)  # assistant blocks, all rounds
    rounds: int = 0  # model requests made
    finish_reason: str = "complete"  # "complete" | "max_tool_rounds"

    @property
    def text(self) -> str:
        return "".join(b.text for b in self.blocks if isinstance(b, TextBlock))

    @property
    def tool_uses(self) -> list[ToolUseBlock]:
        return [b for b in self.blocks if isinstance(b, ToolUseBlock)]


IndicatorFactory = Callable[[], ProgressIndicator]


class TurnOrchestrator:
    """
    State machine driving conversation turns over one history.

    Args:
        backend: Model backend handle
        history: Conversation log (a new empty one by default)
        tools: Tool provider; None or detached means replies are not acted on
        sink: Output for streamed text and the default indicator
        events: Lifecycle event bus
        indicator_factory: Creates one indicator per request
        max_tool_rounds: Maximum continuation rounds per turn (None = unbounded)
    """

    def __init__(
        self,
        backend: ModelBackend,
        history: HistoryStore | None = None,
        tools: ToolInvoker | None = None,
        sink: OutputSink | None = None,
        events: EventBus | None = None,
        indicator_factory: IndicatorFactory | None = None,
        max_tool_rounds: int | None = None,
    ) -> None:
        if max_tool_rounds is not None and max_tool_rounds < 0:
            raise ValueError("max_tool_rounds must be >= 0")
        self.backend = backend
        self.history = history if history is not None else HistoryStore()
        self.tools = tools
        self.sink = sink
        self.events = events or EventBus()
        self.indicator_factory = indicator_factory or (lambda: ProgressIndicator(self.sink))
        self.max_tool_rounds = max_tool_rounds

        self._state = TurnState.IDLE
        self._active = False
        self._indicator: ProgressIndicator | None = None

    @property
    def state(self) -> TurnState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def tools_attached(self) -> bool:
        return self.tools is not None and self.tools.is_attached

    async def _set_state(self, state: TurnState) -> None:
        if state == self._state:
            return
        previous = self._state
        self._state = state
        logger.debug("State %s -> %s", previous.value, state.value)
        await self.events.emit(STATE_CHANGE, StateChangeEvent(previous=previous, current=state))

    def reset(self) -> None:
        """Clear the conversation. Not allowed while a turn is running."""
        if self._active:
            raise BuildError("Cannot reset history while a turn is in progress")
        self.history.clear()

    async def send(self, user_input: str) -> TurnResult:
        """
        Run one turn for ``user_input``.

        Returns:
            TurnResult with every assistant block produced during the turn

        Raises:
            TransportError, DecodeError, BuildError: the turn was aborted;
                history is restored to its state before the failing round.
                A turn interrupted while running tools records an error
                result for every unfinished call before re-raising.
        """
        if self._active:
            raise BuildError("A turn is already in progress on this history")
        self._active = True
        result = TurnResult()

        try:
            self.history.append_user(user_input)
            round_num = 0
            while True:
                blocks = await self._run_round(round_num)
                result.blocks.extend(blocks)
                result.rounds = round_num + 1

                tool_uses = [b for b in blocks if isinstance(b, ToolUseBlock)]
                if not tool_uses or not self.tools_attached:
                    if tool_uses:
                        logger.debug("Reply requested tools but no provider is attached")
                    break

                await self._set_state(TurnState.EXECUTING_TOOLS)
                for index, tool_use in enumerate(tool_uses):
                    try:
                        await self._execute_tool(tool_use, round_num)
                    except BaseException:
                        await self._abandon_tools(tool_uses[index:])
                        raise

                if self.max_tool_rounds is not None and round_num >= self.max_tool_rounds:
                    logger.warning(
                        "Stopping after %d tool continuation rounds", self.max_tool_rounds
                    )
                    result.finish_reason = "max_tool_rounds"
                    break
                round_num += 1

            await self._set_state(TurnState.IDLE)
            return result
        finally:
            self._active = False

    async def _run_round(self, round_num: int) -> list[ContentBlock]:
        """Send one request and commit its reply; restore history on failure."""
        # Continuation rounds carry an empty user message that only lives
        # for the duration of the request.
        if round_num > 0:
            self.history.append_user("")
        owns_last_message = True

        await self._set_state(TurnState.AWAITING_RESPONSE)
        await self.events.emit(
            TURN_START, TurnStartEvent(round=round_num, message_count=len(self.history))
        )
        indicator = self.indicator_factory()
        self._indicator = indicator
        try:
            catalog = await self._tool_catalog()
            indicator.start()
            stream = await self.backend.send(self.history.snapshot(), catalog or None)

            decoder = TurnDecoder(on_text=self._render)
            async for event in stream:
                if self._state is TurnState.AWAITING_RESPONSE:
                    indicator.cancel()
                    await self._set_state(TurnState.DECODING)
                decoder.feed(event)

            # No-op unless the stream closed without yielding an event
            indicator.cancel()
            await self._set_state(TurnState.DECODING)
            blocks = decoder.finish()

            if round_num > 0:
                self.history.rollback_last_if_user()
                owns_last_message = False
            self.history.append_assistant(blocks)
        except BaseException as e:
            indicator.cancel()
            await self._set_state(TurnState.FAILED)
            if owns_last_message:
                self.history.rollback_last_if_user()
            logger.debug("Round %d failed: %s", round_num, e)
            await self._set_state(TurnState.IDLE)
            raise
        finally:
            self._indicator = None
            # Cancelled on every path above; this only joins the tick task
            await indicator.wait_closed()

        tool_use_count = sum(1 for b in blocks if isinstance(b, ToolUseBlock))
        await self.events.emit(
            TURN_END,
            TurnEndEvent(round=round_num, block_count=len(blocks), tool_use_count=tool_use_count),
        )
        return blocks

    async def _abandon_tools(self, tool_uses: list[ToolUseBlock]) -> None:
        """Close out tool calls interrupted mid-execution so history stays well-formed."""
        for tool_use in tool_uses:
            self.history.append_tool_result(tool_use.id, {"error": "Tool call interrupted"})
        logger.debug("Abandoned %d tool call(s)", len(tool_uses))
        await self._set_state(TurnState.FAILED)
        await self._set_state(TurnState.IDLE)

    def _render(self, text: str) -> None:
        """Write streamed text. The indicator is always stopped first."""
        if self._indicator is not None:
            self._indicator.cancel()
        if self.sink is not None:
            self.sink.write(text)

    async def _tool_catalog(self) -> list[ToolDescriptor]:
        if not self.tools_attached:
            return []
        try:
            descriptors = await self.tools.list_tools()
        except ToolError as e:
            logger.warning("Failed to list tools, sending request without tools: %s", e)
            return []
        catalog = []
        for descriptor in descriptors:
            if descriptor.input_schema is None:
                logger.debug("Skipping tool %s without input schema", descriptor.name)
                continue
            catalog.append(descriptor)
        return catalog

    async def _execute_tool(self, tool_use: ToolUseBlock, round_num: int) -> None:
        """Run one tool call and append its result, successful or not."""
        args: Any = tool_use.input
        if not isinstance(args, dict):
            logger.warning(
                "Tool input for %s is not a JSON object, using empty arguments", tool_use.name
            )
            args = {}

        btc_results = await self.events.emit(
            BEFORE_TOOL_CALL,
            BeforeToolCallEvent(
                tool_use_id=tool_use.id, name=tool_use.name, input=args, round=round_num
            ),
        )
        blocked = next(
            (r for r in btc_results if isinstance(r, ToolCallEventResult) and r.block), None
        )

        is_error = False
        if blocked is not None:
            payload: Any = {"error": f"Blocked: {blocked.reason or 'blocked by event handler'}"}
            is_error = True
        else:
            logger.debug("Calling tool %s (%s)", tool_use.name, tool_use.id)
            try:
                payload = await self.tools.invoke(tool_use.name, args)
            except ToolError as e:
                logger.warning("Tool %s failed: %s", tool_use.name, e)
                payload = {"error": str(e)}
                is_error = True
            except Exception as e:
                # The ToolUse is already committed; it must get a ToolResult.
                logger.warning("Tool %s raised %s: %s", tool_use.name, type(e).__name__, e)
                payload = {"error": f"{type(e).__name__}: {e}"}
                is_error = True

        atr_results = await self.events.emit(
            AFTER_TOOL_RESULT,
            AfterToolResultEvent(
                tool_use_id=tool_use.id,
                name=tool_use.name,
                payload=payload,
                is_error=is_error,
                round=round_num,
            ),
        )
        for r in atr_results:
            if isinstance(r, ToolResultEventResult) and r.modified_payload is not None:
                payload = r.modified_payload

        self.history.append_tool_result(tool_use.id, payload)
