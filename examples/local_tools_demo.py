#!/usr/bin/env python3
"""
Agent CLI Demo

Runs a short conversation against Claude on Bedrock with two local tools,
streaming the reply to the terminal and printing each tool call.

Usage:
    # AWS credentials from the environment or ~/.aws (auto-loads .env)
    python examples/local_tools_demo.py

    # Use the Anthropic API instead
    python examples/local_tools_demo.py --anthropic
"""

import asyncio
import sys
from datetime import datetime, timezone

from dotenv import load_dotenv
from rich.console import Console

from agent_cli import (
    AnthropicBackend,
    ConsoleSink,
    EventBus,
    LocalToolInvoker,
    TurnOrchestrator,
)
from agent_cli.events import AFTER_TOOL_RESULT, BEFORE_TOOL_CALL

console = Console()


def build_tools() -> LocalToolInvoker:
    tools = LocalToolInvoker()

    @tools.tool("utc_now", "Current date and time in UTC")
    def utc_now(args):
        return {"utc": datetime.now(timezone.utc).isoformat()}

    @tools.tool(
        "multiply",
        "Multiply two numbers",
        {
            "type": "object",
            "properties": {"a": {"type": "number"}, "b": {"type": "number"}},
            "required": ["a", "b"],
        },
    )
    def multiply(args):
        return {"product": args["a"] * args["b"]}

    return tools


async def main():
    load_dotenv()

    if "--anthropic" in sys.argv:
        backend = AnthropicBackend()
    else:
        backend = AnthropicBackend.bedrock()

    events = EventBus()
    sink = ConsoleSink(console)

    @events.on(BEFORE_TOOL_CALL)
    def show_call(event):
        sink.write(f"\n🔧 {event.name}({event.input})\n")

    @events.on(AFTER_TOOL_RESULT)
    def show_result(event):
        sink.write(f"   -> {event.payload}\n")

    orchestrator = TurnOrchestrator(backend, tools=build_tools(), sink=sink, events=events)

    questions = [
        "What time is it in UTC right now?",
        "What is 1234 times 5678? Use the tool.",
    ]
    try:
        for question in questions:
            console.print(f"\n[bold green]User >[/bold green] {question}")
            sink.write("Assistant > ")
            result = await orchestrator.send(question)
            sink.write("\n")
            console.print(f"[dim]{result.rounds} round(s), finish: {result.finish_reason}[/dim]")
    finally:
        await backend.aclose()


if __name__ == "__main__":
    asyncio.run(main())
