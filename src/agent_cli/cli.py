"""
Command-line interface for the agent.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from agent_cli.backends import AnthropicBackend, ModelBackend, OpenAIBackend
from agent_cli.config import AgentConfig
from agent_cli.errors import AgentError, ConfigError
from agent_cli.events import (
    AFTER_TOOL_RESULT,
    BEFORE_TOOL_CALL,
    TURN_END,
    TURN_START,
    AfterToolResultEvent,
    BeforeToolCallEvent,
    EventBus,
    TurnStartEvent,
)
from agent_cli.indicator import ConsoleSink, ProgressIndicator
from agent_cli.logging import setup_logging
from agent_cli.orchestrator import TurnOrchestrator
from agent_cli.tools.mcp_client import McpToolInvoker
from agent_cli.tools.mcp_config import McpConfig

console = Console()

MAX_LISTED_TOOLS = 5
EXIT_COMMANDS = ("exit", "quit")


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    load_dotenv()

    parser = argparse.ArgumentParser(
        description="Conversational agent with streaming replies and MCP tools",
        prog="agent-cli",
    )

    # Global options
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output (debug logging)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Run command
    run_parser = subparsers.add_parser("run", help="Start an interactive conversation")
    run_parser.add_argument(
        "--backend",
        choices=["bedrock", "anthropic", "openai"],
        help="Model backend",
    )
    run_parser.add_argument("--aws-profile", help="AWS profile for Bedrock")
    run_parser.add_argument("--region", help="AWS region for Bedrock")
    run_parser.add_argument("--model", help="Model ID")
    run_parser.add_argument("--config", type=Path, help="Config file (YAML)")
    run_parser.add_argument("--mcp-config", type=Path, help="MCP server config (mcp.json)")
    run_parser.add_argument(
        "--max-tool-rounds",
        type=int,
        help="Maximum tool continuation rounds per turn (default: unbounded)",
    )

    # MCP command
    mcp_parser = subparsers.add_parser("mcp", help="Inspect configured MCP servers")
    mcp_parser.add_argument("server_name", nargs="?", help="Server to connect to")
    mcp_parser.add_argument("--config", type=Path, help="MCP server config (mcp.json)")

    args = parser.parse_args(argv)

    # Setup logging based on verbosity
    if getattr(args, "verbose", False):
        setup_logging("DEBUG")
    else:
        setup_logging("WARNING")

    try:
        if args.command == "run":
            asyncio.run(cmd_run(args))
        elif args.command == "mcp":
            asyncio.run(cmd_mcp(args))
        else:
            parser.print_help()
    except ConfigError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[dim]Goodbye![/dim]")


def create_backend(config: AgentConfig) -> ModelBackend:
    """Create the model backend selected by ``config``."""
    if config.backend == "bedrock":
        return AnthropicBackend.bedrock(
            profile=config.aws_profile,
            region=config.region,
            model=config.model,
            max_tokens=config.max_tokens,
            system_prompt=config.system_prompt,
        )
    if config.backend == "anthropic":
        kwargs: dict[str, Any] = {
            "max_tokens": config.max_tokens,
            "system_prompt": config.system_prompt,
        }
        if config.model:
            kwargs["model"] = config.model
        return AnthropicBackend(**kwargs)

    kwargs = {
        "base_url": config.base_url,
        "api_key": config.api_key,
        "system_prompt": config.system_prompt,
    }
    if config.model:
        kwargs["model"] = config.model
    return OpenAIBackend(**kwargs)


def _load_config(args: argparse.Namespace) -> AgentConfig:
    """Config file and environment, with command-line flags on top."""
    config = AgentConfig.load(args.config)
    overrides = {
        "backend": args.backend,
        "aws_profile": args.aws_profile,
        "region": args.region,
        "model": args.model,
        "mcp_config": args.mcp_config,
        "max_tool_rounds": args.max_tool_rounds,
    }
    data = config.to_dict()
    data.update({k: v for k, v in overrides.items() if v is not None})
    return AgentConfig.from_dict(data)


def _load_mcp_config(path: Path | None) -> McpConfig | None:
    if path is not None:
        return McpConfig.load_from_file(path)
    return McpConfig.load_default()


class InteractiveSession:
    """
    Read-eval loop over one conversation.

    Commands:
        exit, quit      End the session
        mcp <server>    Connect to a server from mcp.json
    """

    def __init__(
        self,
        backend: ModelBackend,
        config: AgentConfig,
        mcp_config: McpConfig | None = None,
        console: Console | None = None,
        mcp: McpToolInvoker | None = None,
    ) -> None:
        self.config = config
        self.mcp_config = mcp_config
        self.console = console or Console()
        self.sink = ConsoleSink(self.console)
        self.mcp = mcp or McpToolInvoker()
        self.events = EventBus()
        self.prefix = f"{config.assistant_label} > "

        self.orchestrator = TurnOrchestrator(
            backend=backend,
            tools=self.mcp,
            sink=self.sink,
            events=self.events,
            indicator_factory=self._new_indicator,
            max_tool_rounds=config.max_tool_rounds,
        )

        self.events.on(TURN_START, self._on_turn_start, source="cli")
        self.events.on(TURN_END, self._on_turn_end, source="cli")
        self.events.on(BEFORE_TOOL_CALL, self._on_before_tool_call, source="cli")
        self.events.on(AFTER_TOOL_RESULT, self._on_after_tool_result, source="cli")

    def _new_indicator(self) -> ProgressIndicator:
        return ProgressIndicator(
            self.sink,
            interval=self.config.indicator_interval,
            symbol=self.config.indicator_symbol,
            prefix=self.prefix,
        )

    def _on_turn_start(self, event: TurnStartEvent) -> None:
        self.sink.write(self.prefix)

    def _on_turn_end(self, event: Any) -> None:
        self.sink.write("\n")

    def _on_before_tool_call(self, event: BeforeToolCallEvent) -> None:
        self.sink.write(f"🔧 Using tool: {event.name}\n")

    def _on_after_tool_result(self, event: AfterToolResultEvent) -> None:
        if event.is_error:
            error = event.payload.get("error") if isinstance(event.payload, dict) else event.payload
            self.sink.write(f"❌ {event.name} failed: {error}\n")
        else:
            self.sink.write(f"✅ {event.name} completed\n")

    async def connect_server(self, name: str) -> None:
        """Connect to a configured MCP server, replacing any current connection."""
        if self.mcp_config is None:
            self.console.print("[yellow]No MCP configuration found (.vscode/mcp.json or mcp.json)[/yellow]")
            return
        server = self.mcp_config.get_server(name)
        if server is None:
            available = ", ".join(self.mcp_config.server_names()) or "none"
            self.console.print(f"[red]Server not found: {name}[/red] (available: {available})")
            return

        self.console.print(f"[dim]Connecting to MCP server '{name}'...[/dim]")
        try:
            await self.mcp.connect_server(server, workspace_folder=str(Path.cwd()))
            tools = await self.mcp.list_tools()
        except Exception as e:
            self.console.print(f"[red]Failed to connect to '{name}':[/red] {e}")
            return

        self.console.print(f"[green]Connected to '{name}'[/green] ({len(tools)} tools)")
        for tool in tools[:MAX_LISTED_TOOLS]:
            self.console.print(f"  🔧 {tool.name} - {tool.description[:60]}")
        if len(tools) > MAX_LISTED_TOOLS:
            self.console.print(f"  [dim]... and {len(tools) - MAX_LISTED_TOOLS} more[/dim]")

    async def handle_line(self, line: str) -> bool:
        """
        Process one input line.

        Returns:
            False when the session should end
        """
        user_input = line.strip()
        if not user_input:
            return True

        if user_input.lower() in EXIT_COMMANDS:
            return False

        parts = user_input.split(maxsplit=1)
        if parts[0] == "mcp":
            if len(parts) < 2:
                self.console.print("[yellow]Usage: mcp <server>[/yellow]")
            else:
                await self.connect_server(parts[1].strip())
            return True

        try:
            await self.orchestrator.send(user_input)
        except AgentError as e:
            self.console.print(f"\n[red]Error: {e}[/red]")
        return True

    async def run(self) -> None:
        """Prompt for input until exit, EOF, or Ctrl-C."""
        label = self.config.user_label
        self.console.print("[dim]Type 'exit' or 'quit' to leave, 'mcp <server>' to attach tools[/dim]")
        try:
            while True:
                try:
                    line = self.console.input(f"[bold green]{label} >[/bold green] ")
                except (EOFError, KeyboardInterrupt):
                    self.console.print()
                    break
                if not await self.handle_line(line):
                    break
        finally:
            await self.close()
        self.console.print("[dim]Goodbye![/dim]")

    async def close(self) -> None:
        if self.mcp.is_attached:
            await self.mcp.disconnect()
        await self.orchestrator.backend.aclose()


async def cmd_run(args: argparse.Namespace) -> None:
    """Start an interactive conversation."""
    config = _load_config(args)

    try:
        mcp_config = _load_mcp_config(config.mcp_config)
    except ConfigError as e:
        console.print(f"[yellow]Ignoring MCP configuration: {e}[/yellow]")
        mcp_config = None

    backend = create_backend(config)
    console.print(f"[dim]Backend: {config.backend} · Model: {backend.model_id}[/dim]")

    session = InteractiveSession(backend, config, mcp_config=mcp_config, console=console)
    await session.run()


async def cmd_mcp(args: argparse.Namespace) -> None:
    """List configured MCP servers, or connect to one and show its tools."""
    mcp_config = _load_mcp_config(args.config)
    if mcp_config is None:
        console.print("[yellow]No MCP configuration found (.vscode/mcp.json or mcp.json)[/yellow]")
        sys.exit(1)

    if not args.server_name:
        table = Table(title="MCP Servers")
        table.add_column("Name", style="cyan")
        table.add_column("Type", style="dim")
        table.add_column("Command")
        table.add_column("Args")
        table.add_column("Env", justify="right")
        for name, server in mcp_config.servers.items():
            table.add_row(
                name, server.server_type, server.command, " ".join(server.args), str(len(server.env))
            )
        console.print(table)
        return

    server = mcp_config.get_server(args.server_name)
    if server is None:
        console.print(f"[red]Server not found: {args.server_name}[/red]")
        sys.exit(1)

    client = McpToolInvoker()
    try:
        await client.connect_server(server, workspace_folder=str(Path.cwd()))
    except Exception as e:
        console.print(f"[red]Failed to connect to '{args.server_name}':[/red] {e}")
        sys.exit(1)

    try:
        info = client.server_info
        if info is not None:
            console.print(f"\n[bold]{info.name}[/bold] [dim]{info.version}[/dim]\n")

        tools = await client.list_tools()
        table = Table(title=f"Tools ({len(tools)})")
        table.add_column("Name", style="cyan")
        table.add_column("Description")
        for tool in tools:
            table.add_row(f"🔧 {tool.name}", tool.description[:80])
        console.print(table)
    finally:
        await client.disconnect()


if __name__ == "__main__":
    main()
