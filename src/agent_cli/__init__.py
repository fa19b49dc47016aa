"""
Agent CLI - a streaming conversational agent with pluggable tool providers.

The core is the turn engine: it sends the conversation to a model backend,
decodes the streamed reply into content blocks, runs the tools the model
asks for, and continues the turn with their results until the model
answers in plain text.

Example:
    from agent_cli import AnthropicBackend, LocalToolInvoker, TurnOrchestrator

    tools = LocalToolInvoker()

    @tools.tool("now", "Current UTC time")
    def now(args):
        return {"utc": datetime.utcnow().isoformat()}

    orchestrator = TurnOrchestrator(AnthropicBackend.bedrock(), tools=tools)
    result = await orchestrator.send("What time is it?")
    print(result.text)
"""

from agent_cli.backends import AnthropicBackend, ModelBackend, OpenAIBackend
from agent_cli.config import AgentConfig
from agent_cli.decoder import PendingToolCall, TurnDecoder, decode_stream
from agent_cli.errors import (
    AgentError,
    BuildError,
    ConfigError,
    DecodeError,
    ProviderUnavailable,
    StreamProtocolError,
    ToolError,
    ToolExecutionFailed,
    ToolInputDecodeError,
    ToolNotFound,
    TransportError,
)
from agent_cli.events import (
    BlockStart,
    BlockStop,
    BlockType,
    EventBus,
    StreamEvent,
    TextDelta,
    ToolInputDelta,
)
from agent_cli.history import HistoryStore
from agent_cli.indicator import ConsoleSink, OutputSink, ProgressIndicator
from agent_cli.messages import (
    ContentBlock,
    Message,
    Role,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
)
from agent_cli.orchestrator import TurnOrchestrator, TurnResult, TurnState
from agent_cli.tools import (
    LocalToolInvoker,
    McpConfig,
    McpToolInvoker,
    ServerConfig,
    ToolDefinition,
    ToolDescriptor,
    ToolInvoker,
)

__version__ = "0.1.0"

__all__ = [
    # Core
    "TurnOrchestrator",
    "TurnResult",
    "TurnState",
    "HistoryStore",
    "TurnDecoder",
    "PendingToolCall",
    "decode_stream",
    "ProgressIndicator",
    "OutputSink",
    "ConsoleSink",
    # Data model
    "Role",
    "Message",
    "ContentBlock",
    "TextBlock",
    "ToolUseBlock",
    "ToolResultBlock",
    # Stream events
    "StreamEvent",
    "BlockStart",
    "BlockStop",
    "BlockType",
    "TextDelta",
    "ToolInputDelta",
    "EventBus",
    # Backends
    "ModelBackend",
    "AnthropicBackend",
    "OpenAIBackend",
    # Tools
    "ToolDescriptor",
    "ToolInvoker",
    "ToolDefinition",
    "LocalToolInvoker",
    "McpToolInvoker",
    "McpConfig",
    "ServerConfig",
    # Config
    "AgentConfig",
    # Errors
    "AgentError",
    "BuildError",
    "ConfigError",
    "DecodeError",
    "StreamProtocolError",
    "ToolInputDecodeError",
    "TransportError",
    "ToolError",
    "ProviderUnavailable",
    "ToolNotFound",
    "ToolExecutionFailed",
]
