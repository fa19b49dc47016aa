"""
Streaming model backends.
"""

from agent_cli.backends.anthropic import AnthropicBackend
from agent_cli.backends.base import ModelBackend
from agent_cli.backends.openai import OpenAIBackend

__all__ = [
    "ModelBackend",
    "AnthropicBackend",
    "OpenAIBackend",
]
