"""
Logging for the agent CLI.

Everything logs under the ``agent_cli`` logger. Records go to stderr so
they never interleave with the conversation, which is written to stdout
through the output sink. The SDKs underneath (anthropic, openai, httpx,
mcp) log every request at DEBUG; they are held at WARNING unless asked
for, so ``-v`` shows the engine's own trace rather than HTTP chatter.
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

PACKAGE_LOGGER = "agent_cli"

LIBRARY_LOGGERS = ("anthropic", "openai", "httpx", "httpcore", "mcp")

CONSOLE_FORMAT = "%(levelname)s %(name)s: %(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_root_logger = logging.getLogger(PACKAGE_LOGGER)


def setup_logging(
    level: str | int = "WARNING",
    stream: TextIO | None = None,
    file: str | None = None,
    library_level: str | int = "WARNING",
) -> None:
    """
    Configure the package logger.

    Safe to call more than once: handlers installed by a previous call are
    replaced, handlers added by anyone else are left alone.

    Args:
        level: Level for ``agent_cli`` loggers (name or number)
        stream: Console stream (defaults to stderr)
        file: Optional log file; gets timestamps the console omits
        library_level: Level for the SDK and HTTP client loggers
    """
    level = _to_level(level)
    _root_logger.setLevel(level)
    _root_logger.propagate = False

    for handler in [h for h in _root_logger.handlers if getattr(h, "_agent_cli", False)]:
        _root_logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(stream or sys.stderr)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    _install(console)

    if file:
        file_handler = logging.FileHandler(file)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        _install(file_handler)

    for name in LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(_to_level(library_level))


def get_logger(name: str) -> logging.Logger:
    """Child logger for a submodule, e.g. ``get_logger("tools.mcp")``."""
    if name == PACKAGE_LOGGER or name.startswith(f"{PACKAGE_LOGGER}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{PACKAGE_LOGGER}.{name}")


def _install(handler: logging.Handler) -> None:
    handler._agent_cli = True  # type: ignore[attr-defined]
    _root_logger.addHandler(handler)


def _to_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level}")
    return resolved
