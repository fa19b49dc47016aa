"""Tests for package logging setup."""

from __future__ import annotations

import io
import logging
from pathlib import Path

import pytest

from agent_cli import cli
from agent_cli.logging import LIBRARY_LOGGERS, PACKAGE_LOGGER, get_logger, setup_logging


@pytest.fixture(autouse=True)
def restore_loggers():
    names = (PACKAGE_LOGGER, *LIBRARY_LOGGERS)
    saved = {
        name: (logging.getLogger(name).level, list(logging.getLogger(name).handlers))
        for name in names
    }
    package = logging.getLogger(PACKAGE_LOGGER)
    propagate = package.propagate
    yield
    for name, (level, handlers) in saved.items():
        logger = logging.getLogger(name)
        for handler in logger.handlers:
            if handler not in handlers:
                handler.close()
        logger.setLevel(level)
        logger.handlers[:] = handlers
    package.propagate = propagate


class TestGetLogger:
    def test_child_of_package_logger(self) -> None:
        assert get_logger("orchestrator").name == "agent_cli.orchestrator"
        assert get_logger("tools.mcp").name == "agent_cli.tools.mcp"

    def test_qualified_names_unchanged(self) -> None:
        assert get_logger("agent_cli.cli").name == "agent_cli.cli"
        assert get_logger("agent_cli").name == "agent_cli"


class TestSetupLogging:
    def test_records_go_to_stream(self) -> None:
        stream = io.StringIO()
        setup_logging("DEBUG", stream=stream)

        get_logger("orchestrator").debug("State %s -> %s", "idle", "awaiting_response")

        assert stream.getvalue() == (
            "DEBUG agent_cli.orchestrator: State idle -> awaiting_response\n"
        )

    def test_level_filters(self) -> None:
        stream = io.StringIO()
        setup_logging("WARNING", stream=stream)

        get_logger("decoder").info("hidden")
        get_logger("decoder").warning("shown")

        assert stream.getvalue() == "WARNING agent_cli.decoder: shown\n"

    def test_repeated_setup_keeps_one_console_handler(self) -> None:
        first, second = io.StringIO(), io.StringIO()
        setup_logging("INFO", stream=first)
        setup_logging("INFO", stream=second)

        get_logger("cli").info("once")

        assert first.getvalue() == ""
        assert second.getvalue().count("once") == 1

    def test_foreign_handlers_survive(self) -> None:
        foreign = logging.StreamHandler(io.StringIO())
        logging.getLogger(PACKAGE_LOGGER).addHandler(foreign)

        setup_logging("INFO", stream=io.StringIO())
        setup_logging("INFO", stream=io.StringIO())

        assert foreign in logging.getLogger(PACKAGE_LOGGER).handlers

    def test_file_gets_timestamps(self, tmp_path: Path) -> None:
        path = tmp_path / "agent.log"
        stream = io.StringIO()
        setup_logging("INFO", stream=stream, file=str(path))

        get_logger("tools.mcp").info("Connected")
        for handler in logging.getLogger(PACKAGE_LOGGER).handlers:
            handler.flush()

        line = path.read_text().strip()
        assert line.endswith("[INFO] agent_cli.tools.mcp: Connected")
        assert line[:4].isdigit()
        assert stream.getvalue() == "INFO agent_cli.tools.mcp: Connected\n"

    def test_library_loggers_held_back(self) -> None:
        setup_logging("DEBUG", stream=io.StringIO())

        for name in LIBRARY_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING

    def test_library_level_can_be_raised(self) -> None:
        setup_logging("DEBUG", stream=io.StringIO(), library_level="DEBUG")
        assert logging.getLogger("httpx").level == logging.DEBUG

    def test_unknown_level(self) -> None:
        with pytest.raises(ValueError):
            setup_logging("LOUD", stream=io.StringIO())


class TestCliVerbosity:
    def test_verbose_flag_enables_debug(self) -> None:
        cli.main(["-v"])
        assert logging.getLogger(PACKAGE_LOGGER).level == logging.DEBUG

    def test_default_is_warning(self) -> None:
        cli.main([])
        assert logging.getLogger(PACKAGE_LOGGER).level == logging.WARNING
