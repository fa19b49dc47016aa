"""Tests for HistoryStore."""

from __future__ import annotations

import pytest

from agent_cli.errors import BuildError
from agent_cli.history import HistoryStore
from agent_cli.messages import Role, TextBlock, ToolResultBlock, ToolUseBlock


class TestAppend:
    def test_append_user(self) -> None:
        history = HistoryStore()
        message = history.append_user("hello")

        assert len(history) == 1
        assert message.role == Role.USER
        assert message.blocks == (TextBlock("hello"),)

    def test_append_assistant(self) -> None:
        history = HistoryStore()
        history.append_user("hi")
        blocks = [TextBlock("checking"), ToolUseBlock(id="t1", name="ls", input={})]
        message = history.append_assistant(blocks)

        assert message.role == Role.ASSISTANT
        assert message.blocks == tuple(blocks)
        assert history.last is message

    def test_append_assistant_rejects_empty(self) -> None:
        history = HistoryStore()
        history.append_user("hi")

        with pytest.raises(BuildError):
            history.append_assistant([])
        assert len(history) == 1

    def test_append_tool_result_is_user_role(self) -> None:
        history = HistoryStore()
        message = history.append_tool_result("t1", {"ok": True})

        assert message.role == Role.USER
        assert message.blocks == (ToolResultBlock(tool_use_id="t1", payload={"ok": True}),)

    def test_insertion_order(self) -> None:
        history = HistoryStore()
        history.append_user("a")
        history.append_assistant([TextBlock("b")])
        history.append_user("c")

        assert [m.text for m in history] == ["a", "b", "c"]


class TestRollback:
    def test_rollback_removes_last_user(self) -> None:
        history = HistoryStore()
        history.append_user("hi")

        assert history.rollback_last_if_user() is True
        assert len(history) == 0

    def test_rollback_on_empty_history(self) -> None:
        history = HistoryStore()
        assert history.rollback_last_if_user() is False
        assert len(history) == 0

    def test_rollback_keeps_assistant(self) -> None:
        history = HistoryStore()
        history.append_user("hi")
        history.append_assistant([TextBlock("hello")])

        assert history.rollback_last_if_user() is False
        assert len(history) == 2

    def test_rollback_only_removes_one(self) -> None:
        history = HistoryStore()
        history.append_user("a")
        history.append_user("b")

        assert history.rollback_last_if_user() is True
        assert [m.text for m in history] == ["a"]


class TestSnapshot:
    def test_snapshot_is_immutable_copy(self) -> None:
        history = HistoryStore()
        history.append_user("a")
        snapshot = history.snapshot()

        history.append_assistant([TextBlock("b")])

        assert isinstance(snapshot, tuple)
        assert len(snapshot) == 1
        assert len(history.snapshot()) == 2

    def test_clear(self) -> None:
        history = HistoryStore()
        history.append_user("a")
        history.clear()

        assert len(history) == 0
        assert history.last is None
