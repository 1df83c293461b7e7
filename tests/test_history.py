"""Tests for the conversation history model."""

import json
import logging

import pytest
from pydantic import TypeAdapter, ValidationError

from turnstore.history.history import (
    History,
    create_assistant_turn,
    create_tool_call_turn,
    create_tool_turn,
    create_user_turn,
)
from turnstore.history.models import AssistantTurn, ToolTurn, Turn, UserTurn


class TestTurnFactories:
    def test_user_turn_has_no_tool_metadata(self):
        turn = create_user_turn("hello")
        assert isinstance(turn, UserTurn)
        assert turn.role == "user"
        assert turn.text == "hello"
        assert turn.images == []
        assert not hasattr(turn, "tool_call_ids")
        assert not hasattr(turn, "tool_call_id")

    def test_user_turn_with_images(self):
        turn = create_user_turn("look", ["aaaa", "bbbb"])
        assert turn.images == ["aaaa", "bbbb"]

    def test_tool_call_turn(self):
        turn = create_tool_call_turn("", ["call_1", "call_2"], '[{"id": "call_1"}]')
        assert turn.invokes_tools
        assert turn.tool_call_ids == ["call_1", "call_2"]

    def test_plain_assistant_turn_does_not_invoke_tools(self):
        assert not create_assistant_turn("hi").invokes_tools

    def test_timestamps_are_utc(self):
        assert create_user_turn("x").timestamp.tzinfo is not None

    def test_tool_turn_rejects_tool_call_ids(self):
        adapter = TypeAdapter(Turn)
        turn = adapter.validate_python(
            {"role": "tool", "text": "ok", "tool_call_id": "c1", "tool_call_ids": ["c9"]}
        )
        assert isinstance(turn, ToolTurn)
        assert not hasattr(turn, "tool_call_ids")

    def test_tool_turn_requires_call_id(self):
        with pytest.raises(ValidationError):
            TypeAdapter(Turn).validate_python({"role": "tool", "text": "ok"})

    def test_unknown_role_rejected(self):
        with pytest.raises(ValidationError):
            TypeAdapter(Turn).validate_python({"role": "narrator", "text": "once"})


class TestToolCallsDescriptor:
    def test_parses_json(self):
        calls = [{"id": "c1", "name": "python_execute", "arguments": "{}"}]
        turn = create_tool_call_turn("", ["c1"], json.dumps(calls))
        assert turn.tool_calls() == calls

    def test_rebuilds_from_ids_when_json_invalid(self):
        turn = AssistantTurn(tool_call_ids=["c1"], tool_calls_json="not json")
        rebuilt = turn.tool_calls()
        assert rebuilt == [{"id": "c1", "type": "function", "name": "unknown", "arguments": "{}"}]


class TestHistory:
    def test_append_preserves_order_and_duplicates(self):
        history = History()
        first = create_user_turn("same")
        history.append(first)
        history.append(first)
        history.append(create_assistant_turn("reply"))

        assert len(history) == 3
        assert [t.text for t in history] == ["same", "same", "reply"]
        assert history[0] is first

    def test_turns_is_a_snapshot(self):
        history = History([create_user_turn("a")])
        snapshot = history.turns
        history.append(create_user_turn("b"))
        assert len(snapshot) == 1
        assert len(history.turns) == 2

    def test_dangling_tool_result_is_logged_not_raised(self, caplog):
        history = History()
        with caplog.at_level(logging.WARNING, logger="turnstore.history.history"):
            history.append(create_tool_turn("result", "call_missing"))
        assert len(history) == 1
        assert "call_missing" in caplog.text

    def test_matched_tool_result_is_quiet(self, caplog):
        history = History([create_tool_call_turn("", ["call_1"])])
        with caplog.at_level(logging.WARNING, logger="turnstore.history.history"):
            history.append(create_tool_turn("result", "call_1"))
        assert caplog.text == ""

    def test_clear(self):
        history = History([create_user_turn("a")])
        history.clear()
        assert len(history) == 0
