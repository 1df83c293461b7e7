"""Tests for the turnstore CLI."""

import json

import pytest
from typer.testing import CliRunner

from turnstore import __version__
from turnstore.cli import app
from turnstore.history.history import (
    create_assistant_turn,
    create_tool_call_turn,
    create_tool_turn,
    create_user_turn,
)
from turnstore.sessions.models import Session
from turnstore.sessions.store import SessionStore

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    import turnstore.config as config
    import turnstore.logging_setup as logging_setup

    monkeypatch.setattr(config, "TURNSTORE_DIR", tmp_path / "home")
    monkeypatch.setattr(config, "SESSIONS_DIR", tmp_path / "home" / "sessions")
    monkeypatch.setattr(logging_setup, "configure_logging", lambda *args, **kwargs: None)


@pytest.fixture
def root(tmp_path):
    return tmp_path / "sessions"


@pytest.fixture
def store(root):
    return SessionStore(root=root)


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


class TestSessionsCommands:
    def test_list_empty(self, root):
        result = runner.invoke(app, ["sessions", "list", "--root", str(root)])
        assert result.exit_code == 0
        assert "No stored sessions" in result.output

    def test_list(self, store, root):
        store.save(Session(session_id="20240101_000000", title="Cube", turns=[create_user_turn("Cube")]))
        result = runner.invoke(app, ["sessions", "list", "--root", str(root)])
        assert result.exit_code == 0
        assert "20240101_000000" in result.output
        assert "Cube" in result.output

    def test_show(self, store, root):
        store.save(
            Session(
                session_id="20240101_000000",
                title="Cube",
                continuation_token="resp_1",
                turns=[create_user_turn("make a cube"), create_assistant_turn("Done.")],
            )
        )
        result = runner.invoke(app, ["sessions", "show", "20240101_000000", "--root", str(root)])
        assert result.exit_code == 0
        assert "make a cube" in result.output
        assert "resp_1" in result.output

    def test_show_missing(self, root):
        result = runner.invoke(app, ["sessions", "show", "nope", "--root", str(root)])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_delete(self, store, root):
        store.save(Session(session_id="20240101_000000", turns=[create_user_turn("x")]))
        result = runner.invoke(app, ["sessions", "delete", "20240101_000000", "--root", str(root)])
        assert result.exit_code == 0
        assert not store.exists("20240101_000000")

    def test_payload_pending_user_message(self, store, root):
        store.save(
            Session(
                session_id="20240101_000000",
                continuation_token="resp_1",
                turns=[
                    create_user_turn("hello"),
                    create_assistant_turn("hi"),
                    create_user_turn("again"),
                ],
            )
        )
        result = runner.invoke(app, ["sessions", "payload", "20240101_000000", "--root", str(root)])
        assert result.exit_code == 0
        assert "start_index=2" in result.output
        payload = json.loads(result.output[result.output.index("[") :])
        assert payload == [{"role": "user", "content": "again"}]

    def test_payload_without_tool_results_fails(self, store, root):
        store.save(
            Session(
                session_id="20240101_000000",
                continuation_token="resp_1",
                turns=[create_user_turn("go"), create_tool_call_turn("", ["c1"])],
            )
        )
        result = runner.invoke(app, ["sessions", "payload", "20240101_000000", "--root", str(root)])
        assert result.exit_code == 1
        assert "Protocol fault" in result.output

    def test_payload_tool_continuation(self, store, root):
        store.save(
            Session(
                session_id="20240101_000000",
                continuation_token="resp_1",
                turns=[
                    create_user_turn("go"),
                    create_tool_call_turn("", ["c1"]),
                    create_tool_turn("done", "c1"),
                ],
            )
        )
        result = runner.invoke(app, ["sessions", "payload", "20240101_000000", "--root", str(root)])
        assert result.exit_code == 0
        assert "function_call_output" in result.output
