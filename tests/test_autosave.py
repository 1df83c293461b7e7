"""Tests for the session catalog and auto-save controller."""

from datetime import datetime, timedelta, timezone

import pytest

from turnstore.config import DEFAULT_TITLE
from turnstore.history.history import (
    create_assistant_turn,
    create_tool_turn,
    create_user_turn,
)
from turnstore.history.models import ToolCallRecord
from turnstore.sessions.autosave import AutoSaveController, AutoSaveState, derive_title
from turnstore.sessions.catalog import SessionCatalog
from turnstore.sessions.events import SessionEvents
from turnstore.sessions.models import Session
from turnstore.sessions.store import SessionStore


@pytest.fixture
def events():
    return SessionEvents()


@pytest.fixture
def root(tmp_path):
    return tmp_path / "sessions"


@pytest.fixture
def store(root, events):
    return SessionStore(root=root, events=events)


@pytest.fixture
def catalog(root, events):
    return SessionCatalog(root=root, events=events)


@pytest.fixture
def controller(store, catalog):
    return AutoSaveController(store, catalog)


def stored_session(session_id, modified, title="t"):
    return Session(
        session_id=session_id,
        title=title,
        created_at=modified,
        last_modified_at=modified,
        turns=[create_user_turn(title)],
    )


class TestDeriveTitle:
    def test_short_message(self):
        assert derive_title("hello") == "hello"

    def test_long_message_truncated_with_ellipsis(self):
        text = "Build me   a\ncastle with five towers please, and a moat around it"
        title = derive_title(text)
        assert title.endswith("...")
        assert len(title) <= 50 + len("...")
        assert "\n" not in title
        assert "  " not in title
        assert title.startswith("Build me a castle with five towers")

    def test_carriage_returns_collapsed(self):
        assert derive_title("line one\r\nline two") == "line one line two"

    def test_blank_falls_back(self):
        assert derive_title("   \n  ") == DEFAULT_TITLE


class TestCatalog:
    def test_sorted_newest_first(self, store, catalog):
        base = datetime(2024, 1, 1, tzinfo=timezone.utc)
        store.save(stored_session("20240101_000000", base, "old"))
        store.save(stored_session("20240102_000000", base + timedelta(days=2), "new"))
        store.save(stored_session("20240103_000000", base + timedelta(days=1), "mid"))

        summaries = catalog.refresh()
        assert [s.title for s in summaries] == ["new", "mid", "old"]
        assert catalog.sessions == summaries
        assert summaries[0].file_path == store.session_path("20240102_000000")

    def test_truncated_to_max(self, store, root, events):
        base = datetime(2024, 1, 1, tzinfo=timezone.utc)
        for i in range(5):
            store.save(stored_session(f"2024010{i + 1}_000000", base + timedelta(hours=i)))

        catalog = SessionCatalog(root=root, events=events, max_sessions=3)
        summaries = catalog.refresh()
        assert [s.session_id for s in summaries] == [
            "20240105_000000",
            "20240104_000000",
            "20240103_000000",
        ]

    def test_unparseable_sessions_skipped(self, store, root, catalog):
        store.save(stored_session("20240101_000000", datetime.now(timezone.utc)))
        broken = root / "20240102_000000"
        broken.mkdir()
        (broken / "session.json").write_text("{ nope")
        (root / "empty_dir").mkdir()

        summaries = catalog.refresh()
        assert [s.session_id for s in summaries] == ["20240101_000000"]

    def test_session_with_only_backup_listed(self, store, catalog):
        store.save(stored_session("20240101_000000", datetime.now(timezone.utc), "survivor"))
        store.save(stored_session("20240101_000000", datetime.now(timezone.utc), "survivor"))
        store.session_path("20240101_000000").unlink()

        summaries = catalog.refresh()
        assert [s.title for s in summaries] == ["survivor"]
        assert summaries[0].file_path == store.backup_path("20240101_000000")

    def test_missing_root(self, tmp_path, events):
        catalog = SessionCatalog(root=tmp_path / "absent", events=events)
        assert catalog.refresh() == ()

    def test_emits_list_changed(self, catalog, events):
        changes = []
        events.list_changed.connect(lambda: changes.append(True))
        catalog.refresh()
        assert changes == [True]

    def test_get(self, store, catalog):
        store.save(stored_session("20240101_000000", datetime.now(timezone.utc), "find me"))
        catalog.refresh()
        assert catalog.get("20240101_000000").title == "find me"
        assert catalog.get("nope") is None


class TestAutoSaveController:
    def test_begin_append_flush_lists_session(self, controller, catalog):
        controller.begin("20240101_000000")
        controller.append_turn(create_user_turn("hello"))

        assert controller.flush()
        summaries = catalog.sessions
        assert len(summaries) == 1
        assert summaries[0].session_id == "20240101_000000"
        assert summaries[0].message_count == 1
        assert summaries[0].title == "hello"

    def test_inactive_appends_are_ignored(self, controller):
        controller.append_turn(create_user_turn("hello"))
        controller.append_tool_call(ToolCallRecord(tool_name="x"))
        assert controller.state is AutoSaveState.INACTIVE
        assert controller.session is None
        assert controller.flush() is False

    def test_flush_without_turns_writes_nothing(self, controller, store):
        controller.begin("20240101_000000")
        assert controller.flush()
        assert not store.exists("20240101_000000")

    def test_title_set_once_from_first_non_empty_user_turn(self, controller):
        controller.begin("20240101_000000")
        controller.append_turn(create_assistant_turn("Welcome"))
        controller.append_turn(create_user_turn(""))
        controller.append_turn(create_user_turn("first real message"))
        controller.append_turn(create_user_turn("second message"))
        assert controller.session.title == "first real message"

    def test_append_tool_call_and_token(self, controller, store):
        controller.begin("20240101_000000")
        controller.append_turn(create_user_turn("go"))
        controller.append_turn(create_tool_turn("done", "c1"))
        controller.append_tool_call(ToolCallRecord(tool_name="python_execute", result="done"))
        controller.set_continuation_token("resp_9")
        controller.flush()

        loaded = store.load("20240101_000000").session
        assert loaded.continuation_token == "resp_9"
        assert loaded.tool_calls[0].tool_name == "python_execute"
        assert loaded.message_count == 2

    def test_end_flushes_and_resets(self, controller, store):
        controller.begin("20240101_000000")
        controller.append_turn(create_user_turn("bye"))
        assert controller.end()

        assert store.exists("20240101_000000")
        assert controller.state is AutoSaveState.INACTIVE
        assert controller.session is None

    def test_adopt_keeps_loaded_title(self, controller):
        loaded = stored_session("20231231_000000", datetime.now(timezone.utc), "Loaded title")
        controller.begin("20231231_000000")
        controller.adopt(loaded)
        controller.append_turn(create_user_turn("a new message"))
        assert controller.session.title == "Loaded title"
        assert controller.session.message_count == 2

    def test_adopt_untitled_session_derives_title(self, controller):
        untitled = Session(session_id="20231231_000000")
        controller.begin("20231231_000000")
        controller.adopt(untitled)
        controller.append_turn(create_user_turn("fresh"))
        assert controller.session.title == "fresh"

    def test_session_snapshot_is_a_copy(self, controller):
        controller.begin("20240101_000000")
        snapshot = controller.session
        snapshot.turns.append(create_user_turn("sneaky"))
        assert controller.session.message_count == 0

    def test_flush_reports_store_failure(self, tmp_path, events):
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("")
        controller = AutoSaveController(
            SessionStore(root=blocker, events=events), SessionCatalog(root=blocker, events=events)
        )
        saved = []
        events.session_saved.connect(lambda *args: saved.append(args))

        controller.begin("20240101_000000")
        controller.append_turn(create_user_turn("x"))
        assert controller.flush() is False
        assert saved == [("20240101_000000", False)]
