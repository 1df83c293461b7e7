"""The live conversation: history, continuation token and auto-save wiring.

The API client is external. It calls :meth:`Conversation.prepare_request` to
get a request body, performs the call, then reports back through
:meth:`Conversation.record_response` and, for each executed tool,
:meth:`Conversation.record_tool_result`.
"""

import json
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from turnstore.config import Settings
from turnstore.errors import ProtocolFault, SessionStoreError
from turnstore.history.history import (
    History,
    create_assistant_turn,
    create_tool_call_turn,
    create_tool_turn,
    create_user_turn,
)
from turnstore.history.models import ToolCallRecord
from turnstore.protocol.continuation import resolve_continuation
from turnstore.protocol.payload import (
    build_input_items,
    log_image_payload_size,
    sanitize_user_message,
)
from turnstore.protocol.request import build_request_body
from turnstore.protocol.tool_results import process_tool_result
from turnstore.sessions.autosave import AutoSaveController
from turnstore.sessions.catalog import SessionCatalog
from turnstore.sessions.events import SessionEvents
from turnstore.sessions.models import SessionSummary, generate_session_id
from turnstore.sessions.store import SessionStore

logger = logging.getLogger(__name__)


class Conversation:
    """One active conversation bound to durable storage."""

    def __init__(
        self,
        settings: Settings | None = None,
        root: Path | None = None,
        events: SessionEvents | None = None,
    ):
        self.settings = settings or Settings()
        self.events = events or SessionEvents()
        self.store = SessionStore(root=root, events=self.events)
        self.catalog = SessionCatalog(root=self.store.root, events=self.events)
        self.autosave = AutoSaveController(self.store, self.catalog)
        self.history = History()
        self.continuation_token = ""
        self.session_id = ""

    def _new_session_id(self) -> str:
        base = generate_session_id()
        session_id, n = base, 1
        while session_id == self.session_id or self.store.exists(session_id):
            n += 1
            session_id = f"{base}_{n}"
        return session_id

    def start(self) -> str:
        """Begin auto-saving a fresh session unless one is already running."""
        if not self.session_id:
            self.session_id = self._new_session_id()
            self.autosave.begin(self.session_id)
            self.catalog.refresh()
        return self.session_id

    def start_new(self) -> str:
        """Flush the current session and begin an empty one."""
        if self.session_id:
            self.autosave.end()
        self.clear()
        self.session_id = self._new_session_id()
        self.autosave.begin(self.session_id)
        self.catalog.refresh()
        logger.info("Starting new conversation %s", self.session_id)
        return self.session_id

    def clear(self) -> None:
        self.history.clear()
        self.continuation_token = ""

    def close(self) -> bool:
        saved = self.autosave.end()
        self.session_id = ""
        return saved

    # ── Recording ────────────────────────────────────────────────────

    def record_user_message(self, text: str, images: Sequence[str] = ()) -> None:
        turn = create_user_turn(text, images)
        self.history.append(turn)
        self.autosave.append_turn(turn)
        logger.debug("Added user message to history: %s", text[:100])

    def record_response(
        self,
        response_id: str,
        text: str = "",
        tool_calls: Sequence[dict] = (),
    ) -> None:
        """Record the service's reply and flush the session.

        ``tool_calls`` are the function calls the model requested, each with
        at least a ``call_id`` (or ``id``).
        """
        if response_id:
            self.continuation_token = response_id
            self.autosave.set_continuation_token(response_id)

        if tool_calls:
            call_ids = [str(c.get("call_id") or c.get("id") or "") for c in tool_calls]
            turn = create_tool_call_turn(text, [c for c in call_ids if c], json.dumps(list(tool_calls)))
        else:
            turn = create_assistant_turn(text)

        self.history.append(turn)
        self.autosave.append_turn(turn)
        self.autosave.flush()

    def record_tool_result(
        self,
        call_id: str,
        tool_name: str,
        arguments: str,
        result: str,
        images: Sequence[str] = (),
    ) -> list[str]:
        """Record one tool's output; returns images captured by the tool."""
        processed = process_tool_result(tool_name, result, self.settings.max_tool_result_size)
        captured = list(images) + processed.images

        turn = create_tool_turn(processed.text, call_id, captured)
        self.history.append(turn)
        self.autosave.append_turn(turn)
        self.autosave.append_tool_call(
            ToolCallRecord(tool_name=tool_name, arguments=arguments, result=processed.text)
        )
        return captured

    # ── Requests ─────────────────────────────────────────────────────

    def prepare_request(
        self,
        text: str = "",
        images: Sequence[str] = (),
        instructions: str = "",
        tools: list[dict] | None = None,
    ) -> dict[str, Any] | None:
        """Record ``text`` (if any) and build the next request body.

        An empty ``text`` means resuming after tool execution. Returns None
        when a tool continuation has nothing to send.
        """
        self.start()
        message = sanitize_user_message(text)
        log_image_payload_size(images)

        is_new_user_message = bool(text)
        if message:
            self.record_user_message(message, images)

        try:
            window = resolve_continuation(
                self.history.turns, self.continuation_token, is_new_user_message
            )
        except ProtocolFault as exc:
            logger.error("Cannot build request for session %s: %s", self.session_id, exc)
            return None

        items = build_input_items(
            self.history.turns,
            window,
            images=images,
            is_new_user_message=is_new_user_message,
            max_tool_result_size=self.settings.max_tool_result_size,
        )
        return build_request_body(
            self.settings, instructions, self.continuation_token, items, tools
        )

    # ── Stored sessions ──────────────────────────────────────────────

    def load(self, session_id: str) -> bool:
        """Switch to a stored session, flushing the outgoing one first."""
        if self.session_id:
            # reloading the active session must read what was just recorded
            self.autosave.flush()

        try:
            loaded = self.store.load(session_id).session
        except SessionStoreError as exc:
            logger.warning("Failed to load session %s: %s", session_id, exc)
            return False

        if self.session_id:
            self.autosave.end()

        self.clear()
        self.history.extend(loaded.turns)
        self.continuation_token = loaded.continuation_token
        self.session_id = session_id

        self.autosave.begin(session_id)
        self.autosave.adopt(loaded)
        logger.info("Loaded conversation %s with %d messages", session_id, len(self.history))
        return True

    def delete_session(self, session_id: str) -> bool:
        try:
            self.store.delete(session_id)
        except SessionStoreError as exc:
            logger.error("Failed to delete session %s: %s", session_id, exc)
            return False
        self.catalog.refresh()
        return True

    def list_sessions(self) -> tuple[SessionSummary, ...]:
        return self.catalog.sessions
