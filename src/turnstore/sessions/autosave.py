"""Auto-save lifecycle for the active conversation."""

import logging
import re
from datetime import datetime, timezone
from enum import Enum

from turnstore.config import DEFAULT_TITLE, TITLE_MAX_CHARS
from turnstore.errors import SessionStoreError
from turnstore.history.models import ToolCallRecord, Turn, UserTurn
from turnstore.sessions.catalog import SessionCatalog
from turnstore.sessions.models import Session
from turnstore.sessions.store import SessionStore

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")

ELLIPSIS = "..."


def derive_title(text: str, max_chars: int = TITLE_MAX_CHARS) -> str:
    """Title from the first user message: truncated, one line, never empty."""
    title = _WHITESPACE.sub(" ", text[:max_chars]).strip()
    if len(text) > max_chars:
        title += ELLIPSIS
    return title or DEFAULT_TITLE


class AutoSaveState(str, Enum):
    INACTIVE = "inactive"
    ACTIVE = "active"


class AutoSaveController:
    """Owns the accumulating Session and flushes it through the store."""

    def __init__(self, store: SessionStore, catalog: SessionCatalog):
        self.store = store
        self.catalog = catalog
        self.state = AutoSaveState.INACTIVE
        self._session: Session | None = None
        self._title_set = False

    @property
    def is_active(self) -> bool:
        return self.state is AutoSaveState.ACTIVE

    @property
    def session_id(self) -> str:
        return self._session.session_id if self._session else ""

    @property
    def session(self) -> Session | None:
        """Snapshot of the accumulating session."""
        return self._session.model_copy(deep=True) if self._session else None

    def begin(self, session_id: str) -> None:
        now = datetime.now(timezone.utc)
        self._session = Session(session_id=session_id, created_at=now, last_modified_at=now)
        self._title_set = False
        self.state = AutoSaveState.ACTIVE
        logger.info("Started auto-save for session %s", session_id)

    def adopt(self, session: Session) -> None:
        """Continue a previously saved session in place of the current one."""
        self._session = session.model_copy(deep=True)
        self._title_set = bool(session.title)
        self.state = AutoSaveState.ACTIVE
        logger.info(
            "Adopted session %s with %d messages and %d tool calls",
            session.session_id,
            session.message_count,
            len(session.tool_calls),
        )

    def append_turn(self, turn: Turn) -> None:
        if not self.is_active or self._session is None:
            return
        self._session.turns.append(turn)
        self._touch()
        if not self._title_set and isinstance(turn, UserTurn) and turn.text:
            self._session.title = derive_title(turn.text)
            self._title_set = True

    def append_tool_call(self, record: ToolCallRecord) -> None:
        if not self.is_active or self._session is None:
            return
        self._session.tool_calls.append(record)
        self._touch()

    def set_continuation_token(self, token: str) -> None:
        if not self.is_active or self._session is None:
            return
        self._session.continuation_token = token or ""
        self._touch()

    def _touch(self) -> None:
        self._session.last_modified_at = datetime.now(timezone.utc)

    def flush(self) -> bool:
        """Save the accumulating session and refresh the catalog."""
        if not self.is_active or self._session is None or not self._session.session_id:
            return False
        if not self._session.turns:
            return True

        try:
            self.store.save(self._session)
        except SessionStoreError as exc:
            logger.error("Auto-save of session %s failed: %s", exc.session_id, exc)
            return False

        self.catalog.refresh()
        return True

    def end(self) -> bool:
        """Final flush, then drop all accumulated state."""
        saved = self.flush() if self.is_active else True
        self._session = None
        self._title_set = False
        self.state = AutoSaveState.INACTIVE
        logger.info("Ended auto-save")
        return saved
