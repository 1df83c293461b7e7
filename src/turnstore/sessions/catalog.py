"""Cached, sorted listing of stored sessions."""

import logging
from pathlib import Path

from turnstore import config
from turnstore.sessions.events import SessionEvents
from turnstore.sessions.models import SessionSummary
from turnstore.sessions.schema import decode_header
from turnstore.sessions.store import BACKUP_SUFFIX

logger = logging.getLogger(__name__)


class SessionCatalog:
    """Index of stored sessions, newest first, rebuilt by directory scan."""

    def __init__(
        self,
        root: Path | None = None,
        events: SessionEvents | None = None,
        max_sessions: int = config.MAX_SESSIONS_IN_LIST,
    ):
        self.root = root or config.SESSIONS_DIR
        self.events = events or SessionEvents()
        self.max_sessions = max_sessions
        self._sessions: tuple[SessionSummary, ...] = ()

    @property
    def sessions(self) -> tuple[SessionSummary, ...]:
        return self._sessions

    def get(self, session_id: str) -> SessionSummary | None:
        for summary in self._sessions:
            if summary.session_id == session_id:
                return summary
        return None

    def refresh(self) -> tuple[SessionSummary, ...]:
        """Rescan the storage root and replace the cached listing."""
        found: list[SessionSummary] = []
        if self.root.is_dir():
            for directory in self.root.iterdir():
                if directory.is_dir():
                    summary = self._read_summary(directory)
                    if summary:
                        found.append(summary)

        found.sort(key=lambda s: s.last_modified_at, reverse=True)
        self._sessions = tuple(found[: self.max_sessions])
        logger.info("Found %d sessions", len(self._sessions))
        self.events.list_changed.emit()
        return self._sessions

    def _read_summary(self, directory: Path) -> SessionSummary | None:
        primary = directory / config.SESSION_FILE_NAME
        backup = primary.with_name(primary.name + BACKUP_SUFFIX)
        header = None
        for path in (primary, backup):
            try:
                if not path.is_file() or path.stat().st_size > config.MAX_SESSION_FILE_BYTES:
                    continue
                header = decode_header(path.read_bytes())
                break
            except (OSError, ValueError) as exc:
                logger.debug("Skipping unreadable session file %s: %s", path, exc)
        if header is None:
            return None

        return SessionSummary(
            session_id=directory.name,
            title=header.title,
            created_at=header.created_at,
            last_modified_at=header.last_modified_at,
            message_count=header.message_count,
            file_path=path,
        )
