"""File-backed session storage with atomic writes and backup recovery.

Layout: ``<root>/<session_id>/session.json``. A save writes
``session.json.tmp`` first, moves the current document to
``session.json.backup`` and then renames the temp file into place, so a
reader only ever sees a complete document.
"""

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path

from turnstore import config
from turnstore.errors import (
    SessionCorruptError,
    SessionIOError,
    SessionNotFoundError,
    SessionTooLargeError,
    SessionValidationError,
)
from turnstore.sessions.events import SessionEvents
from turnstore.sessions.models import CURRENT_SCHEMA_VERSION, Session
from turnstore.sessions.schema import decode_session, encode_session

logger = logging.getLogger(__name__)

TEMP_SUFFIX = ".tmp"
BACKUP_SUFFIX = ".backup"


@dataclass
class LoadResult:
    session: Session
    recovered: bool = False


class SessionStore:
    """Directory-per-session JSON storage."""

    def __init__(self, root: Path | None = None, events: SessionEvents | None = None):
        self.root = root or config.SESSIONS_DIR
        self.events = events or SessionEvents()

    def session_dir(self, session_id: str) -> Path:
        return self.root / session_id

    def session_path(self, session_id: str) -> Path:
        return self.session_dir(session_id) / config.SESSION_FILE_NAME

    def backup_path(self, session_id: str) -> Path:
        path = self.session_path(session_id)
        return path.with_name(path.name + BACKUP_SUFFIX)

    def exists(self, session_id: str) -> bool:
        return bool(session_id) and (
            self.session_path(session_id).is_file() or self.backup_path(session_id).is_file()
        )

    # ── Save ─────────────────────────────────────────────────────────

    def save(self, session: Session) -> bool:
        """Persist a session atomically.

        A session with no turns is a no-op success: nothing is written and
        no event is emitted.

        Raises:
            SessionValidationError: the session id is empty.
            SessionIOError: the document could not be written; the previous
                document is restored from backup first when possible.
        """
        session_id = session.session_id
        if not session_id:
            logger.error("Cannot save session with empty id")
            self.events.session_saved.emit(session_id, False)
            raise SessionValidationError(session_id, "Cannot save session with empty id")

        if not session.turns:
            logger.debug("Skipping save of empty session %s", session_id)
            return True

        try:
            self._write(session)
        except SessionIOError:
            self.events.session_saved.emit(session_id, False)
            raise

        logger.info("Saved session %s with %d messages", session_id, session.message_count)
        self.events.session_saved.emit(session_id, True)
        return True

    def _write(self, session: Session) -> None:
        session_id = session.session_id
        path = self.session_path(session_id)
        temp = path.with_name(path.name + TEMP_SUFFIX)
        backup = self.backup_path(session_id)

        content = encode_session(session)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            temp.write_text(content, encoding="utf-8")
        except OSError as exc:
            logger.error("Failed to write temp session file %s: %s", temp, exc)
            temp.unlink(missing_ok=True)
            raise SessionIOError(session_id, f"Failed to write {temp}: {exc}") from exc

        try:
            if path.exists():
                os.replace(path, backup)
        except OSError as exc:
            logger.error("Failed to back up %s: %s", path, exc)
            temp.unlink(missing_ok=True)
            raise SessionIOError(session_id, f"Failed to back up {path}: {exc}") from exc

        try:
            os.replace(temp, path)
        except OSError as exc:
            logger.error("Failed to move %s into place: %s", temp, exc)
            self._restore_backup(path, backup)
            raise SessionIOError(session_id, f"Failed to replace {path}: {exc}") from exc

    def _restore_backup(self, path: Path, backup: Path) -> None:
        if path.exists() or not backup.exists():
            return
        try:
            os.replace(backup, path)
            logger.warning("Restored %s from backup", path)
        except OSError as exc:
            logger.error("Failed to restore backup %s: %s", backup, exc)

    # ── Load ─────────────────────────────────────────────────────────

    def load(self, session_id: str) -> LoadResult:
        """Load a session, falling back once to its backup if it won't parse.

        Raises:
            SessionNotFoundError: no document for this id.
            SessionTooLargeError: the document exceeds MAX_SESSION_FILE_BYTES.
            SessionCorruptError: neither the document nor its backup parse.
            SessionIOError: the document could not be read.
        """
        try:
            result = self._load(session_id)
        except (SessionNotFoundError, SessionTooLargeError, SessionCorruptError, SessionIOError):
            self.events.session_loaded.emit(session_id, False)
            raise

        if result.session.schema_version > CURRENT_SCHEMA_VERSION:
            logger.warning(
                "Session %s uses newer schema v%d (current v%d); some fields may not load",
                session_id,
                result.session.schema_version,
                CURRENT_SCHEMA_VERSION,
            )
        logger.info("Loaded session %s with %d messages", session_id, result.session.message_count)
        self.events.session_loaded.emit(session_id, True)
        return result

    def _load(self, session_id: str) -> LoadResult:
        if not session_id:
            raise SessionNotFoundError(session_id, "Session id is empty")

        path = self.session_path(session_id)
        backup = self.backup_path(session_id)
        if path.is_file():
            raw = self._read(session_id, path)
            try:
                return LoadResult(session=decode_session(raw))
            except ValueError as exc:
                logger.error("Failed to parse session %s: %s", path, exc)
        elif backup.is_file():
            # interrupted save: primary already moved aside, temp not yet renamed
            logger.warning("Session file missing for %s, only a backup remains", session_id)
        else:
            logger.warning("Session file not found for %r", session_id)
            raise SessionNotFoundError(session_id, f"Session {session_id} not found")

        if not backup.is_file():
            raise SessionCorruptError(session_id, f"Session {session_id} is corrupt and has no backup")

        logger.info("Attempting recovery of %s from backup", session_id)
        raw = self._read(session_id, backup)
        try:
            session = decode_session(raw)
        except ValueError as exc:
            logger.error("Backup for session %s is also unreadable: %s", session_id, exc)
            raise SessionCorruptError(
                session_id, f"Session {session_id} and its backup are corrupt"
            ) from exc

        logger.warning("Recovered session %s from backup", session_id)
        return LoadResult(session=session, recovered=True)

    def _read(self, session_id: str, path: Path) -> bytes:
        try:
            size = path.stat().st_size
            if size > config.MAX_SESSION_FILE_BYTES:
                logger.error(
                    "Session file too large (%d MB), refusing to load: %s",
                    size // (1024 * 1024),
                    path,
                )
                raise SessionTooLargeError(session_id, size, config.MAX_SESSION_FILE_BYTES)
            return path.read_bytes()
        except OSError as exc:
            logger.error("Could not read session file %s: %s", path, exc)
            raise SessionIOError(session_id, f"Could not read {path}: {exc}") from exc

    # ── Delete ───────────────────────────────────────────────────────

    def delete(self, session_id: str) -> bool:
        """Remove a session's directory. Deleting a missing session succeeds."""
        if not session_id:
            raise SessionValidationError(session_id, "Cannot delete session with empty id")

        directory = self.session_dir(session_id)
        if not directory.exists():
            return True

        try:
            shutil.rmtree(directory)
        except OSError as exc:
            logger.error("Failed to delete session %s: %s", session_id, exc)
            raise SessionIOError(session_id, f"Failed to delete {directory}: {exc}") from exc

        logger.info("Deleted session %s", session_id)
        return True
