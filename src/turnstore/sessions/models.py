"""Session data models for persisted conversations."""

from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from turnstore.history.models import Timestamp, ToolCallRecord, Turn, _now

CURRENT_SCHEMA_VERSION = 1

SESSION_ID_FORMAT = "%Y%m%d_%H%M%S"


def generate_session_id(now: datetime | None = None) -> str:
    """Sortable, timestamp-derived session id, e.g. ``20260101_143052``."""
    return (now or datetime.now()).strftime(SESSION_ID_FORMAT)


class SessionSummary(BaseModel):
    """Listing entry for a stored session."""

    model_config = ConfigDict(frozen=True)

    session_id: str
    title: str
    created_at: Timestamp
    last_modified_at: Timestamp
    message_count: int
    file_path: Path


class Session(BaseModel):
    """The durable state of one conversation."""

    schema_version: int = CURRENT_SCHEMA_VERSION
    session_id: str
    title: str = ""
    created_at: Timestamp = Field(default_factory=_now)
    last_modified_at: Timestamp = Field(default_factory=_now)
    continuation_token: str = Field(default="", description="previous_response_id from the last exchange")
    turns: list[Turn] = Field(default_factory=list)
    tool_calls: list[ToolCallRecord] = Field(default_factory=list)

    @property
    def message_count(self) -> int:
        return len(self.turns)

    def summary(self, file_path: Path) -> SessionSummary:
        return SessionSummary(
            session_id=self.session_id,
            title=self.title,
            created_at=self.created_at,
            last_modified_at=self.last_modified_at,
            message_count=self.message_count,
            file_path=file_path,
        )
