"""On-disk session document and its versioned decoder.

The document keeps a flat per-message layout (``role``, ``content``,
``images_base64``, ...) and a top-level ``message_count`` so listings can be
built from the header fields alone.
"""

import json
import logging
from collections.abc import Callable
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from turnstore.history.models import (
    AssistantTurn,
    SystemTurn,
    Timestamp,
    ToolCallRecord,
    ToolTurn,
    Turn,
    UserTurn,
    _now,
)
from turnstore.sessions.models import CURRENT_SCHEMA_VERSION, Session

logger = logging.getLogger(__name__)


class TurnRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    role: Literal["user", "assistant", "system", "tool"]
    content: str = ""
    images_base64: list[str] = Field(default_factory=list)
    tool_call_ids: list[str] = Field(default_factory=list)
    tool_call_id: str = ""
    tool_calls_json: str = ""
    timestamp: Timestamp = Field(default_factory=_now)

    @classmethod
    def from_turn(cls, turn: Turn) -> "TurnRecord":
        record = cls(role=turn.role, content=turn.text, timestamp=turn.timestamp)
        if isinstance(turn, (UserTurn, ToolTurn)):
            record.images_base64 = list(turn.images)
        if isinstance(turn, AssistantTurn):
            record.tool_call_ids = list(turn.tool_call_ids)
            record.tool_calls_json = turn.tool_calls_json
        if isinstance(turn, ToolTurn):
            record.tool_call_id = turn.tool_call_id
        return record

    def to_turn(self) -> Turn:
        if self.role == "user":
            return UserTurn(text=self.content, images=self.images_base64, timestamp=self.timestamp)
        if self.role == "assistant":
            return AssistantTurn(
                text=self.content,
                tool_call_ids=self.tool_call_ids,
                tool_calls_json=self.tool_calls_json,
                timestamp=self.timestamp,
            )
        if self.role == "tool":
            return ToolTurn(
                text=self.content,
                tool_call_id=self.tool_call_id,
                images=self.images_base64,
                timestamp=self.timestamp,
            )
        return SystemTurn(text=self.content, timestamp=self.timestamp)


class SessionHeader(BaseModel):
    """Listing fields only; the message list is never validated."""

    model_config = ConfigDict(extra="ignore")

    schema_version: int = CURRENT_SCHEMA_VERSION
    title: str = ""
    created_at: Timestamp
    last_modified_at: Timestamp
    message_count: int = 0


class SessionDocument(SessionHeader):
    session_id: str
    previous_response_id: str = ""
    messages: list[TurnRecord] = Field(default_factory=list)
    tool_calls: list[ToolCallRecord] = Field(default_factory=list)

    @classmethod
    def from_session(cls, session: Session) -> "SessionDocument":
        return cls(
            schema_version=CURRENT_SCHEMA_VERSION,
            session_id=session.session_id,
            title=session.title,
            created_at=session.created_at,
            last_modified_at=session.last_modified_at,
            previous_response_id=session.continuation_token,
            message_count=session.message_count,
            messages=[TurnRecord.from_turn(t) for t in session.turns],
            tool_calls=list(session.tool_calls),
        )

    def to_session(self) -> Session:
        return Session(
            schema_version=self.schema_version,
            session_id=self.session_id,
            title=self.title,
            created_at=self.created_at,
            last_modified_at=self.last_modified_at,
            continuation_token=self.previous_response_id,
            turns=[m.to_turn() for m in self.messages],
            tool_calls=self.tool_calls,
        )


def encode_session(session: Session) -> str:
    return SessionDocument.from_session(session).model_dump_json(indent=2)


def _decode_v1(data: dict) -> Session:
    return SessionDocument.model_validate(data).to_session()


_DECODERS: dict[int, Callable[[dict], Session]] = {
    1: _decode_v1,
}


def decode_session(raw: str | bytes) -> Session:
    """Parse a session document.

    Documents from a newer schema are read with the newest decoder we have;
    fields it doesn't know are ignored.

    Raises:
        ValueError: the text is not a valid session document (pydantic's
            ValidationError is a ValueError subclass).
    """
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("Session document must be a JSON object")

    version = data.get("schema_version", CURRENT_SCHEMA_VERSION)
    if not isinstance(version, int) or isinstance(version, bool):
        raise ValueError(f"Invalid schema_version: {version!r}")

    decoder = _DECODERS.get(min(max(version, 1), CURRENT_SCHEMA_VERSION))
    if decoder is None:
        raise ValueError(f"No decoder for schema version {version}")
    return decoder(data)


def decode_header(raw: str | bytes) -> SessionHeader:
    return SessionHeader.model_validate_json(raw)
