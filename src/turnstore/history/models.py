"""Conversation turn models.

Turns are a tagged union on ``role``. Each variant only carries the fields
that make sense for it, so a tool result can't hold ``tool_call_ids`` and a
user turn can't claim to answer a tool call.
"""

import json
from datetime import datetime, timezone
from typing import Annotated, Literal, Union

from pydantic import AfterValidator, BaseModel, Field


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # Timestamps written without an offset are read as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


Timestamp = Annotated[datetime, AfterValidator(_as_utc)]


class UserTurn(BaseModel):
    """A message typed by the user, optionally with attached images."""

    role: Literal["user"] = "user"
    text: str = ""
    images: list[str] = Field(default_factory=list, description="Base64-encoded image payloads")
    timestamp: Timestamp = Field(default_factory=_now)


class AssistantTurn(BaseModel):
    """A model reply. Carries tool-call metadata when the model invoked tools."""

    role: Literal["assistant"] = "assistant"
    text: str = ""
    tool_call_ids: list[str] = Field(default_factory=list)
    tool_calls_json: str = Field(default="", description="Serialized tool invocations, kept for display")
    timestamp: Timestamp = Field(default_factory=_now)

    @property
    def invokes_tools(self) -> bool:
        return bool(self.tool_call_ids or self.tool_calls_json)

    def tool_calls(self) -> list[dict]:
        """Return the tool invocations for display.

        Parses ``tool_calls_json`` when it holds a non-empty list, otherwise
        rebuilds placeholder entries from ``tool_call_ids``.
        """
        if self.tool_calls_json:
            try:
                parsed = json.loads(self.tool_calls_json)
            except ValueError:
                parsed = None
            if isinstance(parsed, list) and parsed:
                return parsed
        return [
            {"id": call_id, "type": "function", "name": "unknown", "arguments": "{}"}
            for call_id in self.tool_call_ids
        ]


class SystemTurn(BaseModel):
    role: Literal["system"] = "system"
    text: str = ""
    timestamp: Timestamp = Field(default_factory=_now)


class ToolTurn(BaseModel):
    """The echoed output of one tool invocation."""

    role: Literal["tool"] = "tool"
    text: str = ""
    tool_call_id: str
    images: list[str] = Field(default_factory=list)
    timestamp: Timestamp = Field(default_factory=_now)


Turn = Annotated[
    Union[UserTurn, AssistantTurn, SystemTurn, ToolTurn],
    Field(discriminator="role"),
]


class ToolCallRecord(BaseModel):
    """Audit entry for a tool call, used to rebuild the UI."""

    tool_name: str
    arguments: str = ""
    result: str = ""
    timestamp: Timestamp = Field(default_factory=_now)
