"""In-memory conversation history."""

import logging
from collections.abc import Iterable, Iterator, Sequence

from turnstore.history.models import (
    AssistantTurn,
    SystemTurn,
    ToolTurn,
    Turn,
    UserTurn,
)

logger = logging.getLogger(__name__)


def create_user_turn(text: str, images: Sequence[str] = ()) -> UserTurn:
    return UserTurn(text=text, images=list(images))


def create_assistant_turn(text: str) -> AssistantTurn:
    return AssistantTurn(text=text)


def create_tool_call_turn(
    text: str, tool_call_ids: Sequence[str], tool_calls_json: str = ""
) -> AssistantTurn:
    return AssistantTurn(
        text=text, tool_call_ids=list(tool_call_ids), tool_calls_json=tool_calls_json
    )


def create_tool_turn(text: str, tool_call_id: str, images: Sequence[str] = ()) -> ToolTurn:
    return ToolTurn(text=text, tool_call_id=tool_call_id, images=list(images))


def create_system_turn(text: str) -> SystemTurn:
    return SystemTurn(text=text)


class History:
    """Ordered, append-only sequence of turns for the live conversation."""

    def __init__(self, turns: Iterable[Turn] = ()):
        self._turns: list[Turn] = []
        self._known_call_ids: set[str] = set()
        self.extend(turns)

    def append(self, turn: Turn) -> None:
        if isinstance(turn, ToolTurn) and turn.tool_call_id not in self._known_call_ids:
            logger.warning(
                "Tool result %r does not match any earlier assistant tool call",
                turn.tool_call_id,
            )
        if isinstance(turn, AssistantTurn):
            self._known_call_ids.update(turn.tool_call_ids)
        self._turns.append(turn)

    def extend(self, turns: Iterable[Turn]) -> None:
        for turn in turns:
            self.append(turn)

    def clear(self) -> None:
        self._turns.clear()
        self._known_call_ids.clear()

    @property
    def turns(self) -> tuple[Turn, ...]:
        return tuple(self._turns)

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(tuple(self._turns))

    def __getitem__(self, index: int) -> Turn:
        return self._turns[index]
