"""Decide which part of the history has to be resent on the next request.

Once the remote service has handed back a continuation token it keeps
everything from earlier exchanges, so only turns it has not seen yet are
sent again. Tool results are sent as discrete function-output items.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from turnstore.config import FALLBACK_SCAN_LIMIT
from turnstore.errors import ProtocolFault
from turnstore.history.models import AssistantTurn, ToolTurn, Turn, UserTurn

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Continuation:
    """Resolved request window.

    ``start_index`` is the first turn to resend verbatim (inclusive);
    ``tool_results`` are sent as function outputs regardless of the window.
    """

    start_index: int
    tool_results: tuple[ToolTurn, ...] = field(default_factory=tuple)


def _invokes_tools(turn: Turn) -> bool:
    return isinstance(turn, AssistantTurn) and turn.invokes_tools


def _last_tool_invocation(turns: Sequence[Turn], lower: int = 0) -> int | None:
    for i in range(len(turns) - 1, lower - 1, -1):
        if _invokes_tools(turns[i]):
            return i
    return None


def _tool_run_before(turns: Sequence[Turn], end: int, lower: int = 0) -> list[ToolTurn]:
    """Contiguous tool turns ending just before ``end``, in history order."""
    run: list[ToolTurn] = []
    i = end - 1
    while i >= lower and isinstance(turns[i], ToolTurn):
        run.append(turns[i])
        i -= 1
    run.reverse()
    return run


def _resolve_new_message(turns: Sequence[Turn]) -> Continuation:
    start = len(turns)
    while start > 0 and isinstance(turns[start - 1], UserTurn):
        start -= 1

    if start == len(turns):
        logger.warning("New user message requested but history does not end with a user turn")
        return Continuation(start_index=start)

    # A fresh message that interrupts a tool continuation still owes the
    # service the outputs for the calls it requested.
    pending = _tool_run_before(turns, start)
    anchor = start - len(pending) - 1
    if pending and anchor >= 0 and _invokes_tools(turns[anchor]):
        logger.info("Sending %d outstanding tool result(s) with the new message", len(pending))
        return Continuation(start_index=start, tool_results=tuple(pending))

    return Continuation(start_index=start)


def _fallback_tool_results(turns: Sequence[Turn]) -> list[ToolTurn]:
    lower = max(0, len(turns) - FALLBACK_SCAN_LIMIT)
    anchor = _last_tool_invocation(turns, lower)
    end = anchor if anchor is not None else len(turns)
    return _tool_run_before(turns, end, lower)


def _resolve_tool_resumption(turns: Sequence[Turn]) -> Continuation:
    start = len(turns)
    results: list[ToolTurn] = []

    anchor = _last_tool_invocation(turns)
    if anchor is not None:
        for j in range(anchor + 1, len(turns)):
            turn = turns[j]
            if isinstance(turn, ToolTurn):
                results.append(turn)
            elif isinstance(turn, UserTurn):
                start = j
                break
        _log_coverage(turns[anchor], results)

    if not results:
        results = _fallback_tool_results(turns)
        if results:
            logger.warning(
                "Recovered %d tool result(s) from the last %d turns",
                len(results),
                FALLBACK_SCAN_LIMIT,
            )

    if not results:
        raise ProtocolFault(
            "Tool continuation has no tool results to send; the request would be empty"
        )

    return Continuation(start_index=start, tool_results=tuple(results))


def _log_coverage(assistant: AssistantTurn, results: Sequence[ToolTurn]) -> None:
    answered = {r.tool_call_id for r in results}
    for call_id in assistant.tool_call_ids:
        logger.debug("Tool call %s: %s", call_id, "found" if call_id in answered else "missing")


def _clamp(start_index: int, length: int) -> int:
    if 0 <= start_index <= length:
        return start_index
    logger.warning("Start index %d out of range for %d turns, resetting to 0", start_index, length)
    return 0


def resolve_continuation(
    turns: Sequence[Turn],
    continuation_token: str | None,
    is_new_user_message: bool,
) -> Continuation:
    """Compute the request window for the next call.

    Raises:
        ProtocolFault: when resuming after tool calls with nothing to send.
    """
    if not continuation_token:
        return Continuation(start_index=0)

    if is_new_user_message:
        result = _resolve_new_message(turns)
    else:
        result = _resolve_tool_resumption(turns)

    start = _clamp(result.start_index, len(turns))
    logger.debug(
        "Continuation window starts at %d of %d with %d tool result(s)",
        start,
        len(turns),
        len(result.tool_results),
    )
    if start != result.start_index:
        return Continuation(start_index=start, tool_results=result.tool_results)
    return result
