"""Assemble the input items for the next request."""

import logging
from collections.abc import Sequence

from turnstore.config import (
    MAX_IMAGE_PAYLOAD_CHARS,
    MAX_TOOL_RESULT_SIZE,
    MAX_USER_MESSAGE_CHARS,
    TOOL_OUTPUT_BUDGET_MULTIPLIER,
    USER_MESSAGE_LOG_THRESHOLD,
)
from turnstore.history.models import AssistantTurn, ToolTurn, Turn, UserTurn
from turnstore.protocol.continuation import Continuation
from turnstore.protocol.items import (
    ContentPart,
    FunctionCallOutputItem,
    InputImagePart,
    InputItem,
    InputTextPart,
    MessageItem,
)

logger = logging.getLogger(__name__)

IMAGE_PROMPT_TEXT = "Here are the images captured by the previous tool call."
TRUNCATION_NOTICE = "\n\n[Message truncated due to size limits]"

JPEG_BASE64_PREFIX = "/9j/"


def image_mime_type(data: str) -> str:
    """Best-effort MIME type for a base64 image payload."""
    return "image/jpeg" if data.startswith(JPEG_BASE64_PREFIX) else "image/png"


def image_data_url(data: str) -> str:
    return f"data:{image_mime_type(data)};base64,{data}"


def _image_parts(images: Sequence[str]) -> list[ContentPart]:
    return [InputImagePart(image_url=image_data_url(data)) for data in images]


def sanitize_user_message(text: str) -> str:
    """Cap a user message at MAX_USER_MESSAGE_CHARS, marking the cut."""
    size = len(text)
    if size > USER_MESSAGE_LOG_THRESHOLD:
        logger.info("User message size: %d characters", size)
    if size > MAX_USER_MESSAGE_CHARS:
        logger.warning(
            "User message is %d characters, truncating to %d", size, MAX_USER_MESSAGE_CHARS
        )
        return text[:MAX_USER_MESSAGE_CHARS] + TRUNCATION_NOTICE
    return text


def log_image_payload_size(images: Sequence[str]) -> int:
    """Log the total size of attached images and return it."""
    total = sum(len(data) for data in images)
    if not images:
        return total
    if total > MAX_IMAGE_PAYLOAD_CHARS:
        logger.warning(
            "Image data totals %d characters; large payloads may time out", total
        )
    else:
        logger.info("Including %d image(s), %d characters total", len(images), total)
    return total


def function_call_outputs(
    tool_results: Sequence[ToolTurn], max_tool_result_size: int = MAX_TOOL_RESULT_SIZE
) -> list[FunctionCallOutputItem]:
    """One output item per tool result, dropping those that overflow the budget.

    A result that would push the running total past the budget is skipped
    whole, never cut, so every included output stays well-formed.
    """
    budget = max_tool_result_size * TOOL_OUTPUT_BUDGET_MULTIPLIER
    total = 0
    items: list[FunctionCallOutputItem] = []
    for result in tool_results:
        size = len(result.text.encode("utf-8"))
        if total + size > budget:
            logger.warning(
                "Dropping tool result %s (%d bytes); %d of %d bytes already used",
                result.tool_call_id,
                size,
                total,
                budget,
            )
            continue
        items.append(FunctionCallOutputItem(call_id=result.tool_call_id, output=result.text))
        total += size
        logger.debug("Added output for call %s (%d bytes, total %d)", result.tool_call_id, size, total)
    return items


def image_message(images: Sequence[str], prompt: str = IMAGE_PROMPT_TEXT) -> MessageItem:
    parts: list[ContentPart] = [InputTextPart(text=prompt)]
    parts.extend(_image_parts(images))
    return MessageItem(type="message", role="user", content=parts)


def _last_user_index(turns: Sequence[Turn], start: int) -> int | None:
    for i in range(len(turns) - 1, start - 1, -1):
        if isinstance(turns[i], UserTurn):
            return i
    return None


def build_input_items(
    turns: Sequence[Turn],
    continuation: Continuation,
    *,
    images: Sequence[str] = (),
    is_new_user_message: bool = True,
    max_tool_result_size: int = MAX_TOOL_RESULT_SIZE,
) -> list[InputItem]:
    """Render the resolved window into request input items.

    Images ride on the newest user turn of the window when this call carries
    a new user message. Otherwise (a tool continuation, or no user turn left
    in the window) they are sent as one synthetic user message.
    """
    items: list[InputItem] = list(function_call_outputs(continuation.tool_results, max_tool_result_size))

    image_target = None
    if images and is_new_user_message:
        image_target = _last_user_index(turns, continuation.start_index)
    if images and image_target is None:
        items.append(image_message(images))
        logger.debug("Added synthetic message with %d image(s)", len(images))

    for index in range(continuation.start_index, len(turns)):
        turn = turns[index]
        if isinstance(turn, ToolTurn):
            continue
        if isinstance(turn, AssistantTurn) and turn.invokes_tools:
            continue
        if index == image_target:
            parts: list[ContentPart] = [InputTextPart(text=turn.text)]
            parts.extend(_image_parts(images))
            items.append(MessageItem(role=turn.role, content=parts))
            continue
        items.append(MessageItem(role=turn.role, content=turn.text))

    if not items:
        logger.info("Request has no input items; relying on the continuation token")
    return items
