"""Build the JSON request body around the assembled input items."""

import logging
from typing import Any

from turnstore.config import Settings
from turnstore.protocol.items import InputItem, dump_items

logger = logging.getLogger(__name__)


def build_request_body(
    settings: Settings,
    instructions: str,
    continuation_token: str | None,
    items: list[InputItem],
    tools: list[dict] | None = None,
) -> dict[str, Any]:
    """Return the request body dict ready for JSON encoding."""
    body: dict[str, Any] = {"model": settings.model}

    if settings.supports_reasoning and settings.reasoning_effort:
        reasoning = {"effort": settings.reasoning_effort}
        if settings.allow_reasoning_summary:
            reasoning["summary"] = "auto"
        body["reasoning"] = reasoning

    body["instructions"] = instructions
    body["text"] = {"verbosity": settings.verbosity}
    body["stream"] = False
    body["truncation"] = "auto"

    if continuation_token:
        body["previous_response_id"] = continuation_token

    body["input"] = dump_items(items)
    if not items and continuation_token:
        logger.warning("Request carries previous_response_id but an empty input array")

    if tools:
        body["tools"] = tools
    return body
