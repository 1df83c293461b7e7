"""Turn raw tool output into history text plus any captured images."""

import logging
from dataclasses import dataclass, field

from turnstore.config import MAX_TOOL_RESULT_SIZE

logger = logging.getLogger(__name__)

SCREENSHOT_TOOL = "viewport_screenshot"
IMAGE_SEPARATOR = "\n__IMAGE_BASE64__\n"
BASE64_IMAGE_PREFIXES = ("iVBORw0KGgo", "/9j/")


@dataclass
class ProcessedToolResult:
    text: str
    images: list[str] = field(default_factory=list)


def process_tool_result(
    tool_name: str, result: str, max_size: int = MAX_TOOL_RESULT_SIZE
) -> ProcessedToolResult:
    """Split screenshots out of a tool result and cap what goes into history.

    Screenshot results are ``<metadata json><IMAGE_SEPARATOR><base64>``; a
    result without the separator is treated as the image itself.
    """
    processed = ProcessedToolResult(text=result)
    is_screenshot = tool_name == SCREENSHOT_TOOL

    if is_screenshot and result:
        metadata, sep, image = result.partition(IMAGE_SEPARATOR)
        if sep:
            if image:
                processed.images.append(image)
            processed.text = metadata
        else:
            processed.images.append(result)

    if len(processed.text) > max_size:
        if is_screenshot and processed.text.startswith(BASE64_IMAGE_PREFIXES):
            processed.text = (
                "Screenshot captured successfully. [Base64 image data omitted from history; "
                f"the image can be viewed in the UI. Length: {len(result)} characters]"
            )
            logger.warning("Replaced %d-character screenshot result with a placeholder", len(result))
        else:
            processed.text = (
                processed.text[:max_size]
                + f"\n\n[Result truncated - original length: {len(result)} characters.]"
            )
            logger.warning("Truncated %d-character result from %s", len(result), tool_name)

    return processed
