"""Configuration, limits and directory management for turnstore."""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

TURNSTORE_DIR = Path.home() / ".turnstore"
SESSIONS_DIR = TURNSTORE_DIR / "sessions"

SESSION_FILE_NAME = "session.json"

# Storage limits
MAX_SESSION_FILE_BYTES = 100 * 1024 * 1024
MAX_SESSIONS_IN_LIST = 50

# Request limits (characters unless noted)
MAX_TOOL_RESULT_SIZE = 10000
TOOL_OUTPUT_BUDGET_MULTIPLIER = 5
MAX_USER_MESSAGE_CHARS = 100000
USER_MESSAGE_LOG_THRESHOLD = 10000
MAX_IMAGE_PAYLOAD_CHARS = 2000000

TITLE_MAX_CHARS = 50
DEFAULT_TITLE = "New Conversation"

# Turns inspected when recovering tool results for a continuation
FALLBACK_SCAN_LIMIT = 10

# Models that accept a reasoning block
REASONING_MODEL_MARKERS = ("gpt-5", "o1", "o3")


class Settings(BaseModel):
    """Read-only snapshot of the host's request settings."""

    model_config = ConfigDict(frozen=True)

    model: str = Field(default="gpt-5", description="Model name sent with every request")
    allow_reasoning_summary: bool = False
    reasoning_effort: str = "medium"
    verbosity: str = "low"
    max_tool_result_size: int = MAX_TOOL_RESULT_SIZE

    @property
    def supports_reasoning(self) -> bool:
        name = self.model.lower()
        return any(marker in name for marker in REASONING_MODEL_MARKERS)


def ensure_dirs() -> None:
    """Ensure the turnstore directory structure exists."""
    TURNSTORE_DIR.mkdir(parents=True, exist_ok=True)
    SESSIONS_DIR.mkdir(parents=True, exist_ok=True)
