"""Project-level configuration and path helpers."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Union

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_DIR = PROJECT_ROOT / "03_data"
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_DB_PATH = DATA_DIR / "chatsync_dev.db"
DEFAULT_LOG_PATH = LOGS_DIR / "chatsync.log"


PathLike = Union[str, Path]


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve DATABASE_URL to an absolute path."""
    if not env_value:
        return DEFAULT_DB_PATH

    if str(env_value) == ":memory:":
        return ":memory:"

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {value!r}") from e


@dataclass
class ChatConfig:
    """Client settings for the chat core."""

    base_url: str = "http://localhost:8000"
    api_prefix: str = "/api/mobile"
    poll_interval: float = 3.0  # open conversation
    compact_poll_interval: float = 5.0  # minimized / floating window
    unread_poll_interval: float = 30.0  # chat-entry badge
    request_timeout: float = 15.0
    min_recording_seconds: float = 1.0
    recording_tick: float = 1.0

    @property
    def api_url(self) -> str:
        """Base URL joined with the API prefix."""
        return self.base_url.rstrip("/") + "/" + self.api_prefix.strip("/")

    @classmethod
    def from_env(cls) -> "ChatConfig":
        """Build config from CHAT_* environment variables."""
        defaults = cls()
        return cls(
            base_url=os.getenv("CHAT_API_URL", defaults.base_url),
            api_prefix=os.getenv("CHAT_API_PREFIX", defaults.api_prefix),
            poll_interval=_env_float("CHAT_POLL_INTERVAL", defaults.poll_interval),
            compact_poll_interval=_env_float(
                "CHAT_COMPACT_POLL_INTERVAL", defaults.compact_poll_interval
            ),
            unread_poll_interval=_env_float(
                "CHAT_UNREAD_POLL_INTERVAL", defaults.unread_poll_interval
            ),
            request_timeout=_env_float(
                "CHAT_REQUEST_TIMEOUT", defaults.request_timeout
            ),
        )
