"""EventBus data models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class Topic(str, Enum):
    """EventBus topics."""

    MESSAGES_CHANGED = "messages_changed"
    MESSAGES_FETCHED = "messages_fetched"
    MESSAGES_RECEIVED = "messages_received"
    OPEN_CHAT = "open_chat"
    UNREAD_COUNT = "unread_count"
    RECORDING_TICK = "recording_tick"


@dataclass
class ChatEvent:
    """A notification exchanged through the EventBus."""

    topic: Topic
    payload: dict  # varies by topic
    source: str  # component that published
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: str = ""
