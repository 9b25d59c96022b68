"""Message-related data models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union


def _optional_int(value: Any) -> int | None:
    try:
        return int(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


def utc_now_iso() -> str:
    """Current client time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


class AttachmentType(str, Enum):
    """Server-facing attachment classifier."""

    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    FILE = "file"

    @classmethod
    def from_value(cls, value: str | None) -> "AttachmentType":
        """Parse a server value, degrading to FILE for anything unknown."""
        try:
            return cls(value)
        except ValueError:
            return cls.FILE


@dataclass
class SenderSnapshot:
    """Sender identity captured at send time."""

    id: int | str
    name: str = ""
    image: str | None = None

    @classmethod
    def from_server(cls, data: dict[str, Any]) -> "SenderSnapshot":
        return cls(
            id=data.get("id"),
            name=data.get("name") or "",
            image=data.get("image") or data.get("avatar"),
        )


@dataclass
class AttachmentInfo:
    """An attachment as shown in the message list."""

    path: str  # local preview URI while pending, server path once confirmed
    type: AttachmentType
    name: str | None = None
    size_bytes: int | None = None


@dataclass
class PendingMessage:
    """A message rendered before the server confirmed it."""

    temp_id: int
    sender_id: int | str
    sender: SenderSnapshot
    body: str = ""
    attachment: AttachmentInfo | None = None
    created_at: str = field(default_factory=utc_now_iso)
    is_read: bool = False
    read_at: str | None = None

    @property
    def pending(self) -> bool:
        return True


@dataclass
class ConfirmedMessage:
    """A message the server has stored."""

    id: int | str
    sender_id: int | str
    body: str = ""
    attachment: AttachmentInfo | None = None
    is_read: bool = False
    read_at: str | None = None
    created_at: str | None = None
    sender: SenderSnapshot | None = None
    client_message_id: int | None = None  # temp_id echoed by the server, if it does

    @property
    def pending(self) -> bool:
        return False

    @classmethod
    def from_server(cls, data: dict[str, Any]) -> "ConfirmedMessage":
        """Build from the server JSON shape.

        ``attachment_path`` is passed through untouched; it may be an
        absolute URL or a server-relative storage path.
        """
        if "id" not in data or data["id"] is None:
            raise ValueError("Server message has no id")

        attachment = None
        if data.get("attachment_path"):
            attachment = AttachmentInfo(
                path=data["attachment_path"],
                type=AttachmentType.from_value(data.get("attachment_type")),
                name=data.get("attachment_name"),
                size_bytes=data.get("attachment_size"),
            )

        sender = None
        if isinstance(data.get("sender"), dict):
            sender = SenderSnapshot.from_server(data["sender"])

        return cls(
            id=data["id"],
            sender_id=data.get("sender_id"),
            body=data.get("body") or "",
            attachment=attachment,
            is_read=bool(data.get("is_read", False)),
            read_at=data.get("read_at"),
            created_at=data.get("created_at"),
            sender=sender,
            client_message_id=_optional_int(data.get("client_message_id")),
        )


Message = Union[PendingMessage, ConfirmedMessage]
