"""Conversation-related data models."""

from dataclasses import dataclass, field
from typing import Any

from .messages import ConfirmedMessage, SenderSnapshot


@dataclass
class Participant:
    """A user taking part in a conversation."""

    id: int | str
    name: str = ""
    image: str | None = None
    email: str | None = None

    def snapshot(self) -> SenderSnapshot:
        """Denormalized identity stored on outgoing messages."""
        return SenderSnapshot(id=self.id, name=self.name, image=self.image)

    @classmethod
    def from_server(cls, data: dict[str, Any]) -> "Participant":
        return cls(
            id=data.get("id"),
            name=data.get("name") or "",
            image=data.get("image") or data.get("avatar"),
            email=data.get("email"),
        )


@dataclass
class Conversation:
    """A one-to-one conversation with another participant."""

    id: int | str
    other_user: Participant | None = None
    unread_count: int = 0
    last_message: ConfirmedMessage | None = None
    messages: list[ConfirmedMessage] = field(default_factory=list)

    @classmethod
    def from_server(cls, data: dict[str, Any]) -> "Conversation":
        other = data.get("other_user")
        last = data.get("last_message")
        return cls(
            id=data["id"],
            other_user=Participant.from_server(other) if other else None,
            unread_count=int(data.get("unread_count") or 0),
            last_message=ConfirmedMessage.from_server(last) if last else None,
            messages=[ConfirmedMessage.from_server(m) for m in data.get("messages") or []],
        )
