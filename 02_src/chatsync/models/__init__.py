"""Core data models for the chat core."""

from .attachments import AudioResult, UploadDescriptor, UploadPayload
from .conversation import Conversation, Participant
from .events import ChatEvent, Topic
from .messages import (
    AttachmentInfo,
    AttachmentType,
    ConfirmedMessage,
    Message,
    PendingMessage,
    SenderSnapshot,
    utc_now_iso,
)

__all__ = [
    # Messages
    "AttachmentInfo",
    "AttachmentType",
    "ConfirmedMessage",
    "Message",
    "PendingMessage",
    "SenderSnapshot",
    "utc_now_iso",
    # Conversations
    "Conversation",
    "Participant",
    # Attachments
    "AudioResult",
    "UploadDescriptor",
    "UploadPayload",
    # Events
    "ChatEvent",
    "Topic",
]
