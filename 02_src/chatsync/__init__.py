"""Chat message synchronization core."""

from .api import ChatApi, IChatApi
from .attachments import AttachmentResolver
from .audio import AudioRecordingPipeline, IMicrophone, RecordingState
from .config import ChatConfig
from .conversations import ConversationDirectory, UnreadCountPoller
from .errors import (
    ChatApiError,
    ChatError,
    DeleteError,
    PermissionDeniedError,
    RecordingError,
    SendError,
)
from .event_bus import EventBus, IEventBus
from .models import (
    AttachmentInfo,
    AttachmentType,
    AudioResult,
    ChatEvent,
    ConfirmedMessage,
    Conversation,
    Message,
    Participant,
    PendingMessage,
    SenderSnapshot,
    Topic,
    UploadDescriptor,
    UploadPayload,
)
from .send import ConversationSendController
from .session import ChatSession
from .sync import MessageSyncEngine, OptimisticMessageTracker, ReadReceiptTracker

__all__ = [
    # Session
    "ChatSession",
    "ChatConfig",
    # Models
    "AttachmentInfo",
    "AttachmentType",
    "AudioResult",
    "ChatEvent",
    "ConfirmedMessage",
    "Conversation",
    "Message",
    "Participant",
    "PendingMessage",
    "SenderSnapshot",
    "Topic",
    "UploadDescriptor",
    "UploadPayload",
    # Errors
    "ChatError",
    "ChatApiError",
    "SendError",
    "DeleteError",
    "RecordingError",
    "PermissionDeniedError",
    # Components
    "IChatApi",
    "ChatApi",
    "IEventBus",
    "EventBus",
    "AttachmentResolver",
    "IMicrophone",
    "AudioRecordingPipeline",
    "RecordingState",
    "OptimisticMessageTracker",
    "MessageSyncEngine",
    "ReadReceiptTracker",
    "ConversationSendController",
    "ConversationDirectory",
    "UnreadCountPoller",
]
