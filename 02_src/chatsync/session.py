"""ChatSession: lifecycle of one open conversation and its components."""

from typing import Any, Mapping

from .api import IChatApi
from .attachments import AttachmentResolver
from .audio import AudioRecordingPipeline, IMicrophone
from .config import ChatConfig
from .event_bus import EventBus, IEventBus
from .logging_config import get_logger
from .models import (
    ChatEvent,
    ConfirmedMessage,
    Conversation,
    Message,
    Participant,
    Topic,
    UploadDescriptor,
)
from .send import ConversationSendController
from .sync import MessageSyncEngine, OptimisticMessageTracker, ReadReceiptTracker

logger = get_logger(__name__)


class ChatSession:
    """Owns the engine, tracker, controller and recorder for a conversation.

    Components are built once, in dependency order, and share one
    EventBus. Other parts of the app ask the session to open a chat by
    publishing ``Topic.OPEN_CHAT`` with ``{"user_id": ...}``.
    """

    def __init__(
        self,
        api: IChatApi,
        current_user: Participant,
        config: ChatConfig | None = None,
        microphone: IMicrophone | None = None,
        event_bus: IEventBus | None = None,
    ):
        self._api = api
        self._current_user = current_user
        self._config = config or ChatConfig()

        self._event_bus = event_bus or EventBus()
        self._tracker = OptimisticMessageTracker()
        self._engine = MessageSyncEngine(
            api=api,
            tracker=self._tracker,
            event_bus=self._event_bus,
            current_user_id=current_user.id,
            poll_interval=self._config.poll_interval,
        )
        self._read_receipts = ReadReceiptTracker(
            api=api,
            engine=self._engine,
            event_bus=self._event_bus,
            current_user_id=current_user.id,
        )
        self._controller = ConversationSendController(
            api=api,
            engine=self._engine,
            tracker=self._tracker,
            read_receipts=self._read_receipts,
            sender=current_user,
            resolver=AttachmentResolver(),
        )
        self._recorder = (
            AudioRecordingPipeline(
                microphone,
                event_bus=self._event_bus,
                min_duration=self._config.min_recording_seconds,
                tick_interval=self._config.recording_tick,
            )
            if microphone is not None
            else None
        )

        self._conversation: Conversation | None = None
        self._event_bus.subscribe(Topic.OPEN_CHAT, self._handle_open_chat)

    @property
    def event_bus(self) -> IEventBus:
        return self._event_bus

    @property
    def engine(self) -> MessageSyncEngine:
        return self._engine

    @property
    def controller(self) -> ConversationSendController:
        return self._controller

    @property
    def read_receipts(self) -> ReadReceiptTracker:
        return self._read_receipts

    @property
    def recorder(self) -> AudioRecordingPipeline:
        if not self._recorder:
            raise RuntimeError("No microphone configured")
        return self._recorder

    @property
    def conversation(self) -> Conversation | None:
        return self._conversation

    @property
    def messages(self) -> list[Message]:
        return self._engine.messages

    async def open(self, conversation: Conversation) -> None:
        """Show a conversation, closing the previous one first."""
        if self._conversation and self._conversation.id != conversation.id:
            await self.close()

        self._conversation = conversation
        await self._read_receipts.start()
        await self._engine.start(conversation.id, conversation.messages)
        logger.info(
            "Conversation opened",
            extra={"context": {"conversation_id": conversation.id}},
        )

    async def open_with_user(self, user_id: int | str) -> Conversation:
        """Get or create the conversation with another user, then open it."""
        if (
            self._conversation
            and self._conversation.other_user
            and self._conversation.other_user.id == user_id
        ):
            return self._conversation

        conversation = await self._api.open_conversation(user_id)
        await self.open(conversation)
        return conversation

    async def close(self) -> None:
        """Stop polling and discard local state. Safe to call repeatedly."""
        await self._engine.stop()
        if self._recorder:
            await self._recorder.cancel()
        await self._read_receipts.stop()

        if self._conversation:
            logger.info(
                "Conversation closed",
                extra={"context": {"conversation_id": self._conversation.id}},
            )
        self._engine.clear()
        self._tracker.clear()
        self._conversation = None

    async def aclose(self) -> None:
        """Teardown: close, free the microphone, drop subscriptions."""
        await self.close()
        if self._recorder:
            await self._recorder.close()
        self._event_bus.unsubscribe(Topic.OPEN_CHAT, self._handle_open_chat)

    async def __aenter__(self) -> "ChatSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def set_foreground(self, active: bool) -> None:
        """App moved to the foreground (True) or background (False)."""
        self._read_receipts.set_foreground(active)

    def set_compact(self, compact: bool) -> None:
        """Use the slower poll interval for minimized/floating windows."""
        self._engine.set_poll_interval(
            self._config.compact_poll_interval if compact else self._config.poll_interval
        )

    async def send(
        self,
        body: str | None = None,
        attachment: Mapping[str, Any] | UploadDescriptor | None = None,
    ) -> ConfirmedMessage | None:
        """Send text and/or a picked attachment."""
        return await self._controller.send(body=body, attachment=attachment)

    async def send_voice_message(self, body: str | None = None) -> ConfirmedMessage | None:
        """Finalize the current recording and send it.

        Returns None when the recording was too short (it is discarded), or
        when a send is still in flight here; the recording then keeps going
        so the user can send it once the other send returns.
        """
        recorder = self.recorder
        if self._controller.sending:
            logger.info("Voice message held: another send is in flight")
            return None
        if not await recorder.stop_and_finalize():
            return None
        result = recorder.take_result()
        return await self._controller.send(body=body, audio_result=result)

    async def delete_message(self, message_id: int | str) -> None:
        await self._controller.delete_message(message_id)

    async def _handle_open_chat(self, event: ChatEvent) -> None:
        user_id = event.payload.get("user_id")
        if user_id is None:
            logger.warning("open_chat event without user_id from %s", event.source)
            return
        await self.open_with_user(user_id)
