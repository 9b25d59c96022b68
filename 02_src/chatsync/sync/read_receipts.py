"""ReadReceiptTracker: conversation read state."""

from dataclasses import replace
from datetime import datetime, timezone

from ..api import IChatApi
from ..errors import ChatApiError
from ..event_bus import IEventBus
from ..logging_config import get_logger
from ..models import ChatEvent, ConfirmedMessage, Message, Topic
from .engine import MessageSyncEngine

logger = get_logger(__name__)


class ReadReceiptTracker:
    """Marks the open conversation read after each successful fetch.

    Only the server decides whether the other participant has read the
    user's messages; the local flags on incoming messages mirror what the
    next poll will report.
    """

    def __init__(
        self,
        api: IChatApi,
        engine: MessageSyncEngine,
        event_bus: IEventBus,
        current_user_id: int | str,
    ):
        self._api = api
        self._engine = engine
        self._event_bus = event_bus
        self._current_user_id = current_user_id
        self._foreground = True
        self._started = False

    @property
    def foreground(self) -> bool:
        return self._foreground

    def set_foreground(self, active: bool) -> None:
        """App state changed (active / background)."""
        self._foreground = active

    async def start(self) -> None:
        """Subscribe to fetch notifications."""
        if self._started:
            return
        self._event_bus.subscribe(Topic.MESSAGES_FETCHED, self._handle_fetched)
        self._started = True

    async def stop(self) -> None:
        """Unsubscribe from fetch notifications."""
        if not self._started:
            return
        self._event_bus.unsubscribe(Topic.MESSAGES_FETCHED, self._handle_fetched)
        self._started = False

    async def _handle_fetched(self, event: ChatEvent) -> None:
        if not self._foreground:
            return
        conversation_id = event.payload.get("conversation_id")
        if conversation_id is None:
            return
        try:
            await self._api.mark_read(conversation_id)
        except ChatApiError as e:
            logger.warning(
                "Failed to mark as read: %s",
                e,
                extra={"context": {"conversation_id": conversation_id}},
            )

    async def mirror_local_read(self) -> None:
        """Flag the other participant's unread messages as read, locally."""
        read_at = datetime.now(timezone.utc).isoformat()

        def mark(message: Message) -> Message:
            if (
                isinstance(message, ConfirmedMessage)
                and message.sender_id != self._current_user_id
                and not message.is_read
            ):
                return replace(message, is_read=True, read_at=read_at)
            return message

        await self._engine.update_messages(mark)
