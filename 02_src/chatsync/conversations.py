"""Conversation list and unread badge polling."""

import asyncio

from .api import IChatApi
from .errors import ChatApiError, DeleteError
from .event_bus import IEventBus
from .logging_config import get_logger
from .models import ChatEvent, Conversation, Topic

logger = get_logger(__name__)


class ConversationDirectory:
    """Cached conversation list for the chat entry screen."""

    def __init__(self, api: IChatApi, event_bus: IEventBus):
        self._api = api
        self._event_bus = event_bus
        self._conversations: list[Conversation] = []

    @property
    def conversations(self) -> list[Conversation]:
        return list(self._conversations)

    @property
    def total_unread(self) -> int:
        return sum(c.unread_count for c in self._conversations)

    async def refresh(self) -> list[Conversation]:
        """Reload the list. On failure the cached list is kept."""
        try:
            self._conversations = await self._api.list_conversations()
        except ChatApiError as e:
            logger.warning("Failed to fetch conversations: %s", e)
            return self.conversations

        await self._event_bus.publish(
            ChatEvent(
                topic=Topic.UNREAD_COUNT,
                payload={"unread_count": self.total_unread},
                source="conversation_directory",
            )
        )
        return self.conversations

    def search(self, query: str) -> list[Conversation]:
        """Conversations whose other participant's name or email matches."""
        needle = query.strip().lower()
        if not needle:
            return self.conversations
        return [
            c
            for c in self._conversations
            if c.other_user
            and (
                needle in (c.other_user.name or "").lower()
                or needle in (c.other_user.email or "").lower()
            )
        ]

    async def open_with_user(self, user_id: int | str) -> Conversation:
        """Get or create the conversation with another user."""
        return await self._api.open_conversation(user_id)

    async def delete(self, conversation_id: int | str) -> None:
        """Delete a conversation; the cached list changes only after success.

        Raises:
            DeleteError: the server refused or could not be reached.
        """
        try:
            await self._api.delete_conversation(conversation_id)
        except ChatApiError as e:
            logger.warning("Failed to delete conversation %s: %s", conversation_id, e)
            raise DeleteError(str(e) or "Failed to delete conversation") from e

        self._conversations = [c for c in self._conversations if c.id != conversation_id]


class UnreadCountPoller:
    """Refreshes the chat-entry badge on a slow timer."""

    def __init__(self, api: IChatApi, event_bus: IEventBus, interval: float = 30.0):
        self._api = api
        self._event_bus = event_bus
        self._interval = interval
        self._count = 0
        self._task: asyncio.Task | None = None

    @property
    def unread_count(self) -> int:
        return self._count

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._poll_loop())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def refresh(self) -> int:
        """Fetch the count now; publishes on change. Keeps the old count on failure."""
        try:
            count = await self._api.unread_count()
        except ChatApiError as e:
            logger.warning("Failed to fetch unread count: %s", e)
            return self._count

        if count != self._count:
            self._count = count
            await self._event_bus.publish(
                ChatEvent(
                    topic=Topic.UNREAD_COUNT,
                    payload={"unread_count": count},
                    source="unread_count_poller",
                )
            )
        return count

    async def _poll_loop(self) -> None:
        while True:
            try:
                await self.refresh()
                await asyncio.sleep(self._interval)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Unread poll error: %s", e, exc_info=True)
                await asyncio.sleep(self._interval)
