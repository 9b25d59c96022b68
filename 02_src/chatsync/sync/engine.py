"""MessageSyncEngine: polled, deduplicated message list for one conversation."""

import asyncio
from typing import Callable, Iterable

from ..api import IChatApi
from ..errors import ChatApiError
from ..event_bus import IEventBus
from ..logging_config import get_logger
from ..models import ChatEvent, ConfirmedMessage, Message, PendingMessage, Topic
from .tracker import OptimisticMessageTracker

logger = get_logger(__name__)


class MessageSyncEngine:
    """Authoritative message list for the open conversation.

    Confirmed messages keep server order and always precede pending ones;
    pending messages keep insertion order. Every list mutation happens
    between awaits, so a send and a poll tick interleave without a torn
    list.
    """

    def __init__(
        self,
        api: IChatApi,
        tracker: OptimisticMessageTracker,
        event_bus: IEventBus,
        current_user_id: int | str,
        poll_interval: float = 3.0,
    ):
        self._api = api
        self._tracker = tracker
        self._event_bus = event_bus
        self._current_user_id = current_user_id
        self._interval = poll_interval

        self._conversation_id: int | str | None = None
        self._messages: list[Message] = []
        self._known_ids: set[int | str] = set()
        self._loaded = False
        # Bumped on stop/start so late responses for a closed poll are dropped
        self._generation = 0
        self._task: asyncio.Task | None = None

    @property
    def conversation_id(self) -> int | str | None:
        return self._conversation_id

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def poll_interval(self) -> float:
        return self._interval

    @property
    def messages(self) -> list[Message]:
        """Snapshot of the canonical list."""
        return list(self._messages)

    @property
    def pending_messages(self) -> list[PendingMessage]:
        return [m for m in self._messages if isinstance(m, PendingMessage)]

    @property
    def confirmed_messages(self) -> list[ConfirmedMessage]:
        return [m for m in self._messages if isinstance(m, ConfirmedMessage)]

    def set_poll_interval(self, interval: float) -> None:
        """Change the tick interval; applies from the next sleep."""
        if interval <= 0:
            raise ValueError("poll interval must be positive")
        self._interval = interval

    async def start(
        self,
        conversation_id: int | str,
        initial_messages: Iterable[ConfirmedMessage] = (),
    ) -> None:
        """Begin polling. The first fetch runs immediately."""
        if self.is_running and conversation_id == self._conversation_id:
            logger.debug("Polling already running for %s", conversation_id)
            return

        switching = (
            self._conversation_id is not None and conversation_id != self._conversation_id
        )
        await self.stop()
        if switching:
            self.clear()

        self._conversation_id = conversation_id
        initial = _dedupe(initial_messages)
        if initial:
            self._messages = initial + self.pending_messages
            self._known_ids.update(m.id for m in initial)

        self._task = asyncio.create_task(self._poll_loop())
        logger.info(
            "Polling started",
            extra={"context": {"conversation_id": conversation_id, "interval": self._interval}},
        )

    async def stop(self) -> None:
        """Cancel the poll timer. Safe to call any number of times."""
        self._generation += 1
        task, self._task = self._task, None
        if task is None or task.done():
            return

        task.cancel()
        if task is asyncio.current_task():
            return
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info(
            "Polling stopped",
            extra={"context": {"conversation_id": self._conversation_id}},
        )

    def clear(self) -> None:
        """Forget the conversation and its messages (not the server record)."""
        self._conversation_id = None
        self._messages = []
        self._known_ids.clear()
        self._loaded = False

    async def fetch(self) -> bool:
        """Fetch the server list and merge it. False when the fetch failed."""
        conversation_id = self._conversation_id
        if conversation_id is None:
            return False
        generation = self._generation

        try:
            fetched = await self._api.fetch_messages(conversation_id)
        except ChatApiError as e:
            logger.warning(
                "Failed to fetch messages: %s",
                e,
                extra={"context": {"conversation_id": conversation_id}},
            )
            return False

        if generation != self._generation or conversation_id != self._conversation_id:
            logger.debug("Dropping fetch result for closed poll of %s", conversation_id)
            return False

        previous = self._messages
        self._messages = self._merge(fetched)
        received = self._take_received()

        await self._event_bus.publish(
            ChatEvent(
                topic=Topic.MESSAGES_FETCHED,
                payload={
                    "conversation_id": conversation_id,
                    "count": len(self._messages),
                },
                source="message_sync_engine",
            )
        )
        if received:
            await self._event_bus.publish(
                ChatEvent(
                    topic=Topic.MESSAGES_RECEIVED,
                    payload={"conversation_id": conversation_id, "messages": received},
                    source="message_sync_engine",
                )
            )
        if self._messages != previous:
            await self._publish_changed()
        return True

    def _merge(self, fetched: list[ConfirmedMessage]) -> list[Message]:
        confirmed = _dedupe(fetched)
        fetched_ids = {m.id for m in confirmed}
        echoed = {m.client_message_id for m in confirmed if m.client_message_id is not None}

        still_pending = [
            m
            for m in self._messages
            if isinstance(m, PendingMessage)
            and self._tracker.is_pending(m.temp_id)
            and m.temp_id not in fetched_ids
            and m.temp_id not in echoed
        ]
        return confirmed + still_pending

    def _take_received(self) -> list[ConfirmedMessage]:
        """Confirmed messages from the other participant not seen before."""
        fresh = [
            m
            for m in self._messages
            if isinstance(m, ConfirmedMessage) and m.id not in self._known_ids
        ]
        self._known_ids.update(m.id for m in fresh)
        first_load, self._loaded = not self._loaded, True
        if first_load:
            return []
        return [m for m in fresh if m.sender_id != self._current_user_id]

    async def insert_pending(self, message: PendingMessage) -> None:
        """Append an optimistic message after everything else."""
        if any(
            isinstance(m, PendingMessage) and m.temp_id == message.temp_id
            for m in self._messages
        ):
            raise ValueError(f"temp_id {message.temp_id} already in the list")
        self._messages = self._messages + [message]
        await self._publish_changed()

    async def confirm_pending(self, temp_id: int, message: ConfirmedMessage) -> None:
        """Swap a pending entry for its confirmed message.

        The confirmed message takes the pending entry's slot. If a poll
        already delivered it, the pending entry is only removed.
        """
        messages = [
            m
            for m in self._messages
            if not (isinstance(m, PendingMessage) and m.temp_id == temp_id)
        ]
        already_present = any(
            isinstance(m, ConfirmedMessage) and m.id == message.id for m in messages
        )
        if not already_present:
            boundary = sum(1 for m in messages if isinstance(m, ConfirmedMessage))
            messages.insert(boundary, message)

        self._known_ids.add(message.id)
        self._messages = messages
        await self._publish_changed()

    async def remove_pending(self, temp_id: int) -> bool:
        """Drop an optimistic entry. True if it was present."""
        return await self._remove(
            lambda m: isinstance(m, PendingMessage) and m.temp_id == temp_id
        )

    async def remove_confirmed(self, message_id: int | str) -> bool:
        """Drop a confirmed message. True if it was present."""
        return await self._remove(
            lambda m: isinstance(m, ConfirmedMessage) and m.id == message_id
        )

    async def update_messages(self, update: Callable[[Message], Message]) -> None:
        """Replace every entry with ``update(entry)``."""
        updated = [update(m) for m in self._messages]
        if updated != self._messages:
            self._messages = updated
            await self._publish_changed()

    async def _remove(self, predicate: Callable[[Message], bool]) -> bool:
        kept = [m for m in self._messages if not predicate(m)]
        if len(kept) == len(self._messages):
            return False
        self._messages = kept
        await self._publish_changed()
        return True

    async def _publish_changed(self) -> None:
        await self._event_bus.publish(
            ChatEvent(
                topic=Topic.MESSAGES_CHANGED,
                payload={
                    "conversation_id": self._conversation_id,
                    "count": len(self._messages),
                    "pending": len(self.pending_messages),
                },
                source="message_sync_engine",
            )
        )

    async def _poll_loop(self) -> None:
        """Fetch, then sleep, until cancelled."""
        while True:
            try:
                await self.fetch()
                await asyncio.sleep(self._interval)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Poll tick error: %s", e, exc_info=True)
                await asyncio.sleep(self._interval)


def _dedupe(messages: Iterable[ConfirmedMessage]) -> list[ConfirmedMessage]:
    """Keep the first occurrence of each id, preserving order."""
    seen: set[int | str] = set()
    unique = []
    for message in messages:
        if message.id in seen:
            continue
        seen.add(message.id)
        unique.append(message)
    return unique
