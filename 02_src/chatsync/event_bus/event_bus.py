"""EventBus implementation for in-process chat notifications."""

import asyncio
import uuid
from typing import Awaitable, Callable, Protocol

from ..logging_config import get_logger
from ..models import ChatEvent, Topic

logger = get_logger(__name__)


TopicHandler = Callable[[ChatEvent], Awaitable[None]]


class IEventBus(Protocol):
    """In-memory pub/sub for exchanging ChatEvents."""

    def subscribe(self, topic: Topic, handler: TopicHandler) -> None:
        """Subscribe a handler to a topic."""
        ...

    def unsubscribe(self, topic: Topic, handler: TopicHandler) -> None:
        """Remove a handler from a topic."""
        ...

    async def publish(self, event: ChatEvent) -> None:
        """Publish ChatEvent: calls subscriber callbacks."""
        ...


class EventBus:
    """In-memory pub/sub event bus owned by a ChatSession."""

    def __init__(self):
        self._subscribers: dict[Topic, list[TopicHandler]] = {
            topic: [] for topic in Topic
        }

    def subscribe(self, topic: Topic, handler: TopicHandler) -> None:
        """Subscribe a handler to a topic."""
        self._subscribers[topic].append(handler)

    def unsubscribe(self, topic: Topic, handler: TopicHandler) -> None:
        """Remove a handler from a topic. Unknown handlers are ignored."""
        try:
            self._subscribers[topic].remove(handler)
        except ValueError:
            pass

    def clear(self) -> None:
        """Drop every subscription."""
        for handlers in self._subscribers.values():
            handlers.clear()

    async def publish(self, event: ChatEvent) -> None:
        """Publish ChatEvent: calls subscriber callbacks concurrently."""
        if not event.id:
            event.id = str(uuid.uuid4())

        # Copy so handlers may unsubscribe while being called
        handlers = list(self._subscribers.get(event.topic, []))
        if not handlers:
            return

        results = await asyncio.gather(
            *[handler(event) for handler in handlers],
            return_exceptions=True,
        )

        for handler, result in zip(handlers, results):
            if isinstance(result, Exception):
                logger.error(
                    "Handler %s failed on %s: %s",
                    getattr(handler, "__qualname__", repr(handler)),
                    event.topic.value,
                    result,
                    exc_info=result,
                )
