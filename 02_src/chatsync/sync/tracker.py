"""OptimisticMessageTracker: temporary identities of in-flight messages."""

import time
from typing import Callable

from ..logging_config import get_logger

logger = get_logger(__name__)


class OptimisticMessageTracker:
    """Set of temp ids whose optimistic message is still awaiting a send result.

    Owned by a single ChatSession; the send controller registers and
    resolves ids, the sync engine only reads them.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._pending: set[int] = set()
        self._last_temp_id = 0

    def next_temp_id(self) -> int:
        """Millisecond timestamp, bumped so ids strictly increase."""
        candidate = int(self._clock() * 1000)
        if candidate <= self._last_temp_id:
            candidate = self._last_temp_id + 1
        self._last_temp_id = candidate
        return candidate

    def register(self, temp_id: int) -> None:
        """Start tracking an optimistic message."""
        if temp_id in self._pending:
            raise ValueError(f"temp_id {temp_id} is already pending")
        self._pending.add(temp_id)
        logger.debug("Registered pending message %s", temp_id)

    def is_pending(self, temp_id: int) -> bool:
        return temp_id in self._pending

    def resolve(self, temp_id: int) -> None:
        """Stop tracking: the send succeeded or was rolled back."""
        self._pending.discard(temp_id)
        logger.debug("Resolved pending message %s", temp_id)

    @property
    def pending_ids(self) -> frozenset[int]:
        return frozenset(self._pending)

    def clear(self) -> None:
        self._pending.clear()
