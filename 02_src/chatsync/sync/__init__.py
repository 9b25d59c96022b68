"""Message synchronization module."""

from .engine import MessageSyncEngine
from .read_receipts import ReadReceiptTracker
from .tracker import OptimisticMessageTracker

__all__ = ["MessageSyncEngine", "OptimisticMessageTracker", "ReadReceiptTracker"]
