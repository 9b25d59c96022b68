"""REST API module."""

from .client import ChatApi, IChatApi

__all__ = ["ChatApi", "IChatApi"]
