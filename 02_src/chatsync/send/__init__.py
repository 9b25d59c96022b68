"""Send orchestration module."""

from .controller import ConversationSendController

__all__ = ["ConversationSendController"]
