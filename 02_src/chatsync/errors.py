"""Exceptions raised by the chat core."""


class ChatError(Exception):
    """Base class for chat core errors."""


class ChatApiError(ChatError):
    """A REST call failed: transport error, timeout, non-2xx or bad body."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class SendError(ChatError):
    """A message could not be sent. The optimistic entry was rolled back."""


class DeleteError(ChatError):
    """A message or conversation could not be deleted. Nothing changed locally."""


class RecordingError(ChatError):
    """The microphone could not be started or finalized."""


class PermissionDeniedError(RecordingError):
    """The user has not granted microphone access."""
