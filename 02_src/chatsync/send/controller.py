"""ConversationSendController: one send or delete at a time."""

from dataclasses import replace
from typing import Any, Mapping

from ..api import IChatApi
from ..attachments import AttachmentResolver
from ..errors import ChatApiError, DeleteError, SendError
from ..logging_config import get_logger
from ..models import (
    AttachmentInfo,
    AudioResult,
    ConfirmedMessage,
    Participant,
    PendingMessage,
    UploadDescriptor,
)
from ..sync import MessageSyncEngine, OptimisticMessageTracker, ReadReceiptTracker

logger = get_logger(__name__)


class ConversationSendController:
    """Orchestrates optimistic sends and deletes for the open conversation."""

    def __init__(
        self,
        api: IChatApi,
        engine: MessageSyncEngine,
        tracker: OptimisticMessageTracker,
        read_receipts: ReadReceiptTracker,
        sender: Participant,
        resolver: AttachmentResolver | None = None,
    ):
        self._api = api
        self._engine = engine
        self._tracker = tracker
        self._read_receipts = read_receipts
        self._sender = sender
        self._resolver = resolver or AttachmentResolver()
        # Conversations with a send in flight; a send started in one
        # conversation never blocks another.
        self._in_flight: set[int | str] = set()

    @property
    def sending(self) -> bool:
        """Whether the open conversation has a send in flight."""
        return self._engine.conversation_id in self._in_flight

    async def send(
        self,
        body: str | None = None,
        attachment: Mapping[str, Any] | UploadDescriptor | None = None,
        audio_result: AudioResult | None = None,
    ) -> ConfirmedMessage | None:
        """Send text, an attachment, or a recording (text may accompany either).

        Returns the confirmed message, or None when the call was ignored:
        nothing to send, or a send is already in flight in this conversation.

        Raises:
            ValueError: both an attachment and a recording were given.
            SendError: the send failed; the optimistic message was removed.
        """
        text = (body or "").strip()
        if not text and attachment is None and audio_result is None:
            return None
        if attachment is not None and audio_result is not None:
            raise ValueError("A recording cannot be sent together with an attachment")

        conversation_id = self._engine.conversation_id
        if conversation_id is None:
            raise RuntimeError("No conversation is open")
        if conversation_id in self._in_flight:
            logger.info(
                "Send ignored: another send is in flight",
                extra={"context": {"conversation_id": conversation_id}},
            )
            return None

        self._in_flight.add(conversation_id)
        try:
            descriptor = await self._describe(attachment, audio_result)
            return await self._send(conversation_id, text, descriptor)
        finally:
            self._in_flight.discard(conversation_id)

    async def _describe(
        self,
        attachment: Mapping[str, Any] | UploadDescriptor | None,
        audio_result: AudioResult | None,
    ) -> UploadDescriptor | None:
        if audio_result is not None:
            return await self._resolver.resolve_audio(audio_result)
        if isinstance(attachment, UploadDescriptor):
            return attachment
        if attachment is not None:
            return self._resolver.resolve_picked(attachment)
        return None

    async def _send(
        self,
        conversation_id: int | str,
        text: str,
        descriptor: UploadDescriptor | None,
    ) -> ConfirmedMessage:
        snapshot = self._sender.snapshot()
        temp_id = self._tracker.next_temp_id()
        optimistic = PendingMessage(
            temp_id=temp_id,
            sender_id=self._sender.id,
            sender=snapshot,
            body=text,
            attachment=(
                AttachmentInfo(
                    path=descriptor.uri,  # local preview until confirmed
                    type=descriptor.attachment_type,
                    name=descriptor.name,
                    size_bytes=descriptor.size_bytes,
                )
                if descriptor
                else None
            ),
        )
        context = {"conversation_id": conversation_id, "temp_id": temp_id}

        self._tracker.register(temp_id)
        await self._engine.insert_pending(optimistic)

        confirmed = None
        try:
            upload = (
                await self._resolver.build_payload(descriptor) if descriptor else None
            )
            confirmed = await self._api.send_message(
                conversation_id, text, upload, client_message_id=temp_id
            )
        except (ChatApiError, OSError) as e:
            logger.warning("Failed to send message: %s", e, extra={"context": context})
            raise SendError(str(e) or "Failed to send message. Please try again.") from e
        finally:
            if confirmed is None:
                await self._engine.remove_pending(temp_id)
                self._tracker.resolve(temp_id)

        if confirmed.sender is None:
            confirmed = replace(confirmed, sender=snapshot)

        still_open = self._engine.conversation_id == conversation_id
        if still_open:
            await self._engine.confirm_pending(temp_id, confirmed)
        else:
            await self._engine.remove_pending(temp_id)
        self._tracker.resolve(temp_id)
        logger.info(
            "Message sent",
            extra={"context": {**context, "message_id": confirmed.id}},
        )

        if still_open:
            await self._read_receipts.mirror_local_read()
        return confirmed

    async def delete_message(self, message_id: int | str) -> None:
        """Delete a confirmed message; the list changes only after success.

        Raises:
            DeleteError: the server refused or could not be reached.
        """
        try:
            await self._api.delete_message(message_id)
        except ChatApiError as e:
            logger.warning(
                "Failed to delete message: %s",
                e,
                extra={"context": {"message_id": message_id}},
            )
            raise DeleteError(str(e) or "Failed to delete message") from e

        await self._engine.remove_confirmed(message_id)
