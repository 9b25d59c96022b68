"""Chat API routes for the dev server."""

from typing import Any

from fastapi import APIRouter, Depends, File, Form, Header, HTTPException, UploadFile
from pydantic import BaseModel

from chatsync.attachments import classify
from chatsync.logging_config import get_logger
from chatsync.models import AttachmentType

from .storage import IDevStorage

logger = get_logger(__name__)


class SenderOut(BaseModel):
    """Sender snapshot embedded in a message."""

    id: int
    name: str
    image: str | None = None


class MessageOut(BaseModel):
    """A message in the wire shape consumed by the client."""

    id: int
    sender_id: int
    sender: SenderOut | None = None
    body: str
    attachment_path: str | None = None
    attachment_type: str | None = None
    attachment_name: str | None = None
    attachment_size: int | None = None
    client_message_id: int | None = None
    is_read: bool
    read_at: str | None = None
    created_at: str


class UserOut(BaseModel):
    """Other participant of a conversation."""

    id: int
    name: str
    email: str | None = None
    image: str | None = None


class ConversationOut(BaseModel):
    """Conversation as listed or opened."""

    id: int
    other_user: UserOut | None = None
    unread_count: int = 0
    last_message: MessageOut | None = None
    messages: list[MessageOut] | None = None


class MessagesResponse(BaseModel):
    messages: list[MessageOut]


class SendResponse(BaseModel):
    message: MessageOut


class ConversationResponse(BaseModel):
    conversation: ConversationOut


class ConversationsResponse(BaseModel):
    conversations: list[ConversationOut]


class UnreadCountResponse(BaseModel):
    unread_count: int


class StatusResponse(BaseModel):
    status: str


def create_chat_router(storage: IDevStorage, prefix: str = "/api/mobile") -> APIRouter:
    """Create chat router."""
    router = APIRouter(prefix=prefix, tags=["chat"])

    async def current_user(authorization: str | None = Header(None)) -> dict:
        if not authorization or not authorization.startswith("Bearer "):
            raise HTTPException(status_code=401, detail="Missing bearer token")
        user = await storage.get_user_by_token(authorization[len("Bearer "):])
        if not user:
            raise HTTPException(status_code=401, detail="Invalid token")
        return user

    async def participant_conversation(conversation_id: int, user: dict) -> dict:
        conversation = await storage.get_conversation(conversation_id)
        if not conversation:
            raise HTTPException(status_code=404, detail="Conversation not found")
        if user["id"] not in (conversation["user_one_id"], conversation["user_two_id"]):
            raise HTTPException(status_code=403, detail="Not a participant")
        return conversation

    @router.get("/chat", response_model=ConversationsResponse)
    async def list_conversations(user: dict = Depends(current_user)) -> dict:
        """List the user's conversations."""
        return {"conversations": await storage.list_conversations(user["id"])}

    @router.get("/chat/unread-count", response_model=UnreadCountResponse)
    async def unread_count(user: dict = Depends(current_user)) -> dict:
        """Unread incoming messages for the badge."""
        return {"unread_count": await storage.unread_count(user["id"])}

    @router.get("/chat/conversation/{user_id}", response_model=ConversationResponse)
    async def open_conversation(user_id: int, user: dict = Depends(current_user)) -> dict:
        """Get or create the conversation with another user."""
        if user_id == user["id"]:
            raise HTTPException(status_code=422, detail="Cannot chat with yourself")
        other = await storage.get_user(user_id)
        if not other:
            raise HTTPException(status_code=404, detail="User not found")

        conversation = await storage.get_or_create_conversation(user["id"], user_id)
        return {
            "conversation": {
                "id": conversation["id"],
                "other_user": other,
                "unread_count": 0,
                "messages": await storage.get_messages(conversation["id"]),
            }
        }

    @router.delete("/chat/conversation/{conversation_id}", response_model=StatusResponse)
    async def delete_conversation(
        conversation_id: int, user: dict = Depends(current_user)
    ) -> dict:
        """Delete a conversation for both participants."""
        await participant_conversation(conversation_id, user)
        await storage.delete_conversation(conversation_id)
        return {"status": "ok"}

    @router.get(
        "/chat/conversation/{conversation_id}/messages", response_model=MessagesResponse
    )
    async def get_messages(conversation_id: int, user: dict = Depends(current_user)) -> dict:
        """Messages in ascending chronological order."""
        await participant_conversation(conversation_id, user)
        return {"messages": await storage.get_messages(conversation_id)}

    @router.post("/chat/conversation/{conversation_id}/send", response_model=SendResponse)
    async def send_message(
        conversation_id: int,
        body: str = Form(""),
        attachment_type: str | None = Form(None),
        client_message_id: int | None = Form(None),
        attachment: UploadFile | None = File(None),
        user: dict = Depends(current_user),
    ) -> dict:
        """Store a message with an optional attachment."""
        await participant_conversation(conversation_id, user)

        stored_attachment: dict[str, Any] | None = None
        if attachment is not None:
            if attachment_type not in {t.value for t in AttachmentType}:
                raise HTTPException(
                    status_code=422, detail="attachment_type is required with attachment"
                )
            data = await attachment.read()
            mime = attachment.content_type or "application/octet-stream"
            if classify(mime) is not AttachmentType(attachment_type):
                logger.warning(
                    "attachment_type %s does not match %s", attachment_type, mime
                )
            stored_attachment = {
                "name": attachment.filename or "attachment",
                "type": attachment_type,
                "mime": mime,
                "data": data,
            }
        elif not body.strip():
            raise HTTPException(status_code=422, detail="Message body is empty")

        message = await storage.save_message(
            conversation_id,
            user["id"],
            body.strip(),
            attachment=stored_attachment,
            client_message_id=client_message_id,
        )
        return {"message": message}

    @router.post("/chat/conversation/{conversation_id}/read", response_model=StatusResponse)
    async def mark_read(conversation_id: int, user: dict = Depends(current_user)) -> dict:
        """Mark the other participant's messages read."""
        await participant_conversation(conversation_id, user)
        await storage.mark_read(conversation_id, user["id"])
        return {"status": "ok"}

    @router.delete("/chat/message/{message_id}", response_model=StatusResponse)
    async def delete_message(message_id: int, user: dict = Depends(current_user)) -> dict:
        """Delete one of the user's own messages."""
        message = await storage.get_message(message_id)
        if not message:
            raise HTTPException(status_code=404, detail="Message not found")
        if message["sender_id"] != user["id"]:
            raise HTTPException(status_code=403, detail="Only the sender may delete")
        await storage.delete_message(message_id)
        return {"status": "ok"}

    return router
