"""Tests for ChatApi."""

import json

import httpx
import pytest
import pytest_asyncio

from chatsync.api import ChatApi
from chatsync.config import ChatConfig
from chatsync.errors import ChatApiError
from chatsync.models import AttachmentType, UploadPayload


class Recorder:
    """MockTransport handler returning canned responses."""

    def __init__(self, response=None, error=None):
        self.response = response or httpx.Response(200, json={})
        self.error = error
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error:
            raise self.error
        return self.response


@pytest.fixture
def recorder():
    return Recorder()


@pytest_asyncio.fixture
async def api(recorder):
    config = ChatConfig(base_url="https://chat.example.com", api_prefix="/api/mobile")
    async with httpx.AsyncClient(transport=httpx.MockTransport(recorder)) as client:
        yield ChatApi(config, token="secret", client=client)


class TestRequests:
    """Tests for URLs, headers and error mapping."""

    @pytest.mark.asyncio
    async def test_fetch_messages(self, api, recorder):
        """Test the messages endpoint is called with the bearer token."""
        recorder.response = httpx.Response(
            200,
            json={
                "messages": [
                    {"id": 1, "sender_id": 2, "body": "a"},
                    {"id": 2, "sender_id": 1, "body": "b"},
                ]
            },
        )

        messages = await api.fetch_messages(5)

        request = recorder.requests[0]
        assert request.method == "GET"
        assert str(request.url) == (
            "https://chat.example.com/api/mobile/chat/conversation/5/messages"
        )
        assert request.headers["Authorization"] == "Bearer secret"
        assert [m.id for m in messages] == [1, 2]

    @pytest.mark.asyncio
    async def test_http_error(self, api, recorder):
        """Test non-2xx responses raise ChatApiError with the status."""
        recorder.response = httpx.Response(403, json={"detail": "no"})

        with pytest.raises(ChatApiError) as exc_info:
            await api.delete_message(9)

        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_timeout(self, api, recorder):
        """Test timeouts raise ChatApiError."""
        recorder.error = httpx.ReadTimeout("slow")

        with pytest.raises(ChatApiError):
            await api.fetch_messages(5)

    @pytest.mark.asyncio
    async def test_transport_error(self, api, recorder):
        """Test connection failures raise ChatApiError."""
        recorder.error = httpx.ConnectError("refused")

        with pytest.raises(ChatApiError):
            await api.unread_count()

    @pytest.mark.asyncio
    async def test_non_json_body(self, api, recorder):
        """Test undecodable bodies raise ChatApiError."""
        recorder.response = httpx.Response(200, content=b"<html>")

        with pytest.raises(ChatApiError):
            await api.fetch_messages(5)

    @pytest.mark.asyncio
    async def test_malformed_message(self, api, recorder):
        """Test a message without id raises ChatApiError."""
        recorder.response = httpx.Response(200, json={"messages": [{"body": "x"}]})

        with pytest.raises(ChatApiError):
            await api.fetch_messages(5)

    def test_token_required(self):
        """Test a client cannot be built without a token."""
        with pytest.raises(ValueError):
            ChatApi(ChatConfig(), token="")


class TestSend:
    """Tests for the send endpoint encoding."""

    @pytest.mark.asyncio
    async def test_text_only(self, api, recorder):
        """Test a text send is multipart with body and client message id."""
        recorder.response = httpx.Response(
            200, json={"message": {"id": 10, "sender_id": 1, "body": "hi"}}
        )

        message = await api.send_message(5, "hi", client_message_id=123)

        request = recorder.requests[0]
        body = request.content
        assert request.url.path == "/api/mobile/chat/conversation/5/send"
        assert request.headers["Content-Type"].startswith("multipart/form-data")
        assert b'name="body"\r\n\r\nhi\r\n' in body
        assert b'name="client_message_id"\r\n\r\n123\r\n' in body
        assert b"filename=" not in body
        assert message.id == 10

    @pytest.mark.asyncio
    async def test_with_attachment(self, api, recorder):
        """Test an attachment is sent as multipart with its classifier."""
        recorder.response = httpx.Response(
            200, json={"message": {"id": 11, "sender_id": 1, "body": ""}}
        )
        upload = UploadPayload(
            name="photo.jpg",
            content=b"JPEGDATA",
            mime_type="image/jpeg",
            attachment_type=AttachmentType.IMAGE,
        )

        await api.send_message(5, "", upload)

        request = recorder.requests[0]
        body = request.content
        assert request.headers["Content-Type"].startswith("multipart/form-data")
        assert b'name="attachment_type"' in body
        assert b"image" in body
        assert b'filename="photo.jpg"' in body
        assert b"JPEGDATA" in body

    @pytest.mark.asyncio
    async def test_missing_message(self, api, recorder):
        """Test a send response without message raises ChatApiError."""
        recorder.response = httpx.Response(200, json={"status": "ok"})

        with pytest.raises(ChatApiError):
            await api.send_message(5, "hi")


class TestConversations:
    """Tests for conversation endpoints."""

    @pytest.mark.asyncio
    async def test_list(self, api, recorder):
        """Test conversations are parsed with unread counts."""
        recorder.response = httpx.Response(
            200,
            json={
                "conversations": [
                    {"id": 1, "other_user": {"id": 2, "name": "Bob"}, "unread_count": 3}
                ]
            },
        )

        [conversation] = await api.list_conversations()

        assert recorder.requests[0].url.path == "/api/mobile/chat"
        assert conversation.other_user.name == "Bob"
        assert conversation.unread_count == 3

    @pytest.mark.asyncio
    async def test_list_malformed(self, api, recorder):
        """Test a conversation without id raises ChatApiError."""
        recorder.response = httpx.Response(200, json={"conversations": [{"unread_count": 1}]})

        with pytest.raises(ChatApiError):
            await api.list_conversations()

    @pytest.mark.asyncio
    async def test_open(self, api, recorder):
        """Test opening by user id returns the conversation and its messages."""
        recorder.response = httpx.Response(
            200,
            content=json.dumps(
                {
                    "conversation": {
                        "id": 4,
                        "other_user": {"id": 2, "name": "Bob"},
                        "messages": [{"id": 1, "sender_id": 2}],
                    }
                }
            ).encode(),
            headers={"Content-Type": "application/json"},
        )

        conversation = await api.open_conversation(2)

        assert recorder.requests[0].url.path == "/api/mobile/chat/conversation/2"
        assert conversation.id == 4
        assert [m.id for m in conversation.messages] == [1]

    @pytest.mark.asyncio
    async def test_unread_count(self, api, recorder):
        recorder.response = httpx.Response(200, json={"unread_count": 7})
        assert await api.unread_count() == 7


class TestAttachmentUrl:
    """Tests for attachment URL resolution."""

    def test_relative_path(self, api):
        assert (
            api.attachment_url("chat/attachments/1/a.jpg")
            == "https://chat.example.com/storage/chat/attachments/1/a.jpg"
        )

    def test_absolute_url(self, api):
        assert api.attachment_url("https://cdn/x.jpg") == "https://cdn/x.jpg"
