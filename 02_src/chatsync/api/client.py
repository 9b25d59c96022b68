"""REST client for the chat endpoints, built on httpx."""

from typing import Any, Protocol

import httpx

from ..config import ChatConfig
from ..errors import ChatApiError
from ..logging_config import get_logger
from ..models import ConfirmedMessage, Conversation, UploadPayload

logger = get_logger(__name__)


class IChatApi(Protocol):
    """Conversation-scoped REST contract consumed by the chat core."""

    async def fetch_messages(self, conversation_id: int | str) -> list[ConfirmedMessage]:
        """GET chat/conversation/{id}/messages, ascending chronological order."""
        ...

    async def send_message(
        self,
        conversation_id: int | str,
        body: str,
        upload: UploadPayload | None = None,
        client_message_id: int | None = None,
    ) -> ConfirmedMessage:
        """POST chat/conversation/{id}/send as multipart/form-data."""
        ...

    async def mark_read(self, conversation_id: int | str) -> None:
        """POST chat/conversation/{id}/read."""
        ...

    async def delete_message(self, message_id: int | str) -> None:
        """DELETE chat/message/{id}."""
        ...

    async def unread_count(self) -> int:
        """GET chat/unread-count."""
        ...

    async def list_conversations(self) -> list[Conversation]:
        """GET chat."""
        ...

    async def open_conversation(self, user_id: int | str) -> Conversation:
        """GET chat/conversation/{user_id}: get or create with another user."""
        ...

    async def delete_conversation(self, conversation_id: int | str) -> None:
        """DELETE chat/conversation/{id}."""
        ...


class ChatApi:
    """httpx implementation of IChatApi.

    Every call is bounded by ``config.request_timeout``; transport errors,
    timeouts, non-2xx responses and undecodable bodies all surface as
    ChatApiError so callers only have one failure type to handle.
    """

    def __init__(
        self,
        config: ChatConfig,
        token: str,
        client: httpx.AsyncClient | None = None,
    ):
        if not token:
            raise ValueError("Authentication token is required")

        self._config = config
        self._token = token
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(config.request_timeout)
        )

    @property
    def config(self) -> ChatConfig:
        return self._config

    async def aclose(self) -> None:
        """Close the underlying client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    def _url(self, endpoint: str) -> str:
        return f"{self._config.api_url}/{endpoint.lstrip('/')}"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/json",
        }

    async def _request(self, method: str, endpoint: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(
                method,
                self._url(endpoint),
                headers=self._headers(),
                timeout=self._config.request_timeout,
                **kwargs,
            )
        except httpx.TimeoutException as e:
            logger.debug("API timeout: %s %s", method, endpoint)
            raise ChatApiError(f"{method} {endpoint} timed out") from e
        except httpx.HTTPError as e:
            logger.debug("API transport error: %s %s: %s", method, endpoint, e)
            raise ChatApiError(f"{method} {endpoint} failed: {e}") from e

        if response.is_error:
            logger.debug(
                "API error: %s %s -> %s", method, endpoint, response.status_code
            )
            raise ChatApiError(
                f"{method} {endpoint} returned {response.status_code}",
                status_code=response.status_code,
            )
        return response

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise ChatApiError("Response body is not JSON", response.status_code) from e
        if not isinstance(data, dict):
            raise ChatApiError("Response body is not an object", response.status_code)
        return data

    async def fetch_messages(self, conversation_id: int | str) -> list[ConfirmedMessage]:
        response = await self._request(
            "GET", f"chat/conversation/{conversation_id}/messages"
        )
        data = self._json(response)
        try:
            return [ConfirmedMessage.from_server(m) for m in data.get("messages") or []]
        except (TypeError, ValueError) as e:
            raise ChatApiError(f"Malformed messages payload: {e}") from e

    async def send_message(
        self,
        conversation_id: int | str,
        body: str,
        upload: UploadPayload | None = None,
        client_message_id: int | None = None,
    ) -> ConfirmedMessage:
        # Text fields go in as (None, value) parts so the request is
        # multipart/form-data even without an attachment.
        parts: dict[str, tuple] = {"body": (None, body or "")}
        if client_message_id is not None:
            parts["client_message_id"] = (None, str(client_message_id))
        if upload is not None:
            parts["attachment_type"] = (None, upload.attachment_type.value)
            parts["attachment"] = upload.as_file_tuple()

        response = await self._request(
            "POST",
            f"chat/conversation/{conversation_id}/send",
            files=parts,
        )
        data = self._json(response)
        if not isinstance(data.get("message"), dict):
            raise ChatApiError("Send response has no message", response.status_code)
        try:
            return ConfirmedMessage.from_server(data["message"])
        except (TypeError, ValueError) as e:
            raise ChatApiError(f"Malformed message payload: {e}") from e

    async def mark_read(self, conversation_id: int | str) -> None:
        await self._request("POST", f"chat/conversation/{conversation_id}/read")

    async def delete_message(self, message_id: int | str) -> None:
        await self._request("DELETE", f"chat/message/{message_id}")

    async def unread_count(self) -> int:
        response = await self._request("GET", "chat/unread-count")
        return int(self._json(response).get("unread_count") or 0)

    async def list_conversations(self) -> list[Conversation]:
        response = await self._request("GET", "chat")
        data = self._json(response)
        try:
            return [Conversation.from_server(c) for c in data.get("conversations") or []]
        except (KeyError, TypeError, ValueError) as e:
            raise ChatApiError(f"Malformed conversations payload: {e}") from e

    async def open_conversation(self, user_id: int | str) -> Conversation:
        response = await self._request("GET", f"chat/conversation/{user_id}")
        data = self._json(response)
        if not isinstance(data.get("conversation"), dict):
            raise ChatApiError("Response has no conversation", response.status_code)
        try:
            return Conversation.from_server(data["conversation"])
        except (KeyError, TypeError, ValueError) as e:
            raise ChatApiError(f"Malformed conversation payload: {e}") from e

    async def delete_conversation(self, conversation_id: int | str) -> None:
        await self._request("DELETE", f"chat/conversation/{conversation_id}")

    def attachment_url(self, path: str) -> str:
        """Resolve a stored attachment path to a downloadable URL."""
        if path.startswith(("http://", "https://", "/storage/")):
            return path
        return f"{self._config.base_url.rstrip('/')}/storage/{path.lstrip('/')}"
