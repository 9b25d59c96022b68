"""SQLite storage backing the dev chat server."""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

import aiosqlite

from chatsync.config import resolve_db_path


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


MESSAGE_COLUMNS = """
    m.id, m.conversation_id, m.sender_id, m.body,
    m.attachment_path, m.attachment_type, m.attachment_name, m.attachment_size,
    m.client_message_id, m.is_read, m.read_at, m.created_at,
    u.name, u.image
"""


def _message_from_row(row: tuple) -> dict[str, Any]:
    return {
        "id": row[0],
        "conversation_id": row[1],
        "sender_id": row[2],
        "body": row[3],
        "attachment_path": row[4],
        "attachment_type": row[5],
        "attachment_name": row[6],
        "attachment_size": row[7],
        "client_message_id": row[8],
        "is_read": bool(row[9]),
        "read_at": row[10],
        "created_at": row[11],
        "sender": {"id": row[2], "name": row[12] or "", "image": row[13]},
    }


class IDevStorage(Protocol):
    """Persistent storage for the dev server (SQLite)."""

    async def init(self) -> None:
        """Initialize database and create tables."""
        ...

    async def close(self) -> None:
        """Close database connection."""
        ...

    async def save_user(
        self, user_id: int, name: str, token: str, email: str | None = None, image: str | None = None
    ) -> None:
        """Create or replace a user."""
        ...

    async def get_user_by_token(self, token: str) -> dict | None:
        """Resolve a bearer token to a user."""
        ...

    async def get_user(self, user_id: int) -> dict | None:
        """Get a user by ID."""
        ...

    async def get_or_create_conversation(self, user_id: int, other_user_id: int) -> dict:
        """Get the one-to-one conversation between two users, creating it if needed."""
        ...

    async def get_conversation(self, conversation_id: int) -> dict | None:
        """Get a conversation by ID."""
        ...

    async def list_conversations(self, user_id: int) -> list[dict]:
        """Conversations of a user with unread counts and last message."""
        ...

    async def delete_conversation(self, conversation_id: int) -> None:
        """Delete a conversation and its messages."""
        ...

    async def save_message(
        self,
        conversation_id: int,
        sender_id: int,
        body: str,
        attachment: dict | None = None,
        client_message_id: int | None = None,
    ) -> dict:
        """Store a message and return it in the wire shape."""
        ...

    async def get_messages(self, conversation_id: int) -> list[dict]:
        """Messages of a conversation, oldest first."""
        ...

    async def get_message(self, message_id: int) -> dict | None:
        """Get a message by ID."""
        ...

    async def delete_message(self, message_id: int) -> None:
        """Delete a message."""
        ...

    async def mark_read(self, conversation_id: int, reader_id: int) -> int:
        """Mark the other participant's messages read. Returns rows changed."""
        ...

    async def unread_count(self, user_id: int) -> int:
        """Unread incoming messages across all conversations."""
        ...

    async def clear(self) -> None:
        """Clear all data."""
        ...


class DevStorage:
    """SQLite storage implementation."""

    def __init__(self, db_path: str | Path | None = None):
        self._db_path = resolve_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None

    @property
    def initialized(self) -> bool:
        return self._conn is not None

    async def init(self) -> None:
        """Initialize database and create tables."""
        if str(self._db_path) != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self._db_path)

        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, "r", encoding="utf-8") as f:
            schema_sql = f.read()
        await self._conn.executescript(schema_sql)
        await self._conn.commit()

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    def _db(self) -> aiosqlite.Connection:
        if not self._conn:
            raise RuntimeError("Storage not initialized")
        return self._conn

    # Users
    async def save_user(
        self, user_id: int, name: str, token: str, email: str | None = None, image: str | None = None
    ) -> None:
        """Create or replace a user."""
        conn = self._db()
        await conn.execute(
            """
            INSERT OR REPLACE INTO users (id, name, email, image, token)
            VALUES (?, ?, ?, ?, ?)
            """,
            (user_id, name, email, image, token),
        )
        await conn.commit()

    async def get_user_by_token(self, token: str) -> dict | None:
        """Resolve a bearer token to a user."""
        cursor = await self._db().execute(
            "SELECT id, name, email, image FROM users WHERE token = ?", (token,)
        )
        row = await cursor.fetchone()
        if not row:
            return None
        return {"id": row[0], "name": row[1], "email": row[2], "image": row[3]}

    async def get_user(self, user_id: int) -> dict | None:
        """Get a user by ID."""
        cursor = await self._db().execute(
            "SELECT id, name, email, image FROM users WHERE id = ?", (user_id,)
        )
        row = await cursor.fetchone()
        if not row:
            return None
        return {"id": row[0], "name": row[1], "email": row[2], "image": row[3]}

    # Conversations
    async def get_or_create_conversation(self, user_id: int, other_user_id: int) -> dict:
        """Get the one-to-one conversation between two users, creating it if needed."""
        conn = self._db()
        one, two = sorted((user_id, other_user_id))
        await conn.execute(
            """
            INSERT OR IGNORE INTO conversations (user_one_id, user_two_id, created_at)
            VALUES (?, ?, ?)
            """,
            (one, two, _now()),
        )
        await conn.commit()

        cursor = await conn.execute(
            """
            SELECT id, user_one_id, user_two_id, created_at
            FROM conversations
            WHERE user_one_id = ? AND user_two_id = ?
            """,
            (one, two),
        )
        row = await cursor.fetchone()
        return {"id": row[0], "user_one_id": row[1], "user_two_id": row[2], "created_at": row[3]}

    async def get_conversation(self, conversation_id: int) -> dict | None:
        """Get a conversation by ID."""
        cursor = await self._db().execute(
            """
            SELECT id, user_one_id, user_two_id, created_at
            FROM conversations
            WHERE id = ?
            """,
            (conversation_id,),
        )
        row = await cursor.fetchone()
        if not row:
            return None
        return {"id": row[0], "user_one_id": row[1], "user_two_id": row[2], "created_at": row[3]}

    async def list_conversations(self, user_id: int) -> list[dict]:
        """Conversations of a user with unread counts and last message."""
        conn = self._db()
        cursor = await conn.execute(
            """
            SELECT c.id,
                   CASE WHEN c.user_one_id = ? THEN c.user_two_id ELSE c.user_one_id END,
                   (SELECT COUNT(*) FROM messages m
                     WHERE m.conversation_id = c.id AND m.sender_id != ? AND m.is_read = 0),
                   (SELECT MAX(m.id) FROM messages m WHERE m.conversation_id = c.id)
            FROM conversations c
            WHERE c.user_one_id = ? OR c.user_two_id = ?
            ORDER BY COALESCE(
                (SELECT MAX(m.id) FROM messages m WHERE m.conversation_id = c.id), 0
            ) DESC, c.id DESC
            """,
            (user_id, user_id, user_id, user_id),
        )
        rows = await cursor.fetchall()

        conversations = []
        for row in rows:
            conversations.append(
                {
                    "id": row[0],
                    "other_user": await self.get_user(row[1]),
                    "unread_count": row[2],
                    "last_message": await self.get_message(row[3]) if row[3] else None,
                }
            )
        return conversations

    async def delete_conversation(self, conversation_id: int) -> None:
        """Delete a conversation and its messages."""
        conn = self._db()
        await conn.execute("DELETE FROM messages WHERE conversation_id = ?", (conversation_id,))
        await conn.execute("DELETE FROM conversations WHERE id = ?", (conversation_id,))
        await conn.commit()

    # Messages
    async def save_message(
        self,
        conversation_id: int,
        sender_id: int,
        body: str,
        attachment: dict | None = None,
        client_message_id: int | None = None,
    ) -> dict:
        """Store a message and return it in the wire shape.

        ``attachment`` carries ``name``, ``type``, ``mime`` and ``data``.
        """
        conn = self._db()
        cursor = await conn.execute(
            """
            INSERT INTO messages (
                conversation_id, sender_id, body,
                attachment_type, attachment_name, attachment_size,
                attachment_mime, attachment_data, client_message_id, created_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                conversation_id,
                sender_id,
                body,
                attachment["type"] if attachment else None,
                attachment["name"] if attachment else None,
                len(attachment["data"]) if attachment else None,
                attachment["mime"] if attachment else None,
                attachment["data"] if attachment else None,
                client_message_id,
                _now(),
            ),
        )
        message_id = cursor.lastrowid

        if attachment:
            await conn.execute(
                "UPDATE messages SET attachment_path = ? WHERE id = ?",
                (f"chat/attachments/{message_id}/{attachment['name']}", message_id),
            )
        await conn.commit()

        return await self.get_message(message_id)

    async def get_messages(self, conversation_id: int) -> list[dict]:
        """Messages of a conversation, oldest first."""
        cursor = await self._db().execute(
            f"""
            SELECT {MESSAGE_COLUMNS}
            FROM messages m
            LEFT JOIN users u ON u.id = m.sender_id
            WHERE m.conversation_id = ?
            ORDER BY m.id ASC
            """,
            (conversation_id,),
        )
        rows = await cursor.fetchall()
        return [_message_from_row(row) for row in rows]

    async def get_message(self, message_id: int) -> dict | None:
        """Get a message by ID."""
        cursor = await self._db().execute(
            f"""
            SELECT {MESSAGE_COLUMNS}
            FROM messages m
            LEFT JOIN users u ON u.id = m.sender_id
            WHERE m.id = ?
            """,
            (message_id,),
        )
        row = await cursor.fetchone()
        return _message_from_row(row) if row else None

    async def delete_message(self, message_id: int) -> None:
        """Delete a message."""
        conn = self._db()
        await conn.execute("DELETE FROM messages WHERE id = ?", (message_id,))
        await conn.commit()

    async def mark_read(self, conversation_id: int, reader_id: int) -> int:
        """Mark the other participant's messages read. Returns rows changed."""
        conn = self._db()
        cursor = await conn.execute(
            """
            UPDATE messages
            SET is_read = 1, read_at = ?
            WHERE conversation_id = ? AND sender_id != ? AND is_read = 0
            """,
            (_now(), conversation_id, reader_id),
        )
        await conn.commit()
        return cursor.rowcount

    async def unread_count(self, user_id: int) -> int:
        """Unread incoming messages across all conversations."""
        cursor = await self._db().execute(
            """
            SELECT COUNT(*)
            FROM messages m
            JOIN conversations c ON c.id = m.conversation_id
            WHERE (c.user_one_id = ? OR c.user_two_id = ?)
              AND m.sender_id != ?
              AND m.is_read = 0
            """,
            (user_id, user_id, user_id),
        )
        row = await cursor.fetchone()
        return row[0] if row else 0

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        conn = self._db()
        for table in ["messages", "conversations", "users"]:
            await conn.execute(f"DELETE FROM {table}")
        await conn.commit()
