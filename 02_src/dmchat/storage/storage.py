"""SQLite storage implementation."""

import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

import aiosqlite

from ..config import resolve_db_path
from ..models import Conversation, MediaAttachment, Message, Role, TraceEvent

DICE_HISTORY_LIMIT = 5


class IStorage(Protocol):
    """Persistent storage for all system data (SQLite)."""

    async def init(self) -> None:
        """Initialize database and create tables."""
        ...

    async def close(self) -> None:
        """Close database connection."""
        ...

    # Conversations
    async def save_conversation(self, conversation: Conversation) -> None:
        """Create or update a conversation."""
        ...

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        """Get a conversation by ID."""
        ...

    # Messages
    async def save_message(self, conversation_id: str, message: Message) -> None:
        """Append a message at the end of a conversation."""
        ...

    async def get_messages(self, conversation_id: str) -> list[Message]:
        """Get all messages of a conversation in order."""
        ...

    async def update_message_text(
        self, conversation_id: str, message_id: str, text: str
    ) -> bool:
        """Replace the text of a message. False if not found."""
        ...

    async def delete_message(self, conversation_id: str, message_id: str) -> bool:
        """Delete a message. False if not found."""
        ...

    # Drafts
    async def save_draft(self, conversation_id: str, text: str) -> None:
        """Save the unsent input of a conversation. Empty text removes it."""
        ...

    async def get_draft(self, conversation_id: str) -> str:
        """Get the unsent input of a conversation ("" if none)."""
        ...

    # Dice history
    async def record_dice_command(self, command: str) -> None:
        """Remember a dice command (most recent first, bounded)."""
        ...

    async def get_dice_history(self) -> list[str]:
        """Get remembered dice commands, most recent first."""
        ...

    # TraceEvents
    async def save_trace_event(self, event: TraceEvent) -> None:
        """Save a trace event."""
        ...

    async def get_trace_events(
        self,
        after: datetime | None = None,
        event_types: list[str] | None = None,
        actor: str | None = None,
        limit: int = 100,
    ) -> list[TraceEvent]:
        """Get trace events with optional filters."""
        ...

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        ...


class Storage:
    """SQLite storage implementation."""

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            self._db_path = resolve_db_path()
        else:
            self._db_path = resolve_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None

    async def init(self) -> None:
        """Initialize database and create tables."""
        self._conn = await aiosqlite.connect(self._db_path)

        # Read and execute schema
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

    def _require_conn(self) -> aiosqlite.Connection:
        if not self._conn:
            raise RuntimeError("Storage not initialized")
        return self._conn

    # Conversations
    async def save_conversation(self, conversation: Conversation) -> None:
        """Create or update a conversation."""
        conn = self._require_conn()
        await conn.execute(
            """
            INSERT OR REPLACE INTO conversations (id, title, parent_id, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (
                conversation.id,
                conversation.title,
                conversation.parent_id,
                conversation.created_at.isoformat(),
            ),
        )
        await conn.commit()

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        """Get a conversation by ID."""
        conn = self._require_conn()
        cursor = await conn.execute(
            """
            SELECT id, title, parent_id, created_at
            FROM conversations
            WHERE id = ?
            """,
            (conversation_id,),
        )
        row = await cursor.fetchone()

        if not row:
            return None

        return Conversation(
            id=row[0],
            title=row[1],
            parent_id=row[2],
            created_at=datetime.fromisoformat(row[3]),
        )

    # Messages
    async def save_message(self, conversation_id: str, message: Message) -> None:
        """Append a message at the end of a conversation."""
        conn = self._require_conn()

        # Generate ID if not provided
        msg_id = message.id or str(uuid.uuid4())

        await conn.execute(
            """
            INSERT INTO messages (conversation_id, id, role, text, attachments)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                conversation_id,
                msg_id,
                message.role.value,
                message.text,
                json.dumps(
                    [
                        {"mimeType": att.mime_type, "data": att.data}
                        for att in message.attachments
                    ]
                ),
            ),
        )
        await conn.commit()

    async def get_messages(self, conversation_id: str) -> list[Message]:
        """Get all messages of a conversation in order."""
        conn = self._require_conn()
        cursor = await conn.execute(
            """
            SELECT id, role, text, attachments
            FROM messages
            WHERE conversation_id = ?
            ORDER BY seq ASC
            """,
            (conversation_id,),
        )
        rows = await cursor.fetchall()

        return [
            Message(
                id=row[0],
                role=Role(row[1]),
                text=row[2],
                attachments=[
                    MediaAttachment(mime_type=att["mimeType"], data=att["data"])
                    for att in json.loads(row[3])
                ],
            )
            for row in rows
        ]

    async def update_message_text(
        self, conversation_id: str, message_id: str, text: str
    ) -> bool:
        """Replace the text of a message. False if not found."""
        conn = self._require_conn()
        cursor = await conn.execute(
            """
            UPDATE messages SET text = ?
            WHERE conversation_id = ? AND id = ?
            """,
            (text, conversation_id, message_id),
        )
        await conn.commit()
        return cursor.rowcount > 0

    async def delete_message(self, conversation_id: str, message_id: str) -> bool:
        """Delete a message. False if not found."""
        conn = self._require_conn()
        cursor = await conn.execute(
            """
            DELETE FROM messages
            WHERE conversation_id = ? AND id = ?
            """,
            (conversation_id, message_id),
        )
        await conn.commit()
        return cursor.rowcount > 0

    # Drafts
    async def save_draft(self, conversation_id: str, text: str) -> None:
        """Save the unsent input of a conversation. Empty text removes it."""
        conn = self._require_conn()

        if not text:
            await conn.execute(
                "DELETE FROM drafts WHERE conversation_id = ?",
                (conversation_id,),
            )
        else:
            await conn.execute(
                """
                INSERT OR REPLACE INTO drafts (conversation_id, text, updated_at)
                VALUES (?, ?, ?)
                """,
                (conversation_id, text, datetime.now(timezone.utc).isoformat()),
            )
        await conn.commit()

    async def get_draft(self, conversation_id: str) -> str:
        """Get the unsent input of a conversation ("" if none)."""
        conn = self._require_conn()
        cursor = await conn.execute(
            "SELECT text FROM drafts WHERE conversation_id = ?",
            (conversation_id,),
        )
        row = await cursor.fetchone()
        return row[0] if row else ""

    # Dice history
    async def record_dice_command(self, command: str) -> None:
        """Remember a dice command (most recent first, bounded)."""
        conn = self._require_conn()

        # Re-inserting moves an existing command to the front
        await conn.execute("DELETE FROM dice_history WHERE command = ?", (command,))
        await conn.execute(
            "INSERT INTO dice_history (command) VALUES (?)", (command,)
        )
        await conn.execute(
            """
            DELETE FROM dice_history
            WHERE seq NOT IN (
                SELECT seq FROM dice_history ORDER BY seq DESC LIMIT ?
            )
            """,
            (DICE_HISTORY_LIMIT,),
        )
        await conn.commit()

    async def get_dice_history(self) -> list[str]:
        """Get remembered dice commands, most recent first."""
        conn = self._require_conn()
        cursor = await conn.execute(
            "SELECT command FROM dice_history ORDER BY seq DESC LIMIT ?",
            (DICE_HISTORY_LIMIT,),
        )
        rows = await cursor.fetchall()
        return [row[0] for row in rows]

    # TraceEvents
    async def save_trace_event(self, event: TraceEvent) -> None:
        """Save a trace event."""
        conn = self._require_conn()

        await conn.execute(
            """
            INSERT INTO trace_events (id, event_type, actor, data, timestamp)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                event.id or str(uuid.uuid4()),
                event.event_type,
                event.actor,
                json.dumps(event.data),
                event.timestamp.isoformat(),
            ),
        )
        await conn.commit()

    async def get_trace_events(
        self,
        after: datetime | None = None,
        event_types: list[str] | None = None,
        actor: str | None = None,
        limit: int = 100,
    ) -> list[TraceEvent]:
        """Get trace events with optional filters."""
        conn = self._require_conn()

        # Build query dynamically
        conditions = []
        params: list = []

        if after:
            conditions.append("timestamp > ?")
            params.append(after.isoformat())
        if event_types:
            placeholders = ",".join("?" * len(event_types))
            conditions.append(f"event_type IN ({placeholders})")
            params.extend(event_types)
        if actor:
            conditions.append("actor = ?")
            params.append(actor)

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        query = f"""
            SELECT id, event_type, actor, data, timestamp
            FROM trace_events
            {where_clause}
            ORDER BY timestamp DESC
            LIMIT ?
        """
        params.append(limit)

        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()

        return [
            TraceEvent(
                id=row[0],
                event_type=row[1],
                actor=row[2],
                data=json.loads(row[3]),
                timestamp=datetime.fromisoformat(row[4]),
            )
            for row in rows
        ]

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        conn = self._require_conn()

        tables = [
            "messages",
            "conversations",
            "drafts",
            "dice_history",
            "trace_events",
        ]

        for table in tables:
            await conn.execute(f"DELETE FROM {table}")

        await conn.commit()
