# =============================================================================
# Repository - Data Access Layer
# =============================================================================
# Provides the persistence operations the pipeline needs.
#
# This is the main interface between the application logic and the database.
# It handles:
#   - Converting between domain models and database rows
#   - Message inserts (at-most-once per ID) and verdict updates
#   - Aggregate statistics
#   - The notification retry queue
#
# All methods are async for non-blocking database access. Errors from
# aiosqlite propagate to the caller.
# =============================================================================

from datetime import datetime
from typing import TYPE_CHECKING

from smsguard.core import ClassificationResult, Message, MessageStats, QueueEntry, Verdict

if TYPE_CHECKING:
    from smsguard.storage.database import Database


MESSAGE_COLUMNS = "id, sender, body, timestamp, is_spam, confidence, reason, classified_at"
QUEUE_COLUMNS = "id, message_id, sender, body, timestamp, attempts, last_attempt"


def to_millis(value: datetime) -> int:
    """Convert a datetime to epoch milliseconds."""
    return int(value.timestamp() * 1000)


def from_millis(value: int) -> datetime:
    """Convert epoch milliseconds to a local datetime."""
    return datetime.fromtimestamp(value / 1000)


class Repository:
    """
    Data access layer for SMSGuard.

    Usage:
        >>> repo = Repository(database)
        >>> await repo.insert_message(message)
        >>> await repo.update_verdict(message.id, result)
        >>> stats = await repo.get_stats()

    Attributes:
        db: Database instance for executing queries.
    """

    def __init__(self, db: "Database") -> None:
        """
        Initialize the repository.

        Args:
            db: Connected Database instance.
        """
        self.db = db

    # =========================================================================
    # Message Operations
    # =========================================================================

    async def insert_message(self, message: Message) -> bool:
        """
        Store a new message.

        Messages are written at most once: inserting an ID that already
        exists leaves the stored row untouched.

        Args:
            message: Message to store.

        Returns:
            True if a row was written, False if the ID already existed.
        """
        cursor = await self.db.conn.execute(
            f"""INSERT OR IGNORE INTO sms_messages ({MESSAGE_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (message.id, message.sender, message.body,
             to_millis(message.timestamp),
             message.verdict.to_flag(), message.confidence, message.reason,
             to_millis(message.classified_at) if message.classified_at else None)
        )
        await self.db.conn.commit()
        return cursor.rowcount > 0

    async def update_verdict(
        self,
        message_id: str,
        result: ClassificationResult,
        classified_at: datetime | None = None,
    ) -> None:
        """
        Record a classification result for a stored message.

        Re-classifying overwrites the previous verdict.

        Args:
            message_id: ID of the message.
            result: Classification to record.
            classified_at: Classification time. Defaults to now.
        """
        when = classified_at or datetime.now()
        await self.db.conn.execute(
            """UPDATE sms_messages SET
               is_spam = ?, confidence = ?, reason = ?, classified_at = ?
               WHERE id = ?""",
            (int(result.is_spam), result.confidence, result.reason,
             to_millis(when), message_id)
        )
        await self.db.conn.commit()

    async def get_message(self, message_id: str) -> Message | None:
        """
        Get a message by ID.

        Returns:
            Message if found, None otherwise.
        """
        async with self.db.conn.execute(
            f"SELECT {MESSAGE_COLUMNS} FROM sms_messages WHERE id = ?",
            (message_id,)
        ) as cursor:
            row = await cursor.fetchone()
            return self._row_to_message(row) if row else None

    async def get_messages(self, *, limit: int = 100, offset: int = 0) -> list[Message]:
        """
        Get stored messages, newest first.

        Args:
            limit: Maximum number of messages to return.
            offset: Number of messages to skip (for pagination).
        """
        async with self.db.conn.execute(
            f"""SELECT {MESSAGE_COLUMNS} FROM sms_messages
                ORDER BY timestamp DESC LIMIT ? OFFSET ?""",
            (limit, offset)
        ) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_message(row) for row in rows]

    async def get_messages_since(self, since: datetime) -> list[Message]:
        """Get messages that arrived at or after the given time, newest first."""
        async with self.db.conn.execute(
            f"""SELECT {MESSAGE_COLUMNS} FROM sms_messages
                WHERE timestamp >= ? ORDER BY timestamp DESC""",
            (to_millis(since),)
        ) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_message(row) for row in rows]

    async def list_unclassified(self, limit: int = 10) -> list[Message]:
        """Get messages still waiting for a verdict, newest first."""
        async with self.db.conn.execute(
            f"""SELECT {MESSAGE_COLUMNS} FROM sms_messages
                WHERE is_spam IS NULL ORDER BY timestamp DESC LIMIT ?""",
            (limit,)
        ) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_message(row) for row in rows]

    async def get_known_ids(self, message_ids: list[str]) -> set[str]:
        """
        Return which of the given IDs are already stored.

        Used by backlog scans to skip messages seen before.
        """
        if not message_ids:
            return set()

        placeholders = ", ".join("?" for _ in message_ids)
        async with self.db.conn.execute(
            f"SELECT id FROM sms_messages WHERE id IN ({placeholders})",
            message_ids
        ) as cursor:
            rows = await cursor.fetchall()
            return {row[0] for row in rows}

    async def get_stats(self) -> MessageStats:
        """Count stored messages by verdict."""
        async with self.db.conn.execute(
            """SELECT
                   COUNT(*),
                   COALESCE(SUM(CASE WHEN is_spam = 1 THEN 1 ELSE 0 END), 0),
                   COALESCE(SUM(CASE WHEN is_spam = 0 THEN 1 ELSE 0 END), 0),
                   COALESCE(SUM(CASE WHEN is_spam IS NULL THEN 1 ELSE 0 END), 0)
               FROM sms_messages"""
        ) as cursor:
            row = await cursor.fetchone()
            return MessageStats(total=row[0], spam=row[1], ham=row[2], unclassified=row[3])

    def _row_to_message(self, row) -> Message:
        """Convert a database row to a Message object."""
        return Message(
            id=row[0],
            sender=row[1],
            body=row[2],
            timestamp=from_millis(row[3]),
            verdict=Verdict.from_flag(None if row[4] is None else bool(row[4])),
            confidence=row[5],
            reason=row[6],
            classified_at=from_millis(row[7]) if row[7] is not None else None,
        )

    # =========================================================================
    # Notification Queue Operations
    # =========================================================================

    async def enqueue_notification(self, entry: QueueEntry) -> None:
        """Append an entry to the retry queue."""
        await self.db.conn.execute(
            f"""INSERT INTO notification_queue ({QUEUE_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (entry.id, entry.message_id, entry.sender, entry.body,
             to_millis(entry.timestamp), entry.attempts,
             to_millis(entry.last_attempt) if entry.last_attempt else None)
        )
        await self.db.conn.commit()

    async def list_queue(
        self,
        *,
        max_attempts: int | None = None,
        limit: int | None = None,
    ) -> list[QueueEntry]:
        """
        Get queued entries in FIFO order.

        Args:
            max_attempts: Only return entries with fewer attempts than this.
            limit: Maximum number of entries to return.
        """
        query = f"SELECT {QUEUE_COLUMNS} FROM notification_queue"
        params: list = []

        if max_attempts is not None:
            query += " WHERE attempts < ?"
            params.append(max_attempts)

        query += " ORDER BY seq ASC"

        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        async with self.db.conn.execute(query, params) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_queue_entry(row) for row in rows]

    async def queue_size(self) -> int:
        """Number of entries in the retry queue."""
        async with self.db.conn.execute(
            "SELECT COUNT(*) FROM notification_queue"
        ) as cursor:
            row = await cursor.fetchone()
            return row[0] if row else 0

    async def evict_oldest_queue_entry(self) -> str | None:
        """
        Remove the oldest queued entry.

        Returns:
            ID of the removed entry, or None if the queue was empty.
        """
        async with self.db.conn.execute(
            "SELECT seq, id FROM notification_queue ORDER BY seq ASC LIMIT 1"
        ) as cursor:
            row = await cursor.fetchone()

        if not row:
            return None

        await self.db.conn.execute(
            "DELETE FROM notification_queue WHERE seq = ?", (row[0],)
        )
        await self.db.conn.commit()
        return row[1]

    async def increment_attempt(self, entry_id: str, when: datetime | None = None) -> int:
        """
        Record a failed delivery attempt.

        Returns:
            The new attempt count (0 if the entry no longer exists).
        """
        await self.db.conn.execute(
            """UPDATE notification_queue
               SET attempts = attempts + 1, last_attempt = ?
               WHERE id = ?""",
            (to_millis(when or datetime.now()), entry_id)
        )
        await self.db.conn.commit()

        async with self.db.conn.execute(
            "SELECT attempts FROM notification_queue WHERE id = ?", (entry_id,)
        ) as cursor:
            row = await cursor.fetchone()
            return row[0] if row else 0

    async def remove_from_queue(self, entry_id: str) -> None:
        """Delete an entry from the retry queue."""
        await self.db.conn.execute(
            "DELETE FROM notification_queue WHERE id = ?", (entry_id,)
        )
        await self.db.conn.commit()

    async def clear_queue(self) -> int:
        """
        Delete every queued entry.

        Returns:
            Number of entries removed.
        """
        cursor = await self.db.conn.execute("DELETE FROM notification_queue")
        await self.db.conn.commit()
        return cursor.rowcount

    def _row_to_queue_entry(self, row) -> QueueEntry:
        """Convert a database row to a QueueEntry object."""
        return QueueEntry(
            id=row[0],
            message_id=row[1],
            sender=row[2],
            body=row[3],
            timestamp=from_millis(row[4]),
            attempts=row[5],
            last_attempt=from_millis(row[6]) if row[6] is not None else None,
        )
