# =============================================================================
# Notification Retry Queue
# =============================================================================
# Bounded FIFO of spam alerts that failed to send, persisted in SQLite so
# they survive restarts.
#
# Rules:
#   - At capacity, pushing evicts the oldest entry first
#   - Every failed retry increments the entry's attempt counter
#   - An entry whose attempts reach max_attempts is removed
#
# Callers never touch attempt counts directly; they report outcomes through
# complete() and record_failure(). One lock serialises every mutation, so
# concurrent pushes can never grow the queue past capacity.
# =============================================================================

import asyncio
import logging
from datetime import datetime

from smsguard.core import QueueEntry
from smsguard.storage import Repository

logger = logging.getLogger(__name__)


class NotificationQueue:
    """
    Persistent bounded retry queue.

    Usage:
        >>> queue = NotificationQueue(repo, capacity=50, max_attempts=3)
        >>> await queue.push(entry)
        >>> for entry in await queue.pending():
        ...     try:
        ...         await send(entry)
        ...         await queue.complete(entry)
        ...     except ChannelError:
        ...         dropped = await queue.record_failure(entry)

    Attributes:
        repo: Repository holding the queue table.
        capacity: Maximum number of entries.
        max_attempts: Failed retries before an entry is dropped.
    """

    def __init__(self, repo: Repository, *, capacity: int = 50, max_attempts: int = 3) -> None:
        self.repo = repo
        self.capacity = capacity
        self.max_attempts = max_attempts
        self._lock = asyncio.Lock()

    async def push(self, entry: QueueEntry) -> None:
        """Add an entry, evicting the oldest ones if the queue is full."""
        async with self._lock:
            while await self.repo.queue_size() >= self.capacity:
                evicted = await self.repo.evict_oldest_queue_entry()
                if evicted is None:
                    break
                logger.warning(f"Notification queue full, evicted oldest entry {evicted}")

            await self.repo.enqueue_notification(entry)
            logger.info(f"Queued spam alert for retry. Queue size: {await self.repo.queue_size()}")

    async def pending(self) -> list[QueueEntry]:
        """Entries still eligible for a retry, oldest first."""
        return await self.repo.list_queue(max_attempts=self.max_attempts)

    async def complete(self, entry: QueueEntry) -> None:
        """Remove an entry after successful delivery."""
        async with self._lock:
            await self.repo.remove_from_queue(entry.id)

    async def record_failure(self, entry: QueueEntry) -> bool:
        """
        Record a failed retry.

        Returns:
            True if the entry hit max_attempts and was dropped.
        """
        now = datetime.now()
        async with self._lock:
            attempts = await self.repo.increment_attempt(entry.id, now)
            entry.attempts = attempts
            entry.last_attempt = now

            if attempts < self.max_attempts:
                return False
            await self.repo.remove_from_queue(entry.id)

        logger.warning(
            f"Dropping spam alert for message {entry.message_id} "
            f"after {attempts} failed attempts"
        )
        return True

    async def size(self) -> int:
        return await self.repo.queue_size()

    async def clear(self) -> int:
        """Remove every entry. Returns the number removed."""
        async with self._lock:
            return await self.repo.clear_queue()
