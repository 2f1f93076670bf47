# =============================================================================
# Ingestion Coordinator
# =============================================================================
# Runs every message through the pipeline:
#
#   store (UNCLASSIFIED) -> classify -> persist verdict -> notify if spam
#
# Three entry points share that pipeline:
#   - on_new_message(): one live arrival
#   - scan_backlog(): inbox messages not seen before
#   - classify_pending(): stored messages still lacking a verdict
#
# Storage errors on a live arrival propagate to the caller; the batch entry
# points log them and move on to the next message. Classification and
# notification never raise. Nothing is rolled back: a message stored before a
# failure stays stored, unclassified, and classify_pending() picks it up.
#
# Progress is reported through async subscriber callbacks (IngestionEvent).
# =============================================================================

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable

from smsguard.config import IngestionConfig
from smsguard.core import Message, MessageStats, generate_message_id
from smsguard.ingest.source import IncomingMessage, MessageSource
from smsguard.notify import DrainResult, NotificationDispatcher
from smsguard.spam import HybridClassifier
from smsguard.storage import Repository

logger = logging.getLogger(__name__)


class EventKind(Enum):
    """What an IngestionEvent reports."""
    STORED = "stored"      # Message stored, not yet classified
    UPDATED = "updated"    # Verdict recorded
    STATS = "stats"        # An entry point finished; stats may have changed


@dataclass
class IngestionEvent:
    """Event emitted to subscribers as messages move through the pipeline."""
    kind: EventKind
    message: Message | None = None


# Type for subscriber callbacks
EventCallback = Callable[[IngestionEvent], Awaitable[None]]


class IngestionCoordinator:
    """
    Stores, classifies and reports incoming SMS.

    Usage:
        >>> coordinator = IngestionCoordinator(repo, classifier, dispatcher, source)
        >>> unsubscribe = coordinator.subscribe(on_event)
        >>> await coordinator.scan_backlog()
        >>> message = await coordinator.on_new_message("+15551234567", "Hi!")
        >>> unsubscribe()

    Attributes:
        repo: Message store.
        classifier: Hybrid classifier.
        dispatcher: Spam alert dispatcher.
        source: Message source used for backlog scans.
        config: Ingestion limits.
    """

    def __init__(
        self,
        repo: Repository,
        classifier: HybridClassifier,
        dispatcher: NotificationDispatcher,
        source: MessageSource | None = None,
        config: IngestionConfig | None = None,
    ) -> None:
        self.repo = repo
        self.classifier = classifier
        self.dispatcher = dispatcher
        self.source = source
        self.config = config or IngestionConfig()
        self._subscribers: list[EventCallback] = []

    # -------------------------------------------------------------------------
    # Subscribers
    # -------------------------------------------------------------------------

    def subscribe(self, callback: EventCallback) -> Callable[[], None]:
        """
        Register an async event callback.

        Returns:
            A function that removes the callback again.
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    async def _emit(self, kind: EventKind, message: Message | None = None) -> None:
        # Subscribers get a copy; the pipeline keeps mutating the original
        snapshot = replace(message) if message is not None else None
        event = IngestionEvent(kind=kind, message=snapshot)
        for callback in list(self._subscribers):
            try:
                await callback(event)
            except Exception as e:
                logger.error(f"Error in ingestion subscriber: {e}", exc_info=True)

    # -------------------------------------------------------------------------
    # Entry Points
    # -------------------------------------------------------------------------

    async def on_new_message(
        self,
        sender: str,
        body: str,
        arrived_at: datetime | None = None,
    ) -> Message:
        """
        Handle one newly arrived message.

        Args:
            sender: Sender address.
            body: Message text.
            arrived_at: Arrival time. Defaults to now.

        Returns:
            The stored message with its verdict applied.

        Raises:
            aiosqlite.Error: If the message or its verdict can't be stored.
        """
        message = Message(
            id=generate_message_id(),
            sender=sender,
            body=body,
            timestamp=arrived_at or datetime.now(),
        )
        logger.info(f"New SMS received from {sender}")

        await self.repo.insert_message(message)
        await self._emit(EventKind.STORED, message)

        await self._classify_and_notify(message)
        await self._emit(EventKind.STATS)
        return message

    async def scan_backlog(self, limit: int | None = None) -> int:
        """
        Import and classify inbox messages that aren't stored yet.

        Args:
            limit: Maximum inbox messages to read. Defaults to the config.

        Returns:
            Number of new messages processed.

        Raises:
            Exception: Whatever the source raises if the inbox can't be read.
        """
        if self.source is None:
            logger.warning("No message source configured, skipping backlog scan")
            return 0

        limit = self.config.backlog_limit if limit is None else limit
        logger.info(f"Loading inbox messages (limit: {limit})")

        incoming = await self.source.get_messages(limit)
        known = await self.repo.get_known_ids([m.id for m in incoming])

        processed: list[Message] = []
        for item in incoming:
            if item.id in known:
                continue
            try:
                message = self._from_incoming(item)
                if not await self.repo.insert_message(message):
                    continue
                await self._emit(EventKind.STORED, message)
                await self._classify_and_notify(message)
                processed.append(message)
            except Exception as e:
                logger.error(f"Error processing inbox message {item.id}: {e}", exc_info=True)

        logger.info(f"Processed {len(processed)} new messages from inbox")

        if processed and self.dispatcher.config.batch_summary:
            spam = sum(1 for m in processed if m.is_spam)
            await self.dispatcher.send_batch_summary(len(processed), spam, len(processed) - spam)

        await self._emit(EventKind.STATS)
        return len(processed)

    async def classify_pending(self, limit: int | None = None) -> int:
        """
        Classify stored messages that have no verdict yet, newest first.

        Args:
            limit: Maximum messages to classify. Defaults to the config.

        Returns:
            Number of messages successfully classified.
        """
        limit = self.config.pending_limit if limit is None else limit
        messages = await self.repo.list_unclassified(limit)
        logger.info(f"Classifying {len(messages)} pending messages")

        classified = 0
        for message in messages:
            try:
                await self._classify_and_notify(message)
                classified += 1
            except Exception as e:
                logger.error(f"Error classifying message {message.id}: {e}", exc_info=True)

        await self._emit(EventKind.STATS)
        return classified

    async def drain_notifications(self) -> DrainResult:
        """Retry queued spam alerts."""
        return await self.dispatcher.drain_queue()

    async def stats(self) -> MessageStats:
        return await self.repo.get_stats()

    # -------------------------------------------------------------------------
    # Pipeline
    # -------------------------------------------------------------------------

    async def _classify_and_notify(self, message: Message) -> None:
        """Classify a stored message, persist the verdict, alert on spam."""
        result = await self.classifier.classify(message.body)
        classified_at = datetime.now()

        await self.repo.update_verdict(message.id, result, classified_at)
        message.apply(result, classified_at)
        await self._emit(EventKind.UPDATED, message)

        if message.is_spam:
            logger.info(f"Spam detected from {message.sender} ({result.confidence_percent}%)")
            await self.dispatcher.notify_spam(message)

    @staticmethod
    def _from_incoming(item: IncomingMessage) -> Message:
        return Message(
            id=item.id,
            sender=item.sender,
            body=item.body,
            timestamp=item.arrived_at,
        )
