# =============================================================================
# SMSGuard Application
# =============================================================================
# Wires every component together from one configuration snapshot and gives
# them a single start/stop lifecycle.
#
#   Config -> Database -> Repository
#          -> HybridClassifier (+ GeminiAdjudicator if a key is set)
#          -> NotificationDispatcher (+ TelegramChannel if configured)
#          -> IngestionCoordinator -> MessageMonitor (if a source is given)
#
# The app manages:
#   - Configuration loading (TOML + keyring)
#   - Database connection
#   - Startup backlog scan and queue drain
#   - Graceful shutdown
# =============================================================================

import logging

from smsguard.config import Config
from smsguard.core import MessageStats
from smsguard.ingest import IngestionCoordinator, MessageMonitor, MessageSource
from smsguard.notify import DrainResult, NotificationDispatcher, NotificationQueue
from smsguard.spam import HybridClassifier
from smsguard.storage import Database, Repository

logger = logging.getLogger(__name__)


class SpamGuard:
    """
    The SMSGuard application.

    Usage:
        >>> async with SpamGuard(source=my_source) as guard:
        ...     guard.coordinator.subscribe(on_event)
        ...     await stop_event.wait()

    Or with explicit lifecycle:
        >>> guard = SpamGuard(Config.load().with_credentials(), source)
        >>> await guard.start()
        >>> await guard.stop()

    Attributes:
        config: Configuration snapshot in use.
        source: Message source, or None for manual ingestion only.
    """

    def __init__(self, config: Config | None = None, source: MessageSource | None = None) -> None:
        """
        Build the component graph. Nothing is opened until start().

        Args:
            config: Configuration snapshot. Loaded from disk and keyring if None.
            source: Message source for live arrivals and backlog scans.
        """
        self.config = config or Config.load().with_credentials()
        self.source = source

        self.database = Database(self.config.resolved_database_path())
        self.repo = Repository(self.database)
        self.classifier = HybridClassifier(trust_threshold=self.config.ai.trust_threshold)
        self.dispatcher = NotificationDispatcher(
            NotificationQueue(
                self.repo,
                capacity=self.config.notifications.queue_capacity,
                max_attempts=self.config.notifications.max_attempts,
            ),
            config=self.config.notifications,
        )
        self.coordinator = IngestionCoordinator(
            self.repo,
            self.classifier,
            self.dispatcher,
            source,
            self.config.ingestion,
        )
        self.monitor = MessageMonitor(self.coordinator, source) if source is not None else None
        self._started = False

    @property
    def is_running(self) -> bool:
        return self._started

    async def __aenter__(self) -> "SpamGuard":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    async def start(self, *, scan_backlog: bool = True) -> None:
        """
        Open storage, configure the network components and start listening.

        Args:
            scan_backlog: Import unseen inbox messages before listening.
        """
        if self._started:
            logger.warning("SpamGuard already started")
            return

        logger.info("Starting SMSGuard")
        await self.database.connect()
        await self.classifier.initialize(self.config.ai)
        await self.dispatcher.initialize(self.config.notifications)
        self._started = True

        await self.drain_notifications()

        if scan_backlog and self.source is not None:
            try:
                await self.coordinator.scan_backlog()
            except Exception as e:
                logger.error(f"Backlog scan failed: {e}", exc_info=True)

        if self.monitor is not None:
            await self.monitor.start()

    async def stop(self) -> None:
        """Stop listening, let in-flight messages finish, release resources."""
        if not self._started:
            return

        logger.info("Stopping SMSGuard")
        if self.monitor is not None:
            await self.monitor.stop()

        await self.dispatcher.close()
        await self.classifier.close()
        await self.database.close()
        self._started = False

    async def drain_notifications(self) -> DrainResult:
        """Retry queued spam alerts, logging instead of raising on storage errors."""
        try:
            return await self.coordinator.drain_notifications()
        except Exception as e:
            logger.error(f"Notification queue drain failed: {e}", exc_info=True)
            return DrainResult()

    async def stats(self) -> MessageStats:
        return await self.coordinator.stats()
