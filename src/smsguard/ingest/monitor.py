# =============================================================================
# Message Monitor
# =============================================================================
# Background worker that feeds live arrivals into the coordinator.
#
# Key responsibilities:
#   - Consume the source's listen() stream in a background task
#   - Run each arrival through the pipeline in its own task
#   - Graceful shutdown
#
# Stopping cancels only the listener. Messages already accepted finish
# their pipeline (store, classify, notify) before stop() returns, so a
# message is never left half-processed by a shutdown.
# =============================================================================

import asyncio
import logging

from smsguard.ingest.coordinator import IngestionCoordinator
from smsguard.ingest.source import IncomingMessage, MessageSource

logger = logging.getLogger(__name__)


class MessageMonitor:
    """
    Watches a message source and hands arrivals to the coordinator.

    Usage:
        >>> monitor = MessageMonitor(coordinator, source)
        >>> await monitor.start()
        >>> # ... later ...
        >>> await monitor.stop()
    """

    def __init__(self, coordinator: IngestionCoordinator, source: MessageSource) -> None:
        self.coordinator = coordinator
        self.source = source
        self._listener: asyncio.Task | None = None
        self._in_flight: set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        """Check if the monitor is currently listening."""
        return self._listener is not None and not self._listener.done()

    @property
    def in_flight(self) -> int:
        """Number of arrivals still being processed."""
        return len(self._in_flight)

    async def start(self) -> None:
        """Start listening for new messages."""
        if self.is_running:
            logger.warning("MessageMonitor already running")
            return

        self._listener = asyncio.create_task(self._listen(), name="sms-monitor")
        logger.info("SMS monitoring started")

    async def stop(self) -> None:
        """
        Stop listening and wait for in-flight messages to finish.
        """
        if self._listener is not None:
            self._listener.cancel()
            await asyncio.gather(self._listener, return_exceptions=True)
            self._listener = None

        if self._in_flight:
            logger.debug(f"Waiting for {len(self._in_flight)} in-flight messages")
            await asyncio.gather(*self._in_flight, return_exceptions=True)

        logger.info("SMS monitoring stopped")

    async def _listen(self) -> None:
        try:
            async for incoming in self.source.listen():
                task = asyncio.create_task(
                    self._handle(incoming),
                    name=f"sms-{incoming.id}",
                )
                self._in_flight.add(task)
                task.add_done_callback(self._in_flight.discard)
        except asyncio.CancelledError:
            logger.debug("SMS listener cancelled")
            raise
        except Exception as e:
            logger.error(f"SMS listener failed: {e}", exc_info=True)
        else:
            logger.info("Message source closed")

    async def _handle(self, incoming: IncomingMessage) -> None:
        try:
            await self.coordinator.on_new_message(
                incoming.sender,
                incoming.body,
                incoming.arrived_at,
            )
        except Exception as e:
            logger.error(f"Error handling incoming SMS from {incoming.sender}: {e}", exc_info=True)
