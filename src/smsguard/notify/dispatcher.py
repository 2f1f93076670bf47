# =============================================================================
# Notification Dispatcher
# =============================================================================
# Turns spam verdicts into Telegram alerts and keeps retrying the ones that
# fail.
#
# Flow:
#   notify_spam(message) -> format alert -> channel.send()
#                                              |
#                                      failure: queue.push(attempts=0)
#
#   drain_queue() -> for each pending entry (FIFO):
#                        send -> complete       (sent)
#                             -> record_failure (kept, or dropped = failed)
#
# Only one drain runs at a time; a second concurrent call returns at once
# without touching the queue. Nothing here raises on delivery problems:
# outcomes are reported through return values and logs.
# =============================================================================

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable

from smsguard.config import NotificationConfig
from smsguard.core import Message, QueueEntry, generate_queue_id
from smsguard.notify.queue import NotificationQueue
from smsguard.notify.telegram import NotificationError, TelegramChannel, escape_markdown
from smsguard.spam.tokenizer import truncate_text

logger = logging.getLogger(__name__)

ALERT_FOOTER = "SMSGuard"
MAX_ALERT_BODY_CHARS = 200
MAX_ALERT_REASON_CHARS = 100
TEST_MESSAGE = "✅ Test notification from SMSGuard"


@dataclass
class DrainResult:
    """
    Outcome of one drain_queue() pass.

    Attributes:
        sent: Entries delivered and removed.
        failed: Entries dropped after reaching the attempt limit.
    """
    sent: int = 0
    failed: int = 0


def format_alert(
    *,
    sender: str,
    body: str,
    timestamp: datetime,
    confidence: float | None,
    reason: str | None,
    timestamp_format: str = "%Y-%m-%d %H:%M",
) -> str:
    """Build the Markdown text of a spam alert."""
    confidence_text = f"{round(confidence * 100)}%" if confidence is not None else "N/A"
    reason_text = escape_markdown(truncate_text(reason, MAX_ALERT_REASON_CHARS)) if reason else "N/A"

    return (
        "\U0001F6A8 *Spam Detected*\n"
        "\n"
        f"*From:* {escape_markdown(sender or 'Unknown')}\n"
        f"*Time:* {timestamp.strftime(timestamp_format)}\n"
        f"*Confidence:* {confidence_text}\n"
        "\n"
        "*Message:*\n"
        f"{escape_markdown(truncate_text(body, MAX_ALERT_BODY_CHARS))}\n"
        "\n"
        "*Reason:*\n"
        f"{reason_text}\n"
        "\n"
        "---\n"
        f"{ALERT_FOOTER}"
    )


def format_batch_summary(total: int, spam: int, ham: int) -> str:
    """Build the Markdown text of a batch processing summary."""
    def percent(count: int) -> int:
        return round(count / total * 100) if total else 0

    return (
        "\U0001F4CA *Batch Processing Summary*\n"
        "\n"
        f"*Total Messages:* {total}\n"
        f"*Spam Detected:* {spam} ({percent(spam)}%)\n"
        f"*Ham Messages:* {ham} ({percent(ham)}%)\n"
        "\n"
        "---\n"
        f"{ALERT_FOOTER}"
    )


class NotificationDispatcher:
    """
    Sends spam alerts with an offline retry queue.

    Usage:
        >>> dispatcher = NotificationDispatcher(queue, channel, config.notifications)
        >>> await dispatcher.notify_spam(message)      # False means queued or disabled
        >>> result = await dispatcher.drain_queue()
        >>> print(f"{result.sent} sent, {result.failed} dropped")

    Attributes:
        queue: Persistent retry queue.
        config: Notification configuration snapshot.
    """

    def __init__(
        self,
        queue: NotificationQueue,
        channel: TelegramChannel | None = None,
        config: NotificationConfig | None = None,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """
        Initialize the dispatcher.

        Args:
            queue: Retry queue.
            channel: Telegram channel. None disables sending.
            config: Notification configuration. Defaults are used if None.
            sleep: Async sleep used between queued sends (injectable for tests).
        """
        self.queue = queue
        self.config = config or NotificationConfig()
        self._channel = channel
        self._sleep = sleep
        self._drain_lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def channel(self) -> TelegramChannel | None:
        return self._channel

    @property
    def is_active(self) -> bool:
        """True if alerts can actually be sent."""
        return self._channel is not None and self.config.enabled

    async def initialize(self, config: NotificationConfig) -> None:
        """
        Apply a notification configuration snapshot.

        Builds a Telegram channel when the config carries a bot token and
        chat ID; otherwise alerts are disabled. Any previous channel is
        closed. Queued entries are kept.
        """
        await self.reset()
        self.config = config
        self.queue.capacity = config.queue_capacity
        self.queue.max_attempts = config.max_attempts

        if config.is_configured:
            self._channel = TelegramChannel(
                config.bot_token,
                config.chat_id,
                timeout=config.timeout_seconds,
            )
            logger.info("Telegram notifications enabled")
        else:
            logger.info("Telegram notifications not configured")

    async def reset(self) -> None:
        """Drop the channel. The persistent queue is left as is."""
        if self._channel is not None:
            await self._channel.close()
            self._channel = None

    async def close(self) -> None:
        await self.reset()

    # -------------------------------------------------------------------------
    # Sending
    # -------------------------------------------------------------------------

    async def notify_spam(self, message: Message) -> bool:
        """
        Send a spam alert for a message.

        On delivery failure the alert is queued for retry.

        Args:
            message: Classified spam message.

        Returns:
            True if delivered now; False if queued, disabled or unconfigured.
        """
        if not self.is_active:
            logger.debug("Telegram notifications disabled, skipping alert")
            return False

        text = format_alert(
            sender=message.sender,
            body=message.body,
            timestamp=message.timestamp,
            confidence=message.confidence,
            reason=message.reason,
            timestamp_format=self.config.timestamp_format,
        )

        try:
            await self._channel.send(text)
            logger.info(f"Spam alert sent for message {message.id}")
            return True
        except NotificationError as e:
            logger.warning(f"Failed to send spam alert for {message.id}: {e}")
        except Exception as e:
            logger.warning(f"Unexpected error sending spam alert for {message.id}: {e}", exc_info=True)

        await self._enqueue(message)
        return False

    async def drain_queue(self) -> DrainResult:
        """
        Retry queued alerts.

        Only entries pending when the drain starts are processed, oldest
        first, with send_delay_ms between sends.

        Returns:
            DrainResult. (0, 0) if another drain is running or sending is
            disabled.
        """
        if not self.is_active or self._drain_lock.locked():
            return DrainResult()

        async with self._drain_lock:
            result = DrainResult()
            entries = await self.queue.pending()
            delay = self.config.send_delay_ms / 1000

            for index, entry in enumerate(entries):
                if index > 0 and delay > 0:
                    await self._sleep(delay)

                try:
                    await self._channel.send(await self._format_entry(entry))
                except NotificationError as e:
                    logger.warning(f"Retry failed for queued alert {entry.id}: {e}")
                    if await self.queue.record_failure(entry):
                        result.failed += 1
                    continue

                await self.queue.complete(entry)
                result.sent += 1

            logger.info(f"Processed notification queue: {result.sent} sent, {result.failed} failed")
            return result

    async def send_batch_summary(self, total: int, spam: int, ham: int) -> bool:
        """
        Send a summary of a batch run. Not queued on failure.

        Returns:
            True if delivered.
        """
        if not self.is_active or total <= 0:
            return False

        try:
            await self._channel.send(format_batch_summary(total, spam, ham))
            return True
        except NotificationError as e:
            logger.warning(f"Failed to send batch summary: {e}")
            return False

    async def send_test(self) -> tuple[bool, str | None]:
        """
        Send a test message.

        Returns:
            (success, error message or None).
        """
        if self._channel is None:
            return False, "Telegram is not configured"

        try:
            await self._channel.send(TEST_MESSAGE)
            return True, None
        except NotificationError as e:
            return False, str(e)

    async def queue_size(self) -> int:
        return await self.queue.size()

    async def clear_queue(self) -> int:
        """Discard every queued alert. Returns the number removed."""
        return await self.queue.clear()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _enqueue(self, message: Message) -> None:
        entry = QueueEntry(
            id=generate_queue_id(),
            message_id=message.id,
            sender=message.sender,
            body=message.body,
            timestamp=message.timestamp,
        )
        try:
            await self.queue.push(entry)
        except Exception as e:
            logger.error(f"Could not queue spam alert for {message.id}: {e}", exc_info=True)

    async def _format_entry(self, entry: QueueEntry) -> str:
        """Format a queued alert, picking up the verdict details if still stored."""
        stored = await self.queue.repo.get_message(entry.message_id)
        return format_alert(
            sender=entry.sender,
            body=entry.body,
            timestamp=entry.timestamp,
            confidence=stored.confidence if stored else None,
            reason=stored.reason if stored else None,
            timestamp_format=self.config.timestamp_format,
        )
