# =============================================================================
# Notify Module
# =============================================================================
# Pushes spam alerts to Telegram.
#
# Features:
#   - Markdown-formatted spam alerts and batch summaries
#   - Persistent, bounded retry queue for alerts that failed to send
#   - Non-reentrant queue draining with a fixed attempt limit
# =============================================================================

from smsguard.notify.dispatcher import DrainResult, NotificationDispatcher, format_alert
from smsguard.notify.queue import NotificationQueue
from smsguard.notify.telegram import (
    ChannelError,
    NotificationError,
    TelegramChannel,
    escape_markdown,
)

__all__ = [
    "ChannelError",
    "DrainResult",
    "NotificationDispatcher",
    "NotificationError",
    "NotificationQueue",
    "TelegramChannel",
    "escape_markdown",
    "format_alert",
]
