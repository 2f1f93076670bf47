# =============================================================================
# Ingest Module
# =============================================================================
# Brings SMS into SMSGuard.
#
# Features:
#   - Live arrivals via a background monitor
#   - Backlog scans of the inbox (already-stored messages are skipped)
#   - Re-classification of messages left without a verdict
#   - Async event callbacks for UIs
# =============================================================================

from smsguard.ingest.coordinator import (
    EventCallback,
    EventKind,
    IngestionCoordinator,
    IngestionEvent,
)
from smsguard.ingest.monitor import MessageMonitor
from smsguard.ingest.source import IncomingMessage, MemoryMessageSource, MessageSource

__all__ = [
    "EventCallback",
    "EventKind",
    "IncomingMessage",
    "IngestionCoordinator",
    "IngestionEvent",
    "MemoryMessageSource",
    "MessageMonitor",
    "MessageSource",
]
