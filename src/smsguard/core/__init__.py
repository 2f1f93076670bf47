# =============================================================================
# SMSGuard Core Module
# =============================================================================
# Core domain models. These are plain dataclasses with no external
# dependencies, so they can be imported anywhere without circular imports.
#
#   - Message: An SMS and its classification state
#   - ClassificationResult: Verdict + confidence + reason
#   - QueueEntry: A spam alert waiting for redelivery
#   - MessageStats: Aggregate counts over stored messages
# =============================================================================

from smsguard.core.message import (
    Message,
    MessageStats,
    Verdict,
    generate_message_id,
)
from smsguard.core.queue_entry import QueueEntry, generate_queue_id
from smsguard.core.result import ClassificationResult

__all__ = [
    "ClassificationResult",
    "Message",
    "MessageStats",
    "QueueEntry",
    "Verdict",
    "generate_message_id",
    "generate_queue_id",
]
