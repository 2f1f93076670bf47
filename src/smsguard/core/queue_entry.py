# =============================================================================
# Notification Queue Entry
# =============================================================================
# A spam alert that could not be delivered and is waiting for a retry.
#
# Entries are created with attempts=0 when the first send fails. Every failed
# retry bumps the attempt counter; once it reaches the configured maximum the
# entry is dropped. Only the notification queue reads or writes these.
# =============================================================================

import time
import uuid
from dataclasses import dataclass
from datetime import datetime


def generate_queue_id() -> str:
    """Generate a unique queue entry ID ("nq_<epoch ms>_<9 hex chars>")."""
    return f"nq_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


@dataclass
class QueueEntry:
    """
    A pending spam notification.

    Attributes:
        id: Queue entry ID.
        message_id: ID of the spam message this alert is about.
        sender: Sender of the spam message.
        body: Body of the spam message.
        timestamp: Arrival time of the spam message.
        attempts: Number of failed retry attempts so far.
        last_attempt: When the last retry happened.
    """
    id: str
    message_id: str
    sender: str
    body: str
    timestamp: datetime
    attempts: int = 0
    last_attempt: datetime | None = None

    def __post_init__(self) -> None:
        if self.attempts < 0:
            raise ValueError(f"attempts must be >= 0, got {self.attempts}")

    def __repr__(self) -> str:
        return (
            f"QueueEntry(id={self.id!r}, message_id={self.message_id!r}, "
            f"attempts={self.attempts})"
        )
