# =============================================================================
# Message Model
# =============================================================================
# Represents a single SMS as SMSGuard sees it:
#   - Envelope (sender, arrival time)
#   - Body text
#   - Classification state (verdict, confidence, reason)
#
# A message is created UNCLASSIFIED when it enters the pipeline and receives
# its verdict once classification finishes. Re-classifying a message simply
# overwrites the previous verdict.
# =============================================================================

import time
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from smsguard.core.result import ClassificationResult


class Verdict(Enum):
    """
    Classification state of a message.

    Stored in the database as a nullable integer:
        - SPAM -> 1
        - HAM -> 0
        - UNCLASSIFIED -> NULL
    """
    UNCLASSIFIED = "unclassified"
    SPAM = "spam"
    HAM = "ham"

    @classmethod
    def from_flag(cls, is_spam: bool | None) -> "Verdict":
        """Map the stored nullable spam flag to a Verdict."""
        if is_spam is None:
            return cls.UNCLASSIFIED
        return cls.SPAM if is_spam else cls.HAM

    def to_flag(self) -> int | None:
        """Map the verdict to the stored nullable spam flag."""
        if self is Verdict.UNCLASSIFIED:
            return None
        return 1 if self is Verdict.SPAM else 0


def generate_message_id() -> str:
    """
    Generate a unique message ID.

    Format is "<epoch ms>-<9 hex chars>", so IDs sort roughly by creation
    time and stay readable in logs.
    """
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


@dataclass
class Message:
    """
    Represents an SMS message.

    Attributes:
        id: Unique message ID. Either assigned by the message source
            (backlog scans) or generated on arrival.
        sender: Sender address or short code (e.g., "+15551234567", "VK-HDFCBK").
        body: Message text.
        timestamp: When the message arrived on the device.
        verdict: Current classification state.
        confidence: Confidence of the verdict (0.0-1.0), None until classified.
        reason: Human-readable explanation of the verdict.
        classified_at: When the verdict was computed.

    Example:
        >>> message = Message(
        ...     id="1700000000000-abc123def",
        ...     sender="+15551234567",
        ...     body="Your OTP is 654321",
        ...     timestamp=datetime.now(),
        ... )
    """

    id: str
    sender: str
    body: str
    timestamp: datetime

    # Classification state
    verdict: Verdict = Verdict.UNCLASSIFIED
    confidence: float | None = None
    reason: str | None = None
    classified_at: datetime | None = None

    @property
    def is_spam(self) -> bool:
        """Returns True if the message was classified as spam."""
        return self.verdict is Verdict.SPAM

    @property
    def is_classified(self) -> bool:
        """Returns True once a verdict has been recorded."""
        return self.verdict is not Verdict.UNCLASSIFIED

    def apply(self, result: ClassificationResult, when: datetime | None = None) -> None:
        """
        Record a classification result on this message.

        Args:
            result: Result to apply.
            when: Classification time. Defaults to now.
        """
        self.verdict = Verdict.SPAM if result.is_spam else Verdict.HAM
        self.confidence = result.confidence
        self.reason = result.reason
        self.classified_at = when or datetime.now()

    @property
    def preview(self) -> str:
        """Returns a single-line preview of the body (first ~60 chars)."""
        text = " ".join(self.body.split())
        if len(text) > 60:
            return text[:57] + "..."
        return text

    def __str__(self) -> str:
        """Human-readable representation."""
        return f"[{self.verdict.value}] {self.sender}: {self.preview}"

    def __repr__(self) -> str:
        """Developer-friendly representation."""
        return (
            f"Message(id={self.id!r}, sender={self.sender!r}, "
            f"verdict={self.verdict.name}, confidence={self.confidence})"
        )


@dataclass
class MessageStats:
    """
    Aggregate counts over stored messages.

    Attributes:
        total: Number of stored messages.
        spam: Messages classified as spam.
        ham: Messages classified as ham.
        unclassified: Messages still waiting for a verdict.
    """
    total: int = 0
    spam: int = 0
    ham: int = 0
    unclassified: int = 0

    @property
    def spam_rate(self) -> float:
        """Fraction of classified messages that are spam (0.0 if none)."""
        classified = self.spam + self.ham
        if classified == 0:
            return 0.0
        return self.spam / classified
