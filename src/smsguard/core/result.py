# =============================================================================
# Classification Result
# =============================================================================
# The common output shape of every classification path:
#   - Deterministic scorer
#   - AI adjudicator
#   - Keyword fallback
#
# Results are immutable and always well-formed: confidence is a finite number
# in [0, 1] and the reason is never empty, whatever path produced them.
# =============================================================================

import math
from dataclasses import dataclass

DEFAULT_REASON = "No explanation available"


@dataclass(frozen=True)
class ClassificationResult:
    """
    Outcome of classifying one message.

    Attributes:
        is_spam: True if the message is spam.
        confidence: Confidence in the verdict, 0.0 (coin flip) to 1.0 (certain).
        reason: Short human-readable explanation.
    """
    is_spam: bool
    confidence: float
    reason: str

    def __post_init__(self) -> None:
        # Frozen dataclass, so normalise through object.__setattr__
        confidence = float(self.confidence)
        if math.isnan(confidence):
            confidence = 0.0
        object.__setattr__(self, "confidence", min(1.0, max(0.0, confidence)))
        object.__setattr__(self, "is_spam", bool(self.is_spam))
        if not self.reason or not self.reason.strip():
            object.__setattr__(self, "reason", DEFAULT_REASON)

    @property
    def confidence_percent(self) -> int:
        """Confidence as a rounded percentage (0-100)."""
        return round(self.confidence * 100)

    @property
    def label(self) -> str:
        """Returns "spam" or "ham"."""
        return "spam" if self.is_spam else "ham"

    def __str__(self) -> str:
        return f"{self.label} ({self.confidence_percent}%): {self.reason}"
