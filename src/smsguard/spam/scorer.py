# =============================================================================
# Deterministic Spam Scorer
# =============================================================================
# Converts extracted features into a spam probability and an explanation.
#
# How it works:
#   1. Start from a neutral 0.5
#   2. Add weight for every spam indicator that fired
#   3. Subtract weight for every legitimacy indicator that fired
#   4. Clamp to [0, 1]; spam if the score is strictly above 0.5
#
# Confidence is the distance from the decision boundary, stretched to [0, 1]:
#
#     confidence = |score - 0.5| * 2
#
# so a score sitting exactly on the boundary has zero confidence and the
# extremes have full confidence. No network, no state, never fails.
# =============================================================================

from dataclasses import dataclass

from smsguard.core import ClassificationResult
from smsguard.spam.features import Features

NEUTRAL_SCORE = 0.5
DECISION_THRESHOLD = 0.5


@dataclass(frozen=True)
class ScoringWeights:
    """
    Weights applied by the scorer.

    Attributes:
        per_spam_keyword: Added per spam-family match.
        high_urgency: Added when urgency exceeds urgency_threshold.
        high_capitals: Added when capital ratio exceeds capital_threshold.
        many_exclamations: Added when exclamations exceed exclamation_threshold.
        url_without_banking: Added for a link outside a banking context.
        per_legit_pattern: Subtracted per legitimate-family match.
        otp: Subtracted when OTP vocabulary is present.
        banking: Subtracted when banking vocabulary is present.
        money_with_banking: Subtracted for a money amount in a banking context.
    """
    per_spam_keyword: float = 0.15
    high_urgency: float = 0.2
    high_capitals: float = 0.15
    many_exclamations: float = 0.1
    url_without_banking: float = 0.2
    per_legit_pattern: float = 0.2
    otp: float = 0.4
    banking: float = 0.3
    money_with_banking: float = 0.2

    urgency_threshold: float = 0.5
    capital_threshold: float = 0.5
    exclamation_threshold: int = 2


class Scorer:
    """
    Rule-based spam scorer.

    Usage:
        >>> scorer = Scorer()
        >>> result = scorer.score(FeatureExtractor().extract(text))
        >>> if result.is_spam and result.confidence > 0.6:
        ...     print("Confident spam")

    Attributes:
        weights: Indicator weights.
    """

    def __init__(self, weights: ScoringWeights | None = None) -> None:
        self.weights = weights or ScoringWeights()

    def raw_score(self, features: Features) -> float:
        """
        Compute the clamped spam score (0.0 = ham, 1.0 = spam).

        Args:
            features: Extracted message features.

        Returns:
            Spam score in [0, 1].
        """
        w = self.weights
        score = NEUTRAL_SCORE

        # Spam indicators push the score up
        score += features.spam_keyword_count * w.per_spam_keyword
        if features.urgency_score > w.urgency_threshold:
            score += w.high_urgency
        if features.capital_ratio > w.capital_threshold:
            score += w.high_capitals
        if features.exclamation_count > w.exclamation_threshold:
            score += w.many_exclamations
        if features.has_url and not features.has_banking_terms:
            score += w.url_without_banking

        # Legitimacy indicators pull it down
        score -= features.legit_pattern_count * w.per_legit_pattern
        if features.has_otp:
            score -= w.otp
        if features.has_banking_terms:
            score -= w.banking
        if features.has_money_amount and features.has_banking_terms:
            score -= w.money_with_banking

        return max(0.0, min(1.0, score))

    def score(self, features: Features) -> ClassificationResult:
        """
        Classify a message from its features.

        Args:
            features: Extracted message features.

        Returns:
            ClassificationResult with confidence = |score - 0.5| * 2.
        """
        raw = self.raw_score(features)
        is_spam = raw > DECISION_THRESHOLD
        return ClassificationResult(
            is_spam=is_spam,
            confidence=abs(raw - DECISION_THRESHOLD) * 2,
            reason=self.explain(features, is_spam=is_spam),
        )

    def explain(self, features: Features, *, is_spam: bool) -> str:
        """
        Build a human-readable explanation listing the triggered indicators.

        Never returns an empty string.
        """
        w = self.weights
        reasons: list[str] = []

        if is_spam:
            if features.spam_keyword_count > 0:
                reasons.append(f"{features.spam_keyword_count} spam keyword(s)")
            if features.urgency_score > w.urgency_threshold:
                reasons.append("urgent language")
            if features.capital_ratio > w.capital_threshold:
                reasons.append("excessive capitalization")
            if features.has_url:
                reasons.append("contains suspicious link")
            if features.exclamation_count > w.exclamation_threshold:
                reasons.append("multiple exclamation marks")

            if reasons:
                return f"Spam detected: {', '.join(reasons)}"
            return "Spam pattern detected"

        if features.has_otp:
            reasons.append("OTP/verification code")
        if features.has_banking_terms:
            reasons.append("banking transaction")
        if features.legit_pattern_count > 0:
            reasons.append(f"{features.legit_pattern_count} legitimate pattern(s)")

        if reasons:
            return f"Legitimate: {', '.join(reasons)}"
        return "No spam indicators found"
