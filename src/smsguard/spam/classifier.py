# =============================================================================
# Hybrid Spam Classifier
# =============================================================================
# Runs the full classification policy for one message:
#
#   1. Score locally (feature extraction + deterministic scorer). Cheap and
#      always succeeds.
#   2. If the local verdict is inconclusive (confidence below the trust
#      threshold) and an AI adjudicator is configured, ask it. Its answer
#      replaces the local one.
#   3. If the AI call fails for any reason, fall back to the keyword-ratio
#      classifier.
#
# Per-message state machine:
#
#   Unclassified -> ScoredLocal -> Final                    (confident)
#   Unclassified -> ScoredLocal -> Adjudicator -> Final     (AI answered)
#   Unclassified -> ScoredLocal -> Adjudicator -> FallbackFinal (AI failed)
#
# classify() never raises: every path ends in a ClassificationResult.
# =============================================================================

import logging

from smsguard.config import AIConfig
from smsguard.core import ClassificationResult
from smsguard.spam.adjudicator import AdjudicationError, GeminiAdjudicator
from smsguard.spam.features import FeatureExtractor
from smsguard.spam.scorer import Scorer
from smsguard.spam.tokenizer import KeywordClassifier

logger = logging.getLogger(__name__)

# Used by self_test() to check the pipeline end to end
SELF_TEST_MESSAGE = "URGENT! You have won $1,000,000! Click here to claim your prize now!"


class HybridClassifier:
    """
    Deterministic scorer with an optional AI second opinion.

    Usage:
        >>> classifier = HybridClassifier()
        >>> await classifier.initialize(config.ai)   # enables AI if a key is set
        >>> result = await classifier.classify("You WON a prize!!!")
        >>> print(result.is_spam, result.confidence, result.reason)
        >>> await classifier.close()

    Attributes:
        extractor: Feature extractor.
        scorer: Deterministic scorer.
        fallback: Keyword classifier used when the AI fails.
        trust_threshold: Local confidence at or above which the AI is skipped.
    """

    def __init__(
        self,
        *,
        extractor: FeatureExtractor | None = None,
        scorer: Scorer | None = None,
        fallback: KeywordClassifier | None = None,
        adjudicator: GeminiAdjudicator | None = None,
        trust_threshold: float = 0.6,
    ) -> None:
        self.extractor = extractor or FeatureExtractor()
        self.scorer = scorer or Scorer()
        self.fallback = fallback or KeywordClassifier()
        self.trust_threshold = trust_threshold
        self._adjudicator = adjudicator

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def adjudicator(self) -> GeminiAdjudicator | None:
        """The configured AI adjudicator, or None for local-only mode."""
        return self._adjudicator

    @property
    def has_adjudicator(self) -> bool:
        """True if inconclusive messages will be sent to the AI."""
        return self._adjudicator is not None

    async def initialize(self, config: AIConfig) -> None:
        """
        Apply an AI configuration snapshot.

        Creates an adjudicator when the config is enabled and carries an API
        key; otherwise the classifier runs deterministic-only. Any previous
        adjudicator is closed.

        Args:
            config: AI configuration snapshot.
        """
        await self.reset()
        self.trust_threshold = config.trust_threshold

        if config.is_configured:
            self._adjudicator = GeminiAdjudicator(config)
            logger.info(f"AI adjudication enabled ({config.model})")
        else:
            logger.info("AI adjudication not configured - using local scoring only")

    async def reset(self) -> None:
        """Drop the AI adjudicator and return to local-only mode."""
        if self._adjudicator is not None:
            await self._adjudicator.close()
            self._adjudicator = None

    async def close(self) -> None:
        """Release network resources."""
        await self.reset()

    # -------------------------------------------------------------------------
    # Classification
    # -------------------------------------------------------------------------

    def classify_local(self, text: str) -> ClassificationResult:
        """Classify with the deterministic scorer only."""
        return self.scorer.score(self.extractor.extract(text))

    async def classify(self, text: str) -> ClassificationResult:
        """
        Classify a message body.

        Args:
            text: Message body.

        Returns:
            Final ClassificationResult. Never raises.
        """
        try:
            local = self.classify_local(text)
        except Exception as e:
            logger.error(f"Local scoring failed, using keyword fallback: {e}", exc_info=True)
            return self.fallback.classify(text)

        if self._adjudicator is None or local.confidence >= self.trust_threshold:
            return local

        logger.debug(
            f"Local verdict inconclusive ({local.confidence:.2f} < "
            f"{self.trust_threshold:.2f}), asking AI"
        )

        try:
            return await self._adjudicator.adjudicate(text)
        except AdjudicationError as e:
            logger.warning(f"AI classification failed, falling back to keyword detection: {e}")
        except Exception as e:
            logger.warning(
                f"Unexpected AI failure, falling back to keyword detection: {e}",
                exc_info=True,
            )

        return self.fallback.classify(text)

    async def classify_batch(
        self,
        messages: list[tuple[str, str]],
    ) -> list[tuple[str, ClassificationResult]]:
        """
        Classify several messages in order.

        Calls go through the adjudicator's rate limiter one by one.

        Args:
            messages: (message_id, text) pairs.

        Returns:
            (message_id, result) pairs in input order.
        """
        results = []
        for message_id, text in messages:
            results.append((message_id, await self.classify(text)))
        return results

    async def self_test(self) -> ClassificationResult:
        """Classify a fixed, obviously-spam sample message."""
        return await self.classify(SELF_TEST_MESSAGE)
