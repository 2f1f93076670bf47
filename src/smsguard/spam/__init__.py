# =============================================================================
# Spam Module
# =============================================================================
# Hybrid SMS spam classification.
#
# Three layers, cheapest first:
#   - A deterministic scorer over linguistic features (always available)
#   - A Gemini second opinion for inconclusive messages (optional)
#   - A keyword-ratio fallback for when the AI is unreachable
#
# The scorer works offline and explains itself; the AI and the fallback
# only come into play when the scorer isn't sure.
# =============================================================================

from smsguard.spam.adjudicator import AdjudicationError, GeminiAdjudicator, RateLimiter
from smsguard.spam.classifier import HybridClassifier
from smsguard.spam.features import FeatureExtractor, Features
from smsguard.spam.scorer import Scorer, ScoringWeights
from smsguard.spam.tokenizer import KeywordClassifier, Tokenizer

__all__ = [
    "AdjudicationError",
    "FeatureExtractor",
    "Features",
    "GeminiAdjudicator",
    "HybridClassifier",
    "KeywordClassifier",
    "RateLimiter",
    "Scorer",
    "ScoringWeights",
    "Tokenizer",
]
