# =============================================================================
# Linguistic Feature Extraction
# =============================================================================
# Turns raw SMS text into a fixed set of signals for the scorer.
#
# We extract:
#   - Link, phone number and money amount presence
#   - Urgency score (urgent vocabulary + repeated exclamation marks)
#   - Capital letter ratio (over letters only)
#   - Exclamation / question mark counts
#   - Hit counts for the spam and legitimate pattern families
#   - Presence of OTP, banking, delivery and booking vocabulary
#
# Extraction is pure and never fails: a pattern that doesn't match simply
# produces a zero/false feature. Every feature is computed on its own, so no
# feature depends on another.
# =============================================================================

import re
from dataclasses import dataclass

from smsguard.spam.patterns import (
    MONEY_PATTERNS,
    PATTERN_FAMILIES,
    PHONE_PATTERNS,
    URGENCY_WORDS,
    URL_PATTERNS,
    PatternFamily,
    Polarity,
)

# Urgency score contributions
URGENCY_WORD_WEIGHT = 0.1
EXCLAMATION_RUN_WEIGHT = 0.05
EXCLAMATION_BONUS_CAP = 0.3

WORD_PATTERN = re.compile(r"\b\w+\b")
EXCLAMATION_RUN_PATTERN = re.compile(r"!+")


@dataclass(frozen=True)
class Features:
    """
    Linguistic signals extracted from one message body.

    Attributes:
        has_url: Link-like text (scheme, www., bare domain, shortener).
        has_phone_number: Phone-number-like digit sequence.
        has_money_amount: Currency symbol/word or magnitude word with a number.
        urgency_score: Urgent vocabulary plus exclamation bonus (0.0-1.0).
        capital_ratio: Upper-case letters / all letters (0.0-1.0).
        exclamation_count: Number of "!" characters.
        question_count: Number of "?" characters.
        word_count: Number of words.
        spam_keyword_count: Total matches across spam families.
        legit_pattern_count: Total matches across legitimate families.
        has_otp: OTP/verification code vocabulary present.
        has_banking_terms: Banking/transaction vocabulary present.
        has_delivery_terms: Delivery/order vocabulary present.
        has_booking_terms: Booking/reservation vocabulary present.
        matched_families: Names of every family with at least one match.
    """
    has_url: bool = False
    has_phone_number: bool = False
    has_money_amount: bool = False
    urgency_score: float = 0.0
    capital_ratio: float = 0.0
    exclamation_count: int = 0
    question_count: int = 0
    word_count: int = 0
    spam_keyword_count: int = 0
    legit_pattern_count: int = 0
    has_otp: bool = False
    has_banking_terms: bool = False
    has_delivery_terms: bool = False
    has_booking_terms: bool = False
    matched_families: tuple[str, ...] = ()


class FeatureExtractor:
    """
    Extracts Features from message text.

    Usage:
        >>> extractor = FeatureExtractor()
        >>> features = extractor.extract("Your OTP is 654321")
        >>> features.has_otp
        True
    """

    def __init__(self, families: tuple[PatternFamily, ...] = PATTERN_FAMILIES) -> None:
        """
        Initialize the extractor.

        Args:
            families: Pattern families to evaluate. Defaults to the built-in set.
        """
        self.families = families
        self._urgency_patterns = [
            re.compile(rf"\b{re.escape(word)}\b") for word in URGENCY_WORDS
        ]

    def extract(self, text: str) -> Features:
        """
        Extract all features from text.

        Args:
            text: Raw message body.

        Returns:
            Features for the message. Empty text yields all-zero features.
        """
        text = text or ""
        lowered = text.lower()

        spam_count = 0
        legit_count = 0
        matched: list[str] = []
        for family in self.families:
            hits = family.count(lowered)
            if not hits:
                continue
            matched.append(family.name)
            if family.polarity is Polarity.SPAM:
                spam_count += hits
            else:
                legit_count += hits

        return Features(
            has_url=any(p.search(lowered) for p in URL_PATTERNS),
            has_phone_number=any(p.search(lowered) for p in PHONE_PATTERNS),
            has_money_amount=any(p.search(lowered) for p in MONEY_PATTERNS),
            urgency_score=self.urgency_score(lowered),
            capital_ratio=self.capital_ratio(text),
            exclamation_count=text.count("!"),
            question_count=text.count("?"),
            word_count=len(WORD_PATTERN.findall(lowered)),
            spam_keyword_count=spam_count,
            legit_pattern_count=legit_count,
            has_otp="otp" in matched,
            has_banking_terms="banking" in matched,
            has_delivery_terms="delivery" in matched,
            has_booking_terms="booking" in matched,
            matched_families=tuple(matched),
        )

    def urgency_score(self, lowered: str) -> float:
        """
        Score urgent language in lower-cased text (0.0-1.0).

        Each urgency word present adds 0.1. Each run of exclamation marks
        adds 0.05, with the exclamation bonus capped at 0.3.
        """
        score = URGENCY_WORD_WEIGHT * sum(
            1 for pattern in self._urgency_patterns if pattern.search(lowered)
        )

        runs = len(EXCLAMATION_RUN_PATTERN.findall(lowered))
        score += min(runs * EXCLAMATION_RUN_WEIGHT, EXCLAMATION_BONUS_CAP)

        return min(score, 1.0)

    @staticmethod
    def capital_ratio(text: str) -> float:
        """Ratio of upper-case ASCII letters to all ASCII letters (0.0 if none)."""
        letters = [c for c in text if c.isascii() and c.isalpha()]
        if not letters:
            return 0.0
        capitals = sum(1 for c in letters if c.isupper())
        return capitals / len(letters)
