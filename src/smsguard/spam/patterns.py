# =============================================================================
# Indicator Pattern Families
# =============================================================================
# Regex families used by the feature extractor. Each family is tagged with a
# polarity:
#   - SPAM: promotional, financial scam, phishing, generic spam language
#   - LEGITIMATE: banking, OTP, delivery, booking, service notifications
#
# The scorer never looks at the regexes directly; it only sees the counts and
# flags the extractor derives from them. Adding a new family means adding an
# entry to PATTERN_FAMILIES, nothing else.
#
# All patterns are matched against lower-cased text.
# =============================================================================

import re
from dataclasses import dataclass
from enum import Enum


class Polarity(Enum):
    """Which way a pattern family pushes the verdict."""
    SPAM = "spam"
    LEGITIMATE = "legitimate"


@dataclass(frozen=True)
class PatternFamily:
    """
    A named group of related indicator patterns.

    Attributes:
        name: Family identifier (e.g., "otp", "phishing").
        polarity: Whether matches indicate spam or legitimacy.
        patterns: Compiled regexes belonging to the family.
    """
    name: str
    polarity: Polarity
    patterns: tuple[re.Pattern[str], ...]

    def count(self, text: str) -> int:
        """Total number of matches of all patterns in text."""
        return sum(len(pattern.findall(text)) for pattern in self.patterns)

    def matches(self, text: str) -> bool:
        """True if any pattern matches text."""
        return any(pattern.search(text) for pattern in self.patterns)


def _family(name: str, polarity: Polarity, *patterns: str) -> PatternFamily:
    # Non-capturing groups only, so findall() counts whole matches
    return PatternFamily(
        name=name,
        polarity=polarity,
        patterns=tuple(re.compile(p, re.IGNORECASE) for p in patterns),
    )


PATTERN_FAMILIES: tuple[PatternFamily, ...] = (
    # -------------------------------------------------------------------------
    # Spam families
    # -------------------------------------------------------------------------
    _family(
        "promotional", Polarity.SPAM,
        r"\b(?:free|offer|discount|sale|deal|limited time|hurry|act now)\b",
        r"\b(?:click here|visit|shop now|buy now)\b",
        r"\b(?:congratulations|winner|prize|reward)\b",
    ),
    _family(
        "financial_scam", Polarity.SPAM,
        r"\b(?:lottery|jackpot|million|billion|won|claim)\b",
        r"\b(?:urgent|immediate action|verify account|suspended)\b",
        r"\b(?:refund|tax return|inheritance|beneficiary)\b",
    ),
    _family(
        "phishing", Polarity.SPAM,
        r"\b(?:verify|confirm|update|validate) (?:your )?(?:account|password|card|details)\b",
        r"\b(?:click|tap) (?:this |the )?(?:link|url)\b",
        r"\b(?:expire|expired|suspended|locked) (?:account|card)\b",
    ),
    _family(
        "generic_spam", Polarity.SPAM,
        r"\b(?:unsubscribe|opt[- ]out|reply stop)\b",
        r"\b(?:earn money|work from home)\b|\bmake \$",
        r"\b(?:no credit check|guaranteed approval)\b",
    ),

    # -------------------------------------------------------------------------
    # Legitimate families
    # -------------------------------------------------------------------------
    _family(
        "banking", Polarity.LEGITIMATE,
        r"\b(?:credited|debited|transaction|balance|account)\b",
        r"(?:\binr|\brs\.?|₹)\s*[\d,]+",
        r"\b(?:upi|neft|rtgs|imps)\b",
        r"\b(?:available balance|current balance|minimum balance)\b",
        r"\bthank you for (?:using|banking|shopping)\b",
    ),
    _family(
        "otp", Polarity.LEGITIMATE,
        r"\b(?:otp|one[- ]time password|verification code|security code)\b",
        r"\b\d{4,6}\b.*\b(?:code|otp|password|pin)\b",
        r"\bdo not share (?:this |your )?(?:code|otp|password)\b",
        r"\b(?:valid for|expires in) \d+\s?(?:min|minutes|hour|hours)\b",
    ),
    _family(
        "delivery", Polarity.LEGITIMATE,
        r"\b(?:order|parcel|package|delivery|shipped|dispatched)\b",
        r"\b(?:tracking (?:id|number|code)|awb)\b",
        r"\b(?:out for delivery|delivered|in transit)\b",
        r"\b(?:expected delivery|estimated delivery)\b",
    ),
    _family(
        "booking", Polarity.LEGITIMATE,
        r"\b(?:booking|reservation|confirmed|ticket|pnr)\b",
        r"\b(?:flight|train|bus|hotel|movie)\b.*\b(?:confirmed|booked)\b",
        r"\b(?:seat (?:number|no)|berth)\b",
    ),
    _family(
        "service", Polarity.LEGITIMATE,
        r"\b(?:appointment|reminder|scheduled|meeting)\b",
        r"\b(?:bill|invoice|payment|due|statement)\b",
        r"\b(?:subscription|renewal|plan)\b",
    ),
)


def families(polarity: Polarity) -> tuple[PatternFamily, ...]:
    """Return all registered families with the given polarity."""
    return tuple(f for f in PATTERN_FAMILIES if f.polarity is polarity)


def get_family(name: str) -> PatternFamily:
    """
    Look up a family by name.

    Raises:
        KeyError: If no family has that name.
    """
    for family in PATTERN_FAMILIES:
        if family.name == name:
            return family
    raise KeyError(name)


# -----------------------------------------------------------------------------
# Standalone signal patterns (not polarity families)
# -----------------------------------------------------------------------------

URL_PATTERNS = (
    re.compile(r"https?://", re.IGNORECASE),
    re.compile(r"www\.", re.IGNORECASE),
    re.compile(r"\b\w+\.(?:com|in|org|net|co\.in|me|io)\b", re.IGNORECASE),
    re.compile(r"bit\.ly|goo\.gl|tinyurl", re.IGNORECASE),
)

PHONE_PATTERNS = (
    re.compile(r"\b\d{10}\b"),
    re.compile(r"\+91[\s-]?\d{10}"),
    re.compile(r"\d{3}[\s-]\d{3}[\s-]\d{4}"),
)

MONEY_PATTERNS = (
    re.compile(r"(?:\binr|\brs\.?|₹)\s*[\d,]+", re.IGNORECASE),
    re.compile(r"\$\s*[\d,]+"),
    re.compile(r"\b\d+\s*(?:crore|lakh|thousand|million|billion)\b", re.IGNORECASE),
)

URGENCY_WORDS = (
    "urgent", "immediately", "now", "hurry", "quick", "fast",
    "expire", "expires", "limited", "today", "act now", "deadline",
)
