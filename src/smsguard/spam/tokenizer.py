# =============================================================================
# SMS Tokenizer and Keyword Fallback
# =============================================================================
# Text normalisation shared by the AI prompt builder and the keyword
# fallback classifier.
#
# Normalisation:
#   - Lower-case
#   - Strip URLs, e-mail addresses and phone numbers
#   - Strip punctuation (apostrophes in contractions survive)
#   - Collapse whitespace
#
# The keyword fallback is the last line of defence when the AI adjudicator
# fails: it scores a message by the fraction of its tokens that are known
# spam keywords. It is deliberately less trusted than the deterministic
# scorer, so its confidence never exceeds MAX_FALLBACK_CONFIDENCE.
# =============================================================================

import re
from dataclasses import dataclass

from smsguard.core import ClassificationResult

# Spam vocabulary for the keyword fallback
SPAM_KEYWORDS = (
    "lottery", "winner", "congratulations", "claim", "prize", "urgent",
    "limited time", "act now", "click here", "free", "cash", "discount",
    "offer", "deal", "credit", "loan", "debt", "investment", "earn money",
    "work from home", "bitcoin", "crypto", "viagra", "pharmacy", "pills",
    "weight loss", "enlarge", "singles", "dating", "verify account",
    "suspended", "confirm", "reset password", "bank account",
    "social security", "irs", "refund", "tax", "gift card",
)

# Spam if more than this fraction of tokens are spam keywords
FALLBACK_SPAM_RATIO = 0.15

# Keyword matching is crude, so cap how sure it may claim to be
MAX_FALLBACK_CONFIDENCE = 0.85

URL_PATTERN = re.compile(r"https?://\S+")
EMAIL_PATTERN = re.compile(r"[\w.-]+@[\w.-]+\.\w+")
PHONE_PATTERN = re.compile(r"(?:\+?\d{1,3}[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}")
PUNCTUATION_PATTERN = re.compile(r"[^\w\s']")
WHITESPACE_PATTERN = re.compile(r"\s+")


def preprocess_text(text: str) -> str:
    """
    Normalise SMS text for classification.

    Example:
        >>> preprocess_text("WIN a prize! Visit https://x.co/abc or call 555-123-4567")
        'win a prize visit or call'
    """
    if not text:
        return ""

    processed = text.lower()
    processed = URL_PATTERN.sub(" ", processed)
    processed = EMAIL_PATTERN.sub(" ", processed)
    processed = PHONE_PATTERN.sub(" ", processed)
    processed = PUNCTUATION_PATTERN.sub(" ", processed)
    return WHITESPACE_PATTERN.sub(" ", processed).strip()


def truncate_text(text: str, max_length: int, marker: str = "...") -> str:
    """
    Cut text to max_length characters, appending marker if anything was cut.

    The marker is added on top of max_length, so the result can be up to
    max_length + len(marker) characters long.
    """
    if len(text) <= max_length:
        return text
    return text[:max_length] + marker


@dataclass
class TokenizerConfig:
    """
    Configuration for SMS tokenization.

    Attributes:
        min_token_length: Minimum length for a token to be included.
        max_token_length: Maximum length (longer tokens are truncated).
    """
    min_token_length: int = 1
    max_token_length: int = 50


class Tokenizer:
    """
    Converts SMS text into normalised word tokens.

    Usage:
        >>> tokenizer = Tokenizer()
        >>> tokenizer.tokenize("Claim your FREE prize!!!")
        ['claim', 'your', 'free', 'prize']
    """

    def __init__(self, config: TokenizerConfig | None = None) -> None:
        self.config = config or TokenizerConfig()

    def tokenize(self, text: str) -> list[str]:
        """
        Tokenize SMS text.

        Args:
            text: Raw message body.

        Returns:
            List of tokens, in order of appearance.
        """
        tokens = []
        for word in preprocess_text(text).split(" "):
            if len(word) < self.config.min_token_length:
                continue
            tokens.append(word[:self.config.max_token_length])
        return tokens


class KeywordClassifier:
    """
    Keyword-ratio spam classifier used when the AI adjudicator fails.

    A token counts as a spam keyword if it equals a single-word keyword
    (plain plurals included), or if it is part of a multi-word keyword
    phrase that occurs in the message.

    Usage:
        >>> fallback = KeywordClassifier()
        >>> fallback.classify("Claim your free prize now").is_spam
        True
    """

    def __init__(
        self,
        keywords: tuple[str, ...] = SPAM_KEYWORDS,
        tokenizer: Tokenizer | None = None,
    ) -> None:
        self.tokenizer = tokenizer or Tokenizer()

        self._single_words: set[str] = set()
        self._phrases: list[tuple[str, ...]] = []
        for keyword in keywords:
            words = tuple(keyword.lower().split())
            if len(words) == 1:
                self._single_words.add(words[0])
            elif words:
                self._phrases.append(words)

    def spam_ratio(self, text: str) -> float:
        """
        Fraction of tokens that are spam keywords (0.0-1.0).

        Returns 0.0 for text without tokens.
        """
        tokens = self.tokenizer.tokenize(text)
        if not tokens:
            return 0.0

        matched = [self._is_keyword(token) for token in tokens]

        for phrase in self._phrases:
            size = len(phrase)
            for start in range(len(tokens) - size + 1):
                if tuple(tokens[start:start + size]) == phrase:
                    for i in range(start, start + size):
                        matched[i] = True

        return min(sum(matched) / len(tokens), 1.0)

    def classify(self, text: str) -> ClassificationResult:
        """
        Classify text by keyword ratio.

        Returns:
            Spam if more than 15% of tokens are keywords; confidence is
            twice the ratio, capped at 0.85.
        """
        ratio = self.spam_ratio(text)
        is_spam = ratio > FALLBACK_SPAM_RATIO

        if is_spam:
            reason = (
                f"Detected spam keywords ({round(ratio * 100)}% match). "
                "Using fallback detection."
            )
        else:
            reason = "No significant spam keywords detected. Using fallback detection."

        return ClassificationResult(
            is_spam=is_spam,
            confidence=min(ratio * 2, MAX_FALLBACK_CONFIDENCE),
            reason=reason,
        )

    def _is_keyword(self, token: str) -> bool:
        if token in self._single_words:
            return True
        # Plain plurals: "prizes", "loans"
        return token.endswith("s") and token[:-1] in self._single_words
