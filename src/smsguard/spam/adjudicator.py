# =============================================================================
# Gemini AI Adjudicator
# =============================================================================
# Asks Google Gemini for a second opinion on messages the deterministic
# scorer is unsure about.
#
# Key responsibilities:
#   - Rate limiting (minimum gap between calls, shared by all callers)
#   - Building a bounded prompt (normalised + truncated message text)
#   - Calling the generateContent REST endpoint with a timeout
#   - Extracting and validating the JSON verdict from the reply
#
# Every failure (network, timeout, HTTP status, malformed reply) surfaces as
# AdjudicationError. There is no internal retry: the caller decides what to
# fall back to.
#
# Uses httpx for async HTTP.
# =============================================================================

import asyncio
import json
import logging
import math
import time
from typing import Any, Awaitable, Callable

import httpx

from smsguard.config import AIConfig
from smsguard.core import ClassificationResult
from smsguard.spam.tokenizer import preprocess_text, truncate_text

logger = logging.getLogger(__name__)

GEMINI_API_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

# Decodes one JSON value starting at a given offset, ignoring what follows
JSON_DECODER = json.JSONDecoder()

PROMPT_TEMPLATE = """You are an SMS spam detector. Analyze the following SMS message and classify it as spam or ham (not spam).

SMS Message: "{text}"

Classify this message and respond with ONLY valid JSON in this exact format:
{{
  "isSpam": true or false,
  "confidence": 0.0 to 1.0,
  "reason": "brief one-sentence explanation"
}}

Consider these spam indicators:
- Unsolicited offers, prizes, or giveaways
- Urgent calls to action (limited time, act now)
- Requests for personal/financial information
- Suspicious links or phone numbers
- Poor grammar or excessive capital letters
- Financial schemes (loans, investments, crypto)
- Phishing attempts

Respond ONLY with the JSON object, no other text."""


class RateLimiter:
    """
    Enforces a minimum interval between calls.

    Holds the time of the last call. Each acquire() waits out whatever is
    left of the interval and then stamps the new call time, all under one
    lock, so concurrent callers are serialised and can't slip through
    together.

    Usage:
        >>> limiter = RateLimiter(interval=2.0)
        >>> await limiter.acquire()  # returns immediately
        >>> await limiter.acquire()  # waits ~2 seconds
    """

    def __init__(
        self,
        interval: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """
        Initialize the rate limiter.

        Args:
            interval: Minimum seconds between calls.
            clock: Monotonic time source (injectable for tests).
            sleep: Async sleep function (injectable for tests).
        """
        self.interval = interval
        self._clock = clock
        self._sleep = sleep
        self._last_call: float | None = None
        self._lock = asyncio.Lock()

    async def acquire(self) -> float:
        """
        Wait until a call is allowed and record it.

        Returns:
            Seconds spent waiting.
        """
        async with self._lock:
            waited = 0.0
            if self._last_call is not None:
                remaining = self.interval - (self._clock() - self._last_call)
                if remaining > 0:
                    await self._sleep(remaining)
                    waited = remaining
            self._last_call = self._clock()
            return waited

    def reset(self) -> None:
        """Forget the last call time."""
        self._last_call = None


class GeminiAdjudicator:
    """
    Rate-limited Gemini spam classifier.

    Usage:
        >>> adjudicator = GeminiAdjudicator(config.ai)
        >>> try:
        ...     result = await adjudicator.adjudicate(text)
        ... except AdjudicationError:
        ...     result = fallback.classify(text)
        >>> await adjudicator.close()

    Attributes:
        config: AI configuration snapshot (must carry an API key).
    """

    def __init__(
        self,
        config: AIConfig,
        *,
        client: httpx.AsyncClient | None = None,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        """
        Initialize the adjudicator.

        Args:
            config: AI configuration with api_key set.
            client: HTTP client to use. Creates one with the configured
                    timeout if None.
            rate_limiter: Rate limiter to use. Creates one from
                          config.rate_limit_ms if None.

        Raises:
            AdjudicationError: If the config has no API key.
        """
        if not config.api_key:
            raise AdjudicationError("Gemini API key is required")

        self.config = config
        self._client = client or httpx.AsyncClient(
            base_url=GEMINI_API_BASE_URL,
            timeout=httpx.Timeout(config.timeout_seconds),
        )
        self._owns_client = client is None
        self.rate_limiter = rate_limiter or RateLimiter(config.rate_limit_ms / 1000)

    async def close(self) -> None:
        """Close the underlying HTTP client (if we created it)."""
        if self._owns_client:
            await self._client.aclose()

    def build_prompt(self, text: str) -> str:
        """Build the classification prompt for a message."""
        truncated = truncate_text(preprocess_text(text), self.config.max_prompt_chars)
        return PROMPT_TEMPLATE.format(text=truncated)

    async def adjudicate(self, text: str) -> ClassificationResult:
        """
        Classify a message with Gemini.

        Makes exactly one HTTP request, after waiting for the rate limiter.

        Args:
            text: Raw message body.

        Returns:
            The validated AI verdict.

        Raises:
            AdjudicationError: On any network, HTTP or parsing failure.
        """
        await self.rate_limiter.acquire()

        payload = {
            "contents": [{"parts": [{"text": self.build_prompt(text)}]}],
            "generationConfig": {
                "temperature": 0.3,
                "maxOutputTokens": 256,
            },
        }

        try:
            response = await self._client.post(
                f"/models/{self.config.model}:generateContent",
                params={"key": self.config.api_key},
                json=payload,
            )
        except httpx.TimeoutException as e:
            raise AdjudicationError(f"Gemini request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise AdjudicationError(f"Gemini request failed: {e}") from e

        if response.status_code != 200:
            raise AdjudicationError(
                f"Gemini API returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        reply = self._extract_reply_text(response)
        result = parse_verdict(reply)
        logger.debug(f"Gemini verdict: {result}")
        return result

    @staticmethod
    def _extract_reply_text(response: httpx.Response) -> str:
        """Pull the generated text out of a generateContent response."""
        try:
            data = response.json()
            parts = data["candidates"][0]["content"]["parts"]
            return "".join(part.get("text", "") for part in parts)
        except (ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
            raise AdjudicationError(f"Unexpected Gemini response shape: {e}") from e


def parse_verdict(reply: str) -> ClassificationResult:
    """
    Extract and validate a verdict from a model reply.

    The model may wrap the JSON object in commentary or code fences; the
    first "{" that starts a decodable JSON value is used and anything after
    that value is ignored. The object must contain a boolean isSpam, a
    numeric confidence and a string reason. Confidence is clamped to [0, 1].

    Raises:
        AdjudicationError: If no valid verdict can be extracted.
    """
    reply = reply or ""
    start = reply.find("{")
    if start < 0:
        logger.warning(f"No JSON found in AI response: {reply!r}")
        raise AdjudicationError("No JSON found in response")

    error: json.JSONDecodeError | None = None
    while start >= 0:
        try:
            parsed, _ = JSON_DECODER.raw_decode(reply, start)
            break
        except json.JSONDecodeError as e:
            error = error or e
            start = reply.find("{", start + 1)
    else:
        logger.warning(f"Failed to parse AI response: {reply!r}")
        raise AdjudicationError(f"Invalid AI response format: {error}") from error

    if not isinstance(parsed, dict):
        raise AdjudicationError("AI response is not a JSON object")

    is_spam = parsed.get("isSpam")
    confidence = parsed.get("confidence")
    reason = parsed.get("reason")

    # bool is a subclass of int, so rule it out explicitly for confidence
    if (
        not isinstance(is_spam, bool)
        or isinstance(confidence, bool)
        or not isinstance(confidence, (int, float))
        or not math.isfinite(confidence)
        or not isinstance(reason, str)
    ):
        logger.warning(f"Invalid AI response structure: {parsed!r}")
        raise AdjudicationError("Invalid response structure")

    return ClassificationResult(
        is_spam=is_spam,
        confidence=max(0.0, min(1.0, float(confidence))),
        reason=reason,
    )


# =============================================================================
# Exceptions
# =============================================================================

class AdjudicationError(Exception):
    """Raised when the AI adjudicator cannot produce a verdict."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
