# =============================================================================
# Pytest Configuration and Fixtures
# =============================================================================
# Shared fixtures for the SMSGuard test suite.
# =============================================================================

import json
import tempfile
from datetime import datetime
from pathlib import Path

import httpx
import pytest
import pytest_asyncio

from smsguard.config import AIConfig, NotificationConfig
from smsguard.core import Message
from smsguard.notify import NotificationDispatcher, NotificationQueue, TelegramChannel
from smsguard.spam.adjudicator import GeminiAdjudicator, RateLimiter
from smsguard.storage import Database, Repository


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest_asyncio.fixture
async def database(temp_dir):
    """A connected database in a temporary directory."""
    db = Database(temp_dir / "smsguard.db")
    await db.connect()
    yield db
    await db.close()


@pytest_asyncio.fixture
async def repo(database):
    """Repository over the temporary database."""
    return Repository(database)


@pytest.fixture
def sample_message():
    """A legitimate OTP message."""
    return Message(
        id="1705314600000-abc123def",
        sender="VK-HDFCBK",
        body="Your OTP is 482913 for login. Do not share it with anyone.",
        timestamp=datetime(2024, 1, 15, 10, 30, 0),
    )


@pytest.fixture
def sample_spam_message():
    """An obvious prize scam."""
    return Message(
        id="1705314700000-fed321cba",
        sender="+15550001111",
        body="CONGRATULATIONS!!! You are the lucky winner of a FREE prize! Claim now at http://bit.ly/win",
        timestamp=datetime(2024, 1, 15, 10, 31, 40),
    )


class FakeTelegram:
    """
    Scriptable stand-in for the Telegram Bot API.

    Each request pops the next outcome from `outcomes`: True answers
    {"ok": true}, False answers {"ok": false}, an exception is raised.
    When outcomes run out every request succeeds.
    """

    def __init__(self, outcomes=None):
        self.outcomes = list(outcomes or [])
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.outcomes.pop(0) if self.outcomes else True
        if isinstance(outcome, Exception):
            raise outcome
        if outcome:
            return httpx.Response(200, json={"ok": True, "result": {}})
        return httpx.Response(400, json={"ok": False, "description": "Bad Request"})

    def channel(self) -> TelegramChannel:
        client = httpx.AsyncClient(
            base_url="https://api.telegram.org/bottest-token",
            transport=httpx.MockTransport(self.handler),
        )
        return TelegramChannel("test-token", "42", client=client)

    @property
    def texts(self) -> list[str]:
        return [json.loads(r.content)["text"] for r in self.requests]


@pytest.fixture
def fake_telegram():
    return FakeTelegram()


async def no_sleep(seconds: float) -> None:
    return None


@pytest.fixture
def make_dispatcher(repo):
    """Build a dispatcher over the temp repository with a given fake channel."""
    def factory(telegram: FakeTelegram | None, **config_overrides):
        config = NotificationConfig(
            chat_id="42",
            bot_token="test-token",
            **config_overrides,
        )
        queue = NotificationQueue(
            repo,
            capacity=config.queue_capacity,
            max_attempts=config.max_attempts,
        )
        channel = telegram.channel() if telegram is not None else None
        return NotificationDispatcher(queue, channel, config, sleep=no_sleep)

    return factory


def gemini_response(reply_text: str) -> httpx.Response:
    """A generateContent response whose single candidate says reply_text."""
    return httpx.Response(
        200,
        json={"candidates": [{"content": {"parts": [{"text": reply_text}]}}]},
    )


@pytest.fixture
def make_adjudicator():
    """Build a GeminiAdjudicator whose HTTP calls go to `handler`."""
    def factory(handler, **config_overrides):
        config = AIConfig(api_key="test-key", rate_limit_ms=0, **config_overrides)
        client = httpx.AsyncClient(
            base_url="https://generativelanguage.googleapis.com/v1beta",
            transport=httpx.MockTransport(handler),
        )
        return GeminiAdjudicator(config, client=client, rate_limiter=RateLimiter(0))

    return factory


@pytest.fixture
def gemini_reply():
    return gemini_response
