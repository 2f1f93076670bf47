"""Tests for the ingestion coordinator pipeline."""

from datetime import datetime

import aiosqlite
import pytest

from smsguard.config import IngestionConfig
from smsguard.core import Message, Verdict
from smsguard.ingest import (
    EventKind,
    IncomingMessage,
    IngestionCoordinator,
    MemoryMessageSource,
)
from smsguard.spam import HybridClassifier

SCAM = "URGENT! You won $1,000,000! Click here NOW!!!"
OTP = "Your OTP is 654321. Do not share. Valid for 10 min."
BANK = "Rs.1500 debited from A/c XX1234. Available bal: Rs.5000"


def incoming(message_id: str, body: str, minute: int = 0) -> IncomingMessage:
    timestamp = datetime(2024, 1, 15, 10, minute).timestamp()
    return IncomingMessage(message_id, "+15550001111", body, int(timestamp * 1000))


@pytest.fixture
def inbox_source():
    return MemoryMessageSource([
        incoming("in-1", SCAM, 1),
        incoming("in-2", OTP, 2),
        incoming("in-3", BANK, 3),
    ])


@pytest.fixture
def make_coordinator(repo, make_dispatcher, fake_telegram):
    def factory(source=None, **dispatcher_overrides):
        dispatcher = make_dispatcher(fake_telegram, **dispatcher_overrides)
        return IngestionCoordinator(
            repo,
            HybridClassifier(),
            dispatcher,
            source,
            IngestionConfig(backlog_limit=50, pending_limit=10),
        )

    return factory


@pytest.mark.asyncio
async def test_new_spam_message_is_stored_classified_and_alerted(make_coordinator, repo, fake_telegram):
    coordinator = make_coordinator()

    message = await coordinator.on_new_message("+15550001111", SCAM, datetime(2024, 1, 15, 9, 0))

    assert message.is_spam
    stored = await repo.get_message(message.id)
    assert stored.verdict is Verdict.SPAM
    assert stored.confidence == pytest.approx(message.confidence)
    assert len(fake_telegram.requests) == 1


@pytest.mark.asyncio
async def test_new_ham_message_sends_nothing(make_coordinator, fake_telegram):
    coordinator = make_coordinator()

    message = await coordinator.on_new_message("VK-HDFCBK", OTP)

    assert message.verdict is Verdict.HAM
    assert fake_telegram.requests == []


@pytest.mark.asyncio
async def test_new_message_id_format(make_coordinator):
    message = await make_coordinator().on_new_message("x", "hi")

    millis, suffix = message.id.split("-")
    assert millis.isdigit()
    assert len(suffix) == 9


@pytest.mark.asyncio
async def test_storage_error_propagates_from_live_arrival(make_coordinator, repo, monkeypatch):
    async def broken_insert(message):
        raise aiosqlite.OperationalError("disk I/O error")

    monkeypatch.setattr(repo, "insert_message", broken_insert)

    with pytest.raises(aiosqlite.Error):
        await make_coordinator().on_new_message("x", "hi")


@pytest.mark.asyncio
async def test_failed_alert_is_queued_not_raised(make_coordinator, fake_telegram):
    fake_telegram.outcomes = [False]
    coordinator = make_coordinator()

    message = await coordinator.on_new_message("x", SCAM)

    assert message.is_spam
    assert await coordinator.dispatcher.queue_size() == 1

    result = await coordinator.drain_notifications()
    assert (result.sent, result.failed) == (1, 0)


@pytest.mark.asyncio
async def test_backlog_scan_is_idempotent(make_coordinator, inbox_source, repo, fake_telegram):
    coordinator = make_coordinator(inbox_source)

    assert await coordinator.scan_backlog() == 3
    assert await coordinator.scan_backlog() == 0

    stats = await coordinator.stats()
    assert (stats.total, stats.spam, stats.ham, stats.unclassified) == (3, 1, 2, 0)
    # Only the scam triggered an alert, and only once
    assert len(fake_telegram.requests) == 1


@pytest.mark.asyncio
async def test_backlog_scan_respects_limit(make_coordinator, inbox_source, repo):
    coordinator = make_coordinator(inbox_source)

    assert await coordinator.scan_backlog(limit=1) == 1
    # Newest inbox message first
    assert await repo.get_message("in-3") is not None
    assert await repo.get_message("in-1") is None


@pytest.mark.asyncio
async def test_backlog_scan_continues_past_failures(make_coordinator, inbox_source, repo, monkeypatch):
    real_update = repo.update_verdict

    async def flaky_update(message_id, result, classified_at=None):
        if message_id == "in-2":
            raise aiosqlite.OperationalError("database is locked")
        await real_update(message_id, result, classified_at)

    monkeypatch.setattr(repo, "update_verdict", flaky_update)
    coordinator = make_coordinator(inbox_source)

    assert await coordinator.scan_backlog() == 2

    # The failed message stays stored and unclassified
    pending = await repo.list_unclassified()
    assert [m.id for m in pending] == ["in-2"]


@pytest.mark.asyncio
async def test_backlog_batch_summary(make_coordinator, inbox_source, fake_telegram):
    coordinator = make_coordinator(inbox_source, batch_summary=True)

    await coordinator.scan_backlog()

    assert "*Total Messages:* 3" in fake_telegram.texts[-1]


@pytest.mark.asyncio
async def test_backlog_without_source(make_coordinator):
    assert await make_coordinator().scan_backlog() == 0


@pytest.mark.asyncio
async def test_classify_pending(make_coordinator, repo):
    for i, body in enumerate((SCAM, OTP, BANK)):
        await repo.insert_message(Message(
            id=f"p{i}", sender="x", body=body, timestamp=datetime(2024, 1, 15, 10, i),
        ))

    coordinator = make_coordinator()
    assert await coordinator.classify_pending(limit=2) == 2

    # Newest first: p2 and p1 are done, p0 is still waiting
    assert [m.id for m in await repo.list_unclassified()] == ["p0"]
    assert await coordinator.classify_pending() == 1
    assert await repo.list_unclassified() == []


@pytest.mark.asyncio
async def test_events_are_emitted_in_order(make_coordinator):
    coordinator = make_coordinator()
    events = []

    async def record(event):
        events.append((event.kind, event.message.verdict if event.message else None))

    unsubscribe = coordinator.subscribe(record)
    await coordinator.on_new_message("x", SCAM)

    assert events == [
        (EventKind.STORED, Verdict.UNCLASSIFIED),
        (EventKind.UPDATED, Verdict.SPAM),
        (EventKind.STATS, None),
    ]

    unsubscribe()
    await coordinator.on_new_message("x", SCAM)
    assert len(events) == 3


@pytest.mark.asyncio
async def test_events_carry_point_in_time_snapshots(make_coordinator):
    coordinator = make_coordinator()
    kept = []

    async def keep(event):
        kept.append(event)

    coordinator.subscribe(keep)
    message = await coordinator.on_new_message("x", SCAM)

    stored, updated = kept[0].message, kept[1].message
    assert stored.verdict is Verdict.UNCLASSIFIED
    assert stored.confidence is None
    assert updated.verdict is Verdict.SPAM
    assert stored is not message and updated is not message
    assert stored.id == updated.id == message.id


@pytest.mark.asyncio
async def test_subscriber_errors_do_not_break_pipeline(make_coordinator, repo):
    coordinator = make_coordinator()

    async def broken(event):
        raise RuntimeError("UI crashed")

    coordinator.subscribe(broken)
    message = await coordinator.on_new_message("x", OTP)

    assert (await repo.get_message(message.id)).verdict is Verdict.HAM
