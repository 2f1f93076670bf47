# =============================================================================
# Message Sources
# =============================================================================
# The boundary between SMSGuard and whatever delivers SMS to it (a phone
# bridge, a modem daemon, a test harness).
#
# A source offers two things:
#   - get_messages(limit): a bounded read of messages already in the inbox
#   - listen(): an async stream of messages as they arrive
#
# MemoryMessageSource is a ready-made source backed by an asyncio.Queue, for
# embedding SMSGuard behind an existing transport.
# =============================================================================

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import AsyncIterator, Protocol, runtime_checkable


@dataclass(frozen=True)
class IncomingMessage:
    """
    A message as delivered by a source.

    Attributes:
        id: Source-assigned ID, stable across reads.
        sender: Sender address or short code.
        body: Message text.
        timestamp_ms: Arrival time in epoch milliseconds.
    """
    id: str
    sender: str
    body: str
    timestamp_ms: int

    @property
    def arrived_at(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp_ms / 1000)


@runtime_checkable
class MessageSource(Protocol):
    """Anything that can hand SMSGuard messages."""

    async def get_messages(self, limit: int) -> list[IncomingMessage]:
        """Read up to `limit` inbox messages, newest first."""
        ...

    def listen(self) -> AsyncIterator[IncomingMessage]:
        """Yield messages as they arrive, until cancelled or closed."""
        ...


class MemoryMessageSource:
    """
    In-process message source.

    The inbox is a plain list; new arrivals are pushed with deliver().

    Usage:
        >>> source = MemoryMessageSource()
        >>> await source.deliver(IncomingMessage("1", "+1555", "hi", 1700000000000))
        >>> async for message in source.listen():
        ...     handle(message)
    """

    def __init__(self, inbox: list[IncomingMessage] | None = None) -> None:
        self.inbox: list[IncomingMessage] = list(inbox or [])
        self._arrivals: asyncio.Queue[IncomingMessage | None] = asyncio.Queue()

    async def get_messages(self, limit: int) -> list[IncomingMessage]:
        newest_first = sorted(self.inbox, key=lambda m: m.timestamp_ms, reverse=True)
        return newest_first[:limit]

    async def deliver(self, message: IncomingMessage) -> None:
        """Add a message to the inbox and announce it to listeners."""
        self.inbox.append(message)
        await self._arrivals.put(message)

    async def close(self) -> None:
        """End the listen() stream."""
        await self._arrivals.put(None)

    async def listen(self) -> AsyncIterator[IncomingMessage]:
        while True:
            message = await self._arrivals.get()
            if message is None:
                return
            yield message
