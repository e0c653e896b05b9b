import asyncio
from collections.abc import AsyncIterator
from typing import Any
from unittest.mock import AsyncMock

import pytest

from canvas_mcp.canvas.client import CanvasClient
from canvas_mcp.server.session import CanvasServerSession
from canvas_mcp.transport.base import Transport, TransportMessage


class MockTransport(Transport):
    """Mock transport for testing."""

    def __init__(self):
        self.sent_messages: list[dict[str, Any]] = []
        self._incoming_queue: asyncio.Queue[TransportMessage] = asyncio.Queue()
        self.closed = False
        self._should_raise_error = False

    def receive_message(self, payload: Any) -> None:
        """Simulate receiving a message from the network."""
        if self.closed:
            return
        self._incoming_queue.put_nowait(TransportMessage(payload=payload))

    @property
    def is_open(self) -> bool:
        return not self.closed

    async def send(self, payload: dict[str, Any]) -> None:
        if self.closed:
            raise ConnectionError("Transport closed")
        self.sent_messages.append(payload)

    def simulate_error(self) -> None:
        """Simulate a connection error."""
        self._should_raise_error = True

    async def messages(self) -> AsyncIterator[TransportMessage]:
        while not self.closed:
            if self._should_raise_error:
                raise ConnectionError("Network down")
            try:
                yield await asyncio.wait_for(self._incoming_queue.get(), timeout=0.01)
            except asyncio.TimeoutError:
                continue

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def transport() -> MockTransport:
    return MockTransport()


@pytest.fixture
def canvas() -> AsyncMock:
    return AsyncMock(spec=CanvasClient)


@pytest.fixture
async def session(credentials, canvas, transport):
    session = CanvasServerSession(credentials, canvas_client=canvas)
    await session.connect(transport)
    yield session
    await session.close()


async def wait_for_sent(transport: MockTransport, count: int = 1) -> None:
    """Wait until the transport has sent at least `count` messages."""
    for _ in range(100):
        if len(transport.sent_messages) >= count:
            return
        await asyncio.sleep(0.001)
    raise AssertionError(f"Expected {count} sent messages, got {transport.sent_messages}")
