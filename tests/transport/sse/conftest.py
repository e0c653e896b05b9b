import asyncio
from typing import Any

import pytest

from canvas_mcp.transport.base import Transport
from canvas_mcp.transport.sse.session_registry import SessionRegistry


class FakeProtocolServer:
    """Protocol server double that records connect/close calls and payloads."""

    def __init__(self, credentials=None, fail_connect=False, fail_close=False):
        self.credentials = credentials
        self.fail_connect = fail_connect
        self.fail_close = fail_close
        self.transport: Transport | None = None
        self.received: list[Any] = []
        self.connect_calls = 0
        self.close_calls = 0
        self._task: asyncio.Task[None] | None = None

    async def connect(self, transport: Transport) -> None:
        self.connect_calls += 1
        if self.fail_connect:
            raise ConnectionError("connect failed")
        self.transport = transport
        self._task = asyncio.create_task(self._consume())

    async def _consume(self) -> None:
        async for message in self.transport.messages():
            self.received.append(message.payload)

    async def close(self) -> None:
        self.close_calls += 1
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        if self.fail_close:
            raise RuntimeError("close failed")


def parse_event(frame: str) -> tuple[str, str]:
    """Split an SSE frame into (event, data)."""
    event, data = "", []
    for line in frame.strip("\n").split("\n"):
        if line.startswith("event: "):
            event = line[len("event: ") :]
        elif line.startswith("data: "):
            data.append(line[len("data: ") :])
    return event, "\n".join(data)


async def wait_for(predicate, attempts: int = 100) -> None:
    """Poll a condition, yielding to the loop between checks."""
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0.001)
    raise AssertionError("Condition never became true")


@pytest.fixture
def servers() -> list[FakeProtocolServer]:
    return []


@pytest.fixture
def registry(servers) -> SessionRegistry:
    def factory(credentials):
        server = FakeProtocolServer(credentials)
        servers.append(server)
        return server

    return SessionRegistry(factory)
