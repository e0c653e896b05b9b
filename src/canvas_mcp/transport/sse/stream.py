"""Per-session SSE transport binding.

Adapts one outbound event stream and the inbound POST channel for the same
session into the duplex Transport interface the protocol server consumes.
"""

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any
from urllib.parse import quote

import anyio

from canvas_mcp.transport.base import Transport, TransportMessage

logger = logging.getLogger(__name__)

# Queue sentinel that ends both message iterators
_CLOSE = object()


def format_sse_event(event: str, data: str) -> str:
    """Format one SSE frame. Multi-line data becomes multiple data fields."""
    lines = "".join(f"data: {line}\n" for line in data.splitlines() or [""])
    return f"event: {event}\n{lines}\n"


class SSEServerTransport(Transport):
    """Transport for a single SSE session.

    Outbound messages are queued by send() and written to the client by
    event_stream(). Inbound messages arrive through deliver(), called by the
    session registry when a POST for this session is routed here, and are
    consumed in arrival order through messages().

    Closing is idempotent. The on_close callback fires exactly once, whether
    the close comes from the stream ending (client disconnect) or from an
    explicit close().
    """

    def __init__(
        self,
        session_id: str,
        endpoint: str = "/messages",
        on_close: Callable[[str], Awaitable[Any]] | None = None,
    ) -> None:
        self.session_id = session_id
        self.endpoint = endpoint
        self._on_close = on_close
        self._outbound: asyncio.Queue[Any] = asyncio.Queue()
        self._inbound: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False
        self._close_notified = False

    @property
    def is_open(self) -> bool:
        return not self._closed

    @property
    def endpoint_url(self) -> str:
        """URL the client must POST messages to for this session."""
        return f"{self.endpoint}?sessionId={quote(self.session_id)}"

    # ================================
    # Outbound
    # ================================

    async def send(self, payload: dict[str, Any]) -> None:
        if self._closed:
            raise ConnectionError(f"Transport for session {self.session_id} is closed")
        self._outbound.put_nowait(payload)

    async def event_stream(self) -> AsyncIterator[str]:
        """Generate SSE frames for the client.

        Starts with the endpoint event, then one message event per outbound
        payload. Ends when the transport closes. If the consumer stops
        iterating (client disconnect or cancellation) the transport closes.
        """
        try:
            yield format_sse_event("endpoint", self.endpoint_url)
            while True:
                message = await self._outbound.get()
                if message is _CLOSE:
                    logger.debug(f"Stream for session {self.session_id} closed")
                    break
                yield format_sse_event(
                    "message", json.dumps(message, separators=(",", ":"))
                )
        finally:
            # Disconnects arrive as cancellation; teardown must still finish.
            with anyio.CancelScope(shield=True):
                await self.close()

    # ================================
    # Inbound
    # ================================

    def deliver(self, payload: Any) -> bool:
        """Queue an inbound payload for the protocol server.

        Returns:
            True if queued, False if the transport is closed and the payload
            was dropped.
        """
        if self._closed:
            logger.debug(f"Dropping message for closed session {self.session_id}")
            return False

        self._inbound.put_nowait(
            TransportMessage(payload=payload, session_id=self.session_id)
        )
        return True

    async def messages(self) -> AsyncIterator[TransportMessage]:
        while True:
            message = await self._inbound.get()
            if message is _CLOSE:
                return
            yield message

    # ================================
    # Termination
    # ================================

    async def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._discard_inbound()
            self._inbound.put_nowait(_CLOSE)
            self._outbound.put_nowait(_CLOSE)
            logger.debug(f"Closed transport for session {self.session_id}")

        if self._on_close is not None and not self._close_notified:
            self._close_notified = True
            await self._on_close(self.session_id)

    def _discard_inbound(self) -> None:
        dropped = 0
        while not self._inbound.empty():
            self._inbound.get_nowait()
            dropped += 1
        if dropped:
            logger.debug(
                f"Discarded {dropped} undelivered messages for session "
                f"{self.session_id}"
            )
