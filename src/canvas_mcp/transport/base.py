"""Duplex message channel between a protocol server and one remote client."""

import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any


@dataclass
class TransportMessage:
    """An inbound JSON-RPC payload and where it came from."""

    payload: Any
    session_id: str | None = None
    received_at: float = field(default_factory=time.time)


class Transport(ABC):
    """What a protocol server needs from the channel it is connected to.

    Outbound payloads go through send(). Inbound payloads are consumed, in
    the order they arrived, by iterating messages(); the iterator ends once
    the channel is closed.
    """

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """False once close() has run."""

    @abstractmethod
    async def send(self, payload: dict[str, Any]) -> None:
        """Queue a JSON-RPC message for the client.

        Raises:
            ConnectionError: If the channel is closed.
        """

    @abstractmethod
    def messages(self) -> AsyncIterator[TransportMessage]:
        """Inbound messages in arrival order."""

    @abstractmethod
    async def close(self) -> None:
        """Close both directions. Safe to call more than once."""
