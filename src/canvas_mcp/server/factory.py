"""Per-session protocol server construction."""

from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol

from canvas_mcp.canvas.models import CanvasCredentials
from canvas_mcp.transport.base import Transport

if TYPE_CHECKING:
    from canvas_mcp.server.session import CanvasServerSession


class ProtocolServer(Protocol):
    """What the session registry needs from a protocol server."""

    async def connect(self, transport: Transport) -> None: ...

    async def close(self) -> None: ...


ServerFactory = Callable[[CanvasCredentials], ProtocolServer]


def create_canvas_server(credentials: CanvasCredentials) -> "CanvasServerSession":
    """Build a fresh Canvas MCP server bound to the given credentials."""
    from canvas_mcp.server.session import CanvasServerSession

    return CanvasServerSession(credentials)
