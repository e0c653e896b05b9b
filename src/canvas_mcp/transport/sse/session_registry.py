"""Session registry for the SSE transport.

Owns the mapping from session id to the live transport and protocol server
for each open event stream. It is the only component allowed to mutate that
mapping.

All mutations of the mapping happen without suspending, so on a single
event loop creation, routing and teardown never interleave mid-update.
"""

import logging
import secrets
from dataclasses import dataclass
from enum import Enum
from typing import Any

from canvas_mcp.canvas.models import CanvasCredentials
from canvas_mcp.exceptions import SessionSetupError
from canvas_mcp.server.factory import ProtocolServer, ServerFactory
from canvas_mcp.transport.sse.stream import SSEServerTransport

logger = logging.getLogger(__name__)

SESSION_ID_BYTES = 16


class RouteResult(Enum):
    """Outcome of routing an inbound message."""

    DELIVERED = "delivered"
    NO_SESSION = "no_session"


@dataclass
class Session:
    """One open stream paired with its dedicated protocol server."""

    id: str
    transport: SSEServerTransport
    server: ProtocolServer


class SessionRegistry:
    """Creates, routes to, and tears down SSE sessions.

    Session ids are random URL-safe tokens, re-drawn on collision with any
    live or in-setup session.
    """

    def __init__(self, server_factory: ServerFactory, endpoint: str = "/messages"):
        self._server_factory = server_factory
        self._endpoint = endpoint
        self._sessions: dict[str, Session] = {}
        self._pending: set[str] = set()  # ids reserved by in-flight setups

    # ================================
    # Creation
    # ================================

    async def create_session(self, credentials: CanvasCredentials) -> str:
        """Build a transport and protocol server and register them.

        The caller must already hold an open stream and have passed
        authentication.

        Returns:
            The new session id.

        Raises:
            SessionSetupError: If the transport, the server, or the connect
                step fails. Nothing is registered in that case.
        """
        session_id = self._generate_session_id()
        self._pending.add(session_id)

        transport: SSEServerTransport | None = None
        server: ProtocolServer | None = None
        try:
            transport = SSEServerTransport(
                session_id, self._endpoint, on_close=self.close_session
            )
            server = self._server_factory(credentials)
            await server.connect(transport)
        except Exception as e:
            logger.error(f"Failed to set up session {session_id}: {e}")
            await self._release(session_id, transport, server)
            raise SessionSetupError(
                f"Failed to set up session: {e}", session_id=session_id
            ) from e
        finally:
            self._pending.discard(session_id)

        if not transport.is_open:
            # Closed while connecting; registering it would leave a dead entry.
            await self._release(session_id, transport, server)
            raise SessionSetupError(
                "Transport closed during setup", session_id=session_id
            )

        self._sessions[session_id] = Session(
            id=session_id, transport=transport, server=server
        )
        logger.info(
            f"Session {session_id} established ({len(self._sessions)} active)"
        )
        return session_id

    def _generate_session_id(self) -> str:
        while True:
            session_id = secrets.token_urlsafe(SESSION_ID_BYTES)
            if session_id not in self._sessions and session_id not in self._pending:
                return session_id

    # ================================
    # Routing
    # ================================

    def route_inbound_message(self, session_id: str | None, payload: Any) -> RouteResult:
        """Hand an inbound payload to the session that owns it.

        Unknown, missing, and already-closed sessions all yield NO_SESSION;
        the payload is dropped, never queued.
        """
        session = self._sessions.get(session_id) if session_id else None
        if session is None or not session.transport.deliver(payload):
            logger.warning(f"No active session for inbound message: {session_id}")
            return RouteResult.NO_SESSION

        logger.debug(f"Routed message to session {session_id}")
        return RouteResult.DELIVERED

    # ================================
    # Access
    # ================================

    def get(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def session_ids(self) -> list[str]:
        return list(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    # ================================
    # Termination
    # ================================

    async def close_session(self, session_id: str) -> bool:
        """Remove a session and release its server and transport.

        Idempotent: unknown or already-closed ids are a no-op.

        Returns:
            True if a live session was closed, False otherwise.
        """
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False

        logger.info(f"Closing session {session_id} ({len(self._sessions)} remaining)")
        await self._release(session_id, session.transport, session.server)
        return True

    async def close_all(self) -> None:
        """Close every live session."""
        session_ids = list(self._sessions)
        for session_id in session_ids:
            await self.close_session(session_id)
        if session_ids:
            logger.info(f"Closed all {len(session_ids)} sessions")

    async def _release(
        self,
        session_id: str,
        transport: SSEServerTransport | None,
        server: ProtocolServer | None,
    ) -> None:
        """Close the server, then always close the transport."""
        try:
            if server is not None:
                await server.close()
        except Exception as e:
            logger.error(f"Error closing server for session {session_id}: {e}")
        finally:
            if transport is not None:
                await transport.close()
