"""HTTP surface for the Canvas MCP SSE server.

Exposes /health, /, /sse and /messages. Session state lives in the
SessionRegistry; this module only translates HTTP into registry calls.
"""

import contextlib
import logging
from collections.abc import AsyncIterator, Callable
from datetime import datetime, timezone
from typing import Any

import uvicorn
from starlette.applications import Starlette
from starlette.background import BackgroundTask
from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.responses import JSONResponse, Response, StreamingResponse
from starlette.routing import Route

from canvas_mcp import __version__
from canvas_mcp.canvas.client import CanvasClient
from canvas_mcp.config import ServerConfig
from canvas_mcp.exceptions import SessionSetupError
from canvas_mcp.server.factory import ServerFactory, create_canvas_server
from canvas_mcp.transport.sse.auth import BearerTokenGate
from canvas_mcp.transport.sse.middleware import build_middleware
from canvas_mcp.transport.sse.session_registry import RouteResult, SessionRegistry

logger = logging.getLogger(__name__)

DOCUMENTATION_URL = "https://github.com/DMontgomery40/mcp-canvas-lms"

SSE_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # disable nginx buffering
}


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class SSEMCPServer:
    """Canvas MCP server reachable over Server-Sent Events.

    Each GET /sse opens one session with its own protocol server. Clients
    send messages with POST /messages?sessionId=<id>, using the URL announced
    in the stream's first (endpoint) event.
    """

    def __init__(
        self,
        config: ServerConfig,
        server_factory: ServerFactory = create_canvas_server,
        health_client_factory: Callable[..., CanvasClient] = CanvasClient,
    ) -> None:
        self.config = config
        self._registry = SessionRegistry(
            server_factory, endpoint=config.messages_endpoint
        )
        self._auth = BearerTokenGate(config.api_key)
        self._health_client_factory = health_client_factory
        self._app = self._create_app()
        self._server: uvicorn.Server | None = None

    @property
    def app(self) -> Starlette:
        return self._app

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    def _create_app(self) -> Starlette:
        routes = [
            Route("/health", self._handle_health, methods=["GET"]),
            Route("/", self._handle_root, methods=["GET"]),
            Route("/sse", self._handle_sse, methods=["GET"]),
            Route(
                self.config.messages_endpoint, self._handle_messages, methods=["POST"]
            ),
        ]
        return Starlette(
            routes=routes,
            middleware=build_middleware(),
            exception_handlers={
                404: self._handle_not_found,
                405: self._handle_not_found,
                Exception: self._handle_error,
            },
            lifespan=self._lifespan,
        )

    @contextlib.asynccontextmanager
    async def _lifespan(self, app: Starlette) -> AsyncIterator[None]:
        yield
        await self._registry.close_all()

    # ================================
    # Server lifecycle
    # ================================

    async def serve(self) -> None:
        """Run the HTTP server until it is stopped."""
        config = uvicorn.Config(
            app=self._app,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level.lower(),
        )
        self._server = uvicorn.Server(config)

        base = f"http://{self.config.host}:{self.config.port}"
        logger.info(f"Listening on {base}")
        logger.info(f"SSE endpoint: {base}/sse")
        logger.info(f"Health check: {base}/health")
        if self._auth.is_enabled:
            logger.info("API key authentication enabled")

        await self._server.serve()

    async def stop(self) -> None:
        """Stop the HTTP server and close all sessions."""
        if self._server:
            self._server.should_exit = True
        await self._registry.close_all()

    # ================================
    # Endpoints
    # ================================

    async def _handle_health(self, request: Request) -> Response:
        try:
            async with self._health_client_factory(self.config.credentials) as client:
                health = await client.health_check()
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return JSONResponse(
                {
                    "status": "error",
                    "timestamp": _timestamp(),
                    "error": str(e) or type(e).__name__,
                },
                status_code=503,
            )

        return JSONResponse(
            {
                "status": "ok",
                "canvas": health,
                "timestamp": _timestamp(),
                "connections": len(self._registry),
            }
        )

    async def _handle_root(self, request: Request) -> Response:
        return JSONResponse(
            {
                "name": "Canvas MCP Server",
                "version": __version__,
                "transport": "SSE",
                "endpoints": {
                    "health": "/health",
                    "sse": "/sse",
                    "messages": self.config.messages_endpoint,
                },
                "documentation": DOCUMENTATION_URL,
            }
        )

    async def _handle_sse(self, request: Request) -> Response:
        """Open an event stream and register a session for it.

        The session is created before the response starts, so setup failures
        can still be reported as a JSON error.
        """
        if not self._auth.check(request):
            return self._auth.reject(request)

        logger.info("New SSE connection request")
        try:
            session_id = await self._registry.create_session(self.config.credentials)
        except SessionSetupError as e:
            logger.error(f"Error establishing SSE connection: {e}")
            return JSONResponse(
                {"error": "Failed to establish SSE connection", "details": str(e)},
                status_code=500,
            )

        session = self._registry.get(session_id)
        return StreamingResponse(
            session.transport.event_stream(),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
            # Covers a response that ends without ever starting the stream.
            background=BackgroundTask(self._registry.close_session, session_id),
        )

    async def _handle_messages(self, request: Request) -> Response:
        """Accept a client message and route it to its session.

        The response acknowledges receipt only. Messages for unknown or closed
        sessions are logged and dropped; protocol-level errors go back over
        the event stream.
        """
        if not self._auth.check(request):
            return self._auth.reject(request)

        session_id = request.query_params.get("sessionId") or request.headers.get(
            "Mcp-Session-Id"
        )
        try:
            payload: Any = await request.json()
        except ValueError as e:
            logger.error(f"Error handling message for session {session_id}: {e}")
            return JSONResponse(
                {"error": "Failed to process message", "details": str(e)},
                status_code=500,
            )

        logger.debug(f"Received message for session {session_id}: {payload}")
        result = self._registry.route_inbound_message(session_id, payload)
        if result is RouteResult.NO_SESSION:
            logger.debug(f"Acknowledged undeliverable message for {session_id}")
        return JSONResponse({"success": True})

    # ================================
    # Error handlers
    # ================================

    async def _handle_not_found(self, request: Request, exc: HTTPException) -> Response:
        return JSONResponse(
            {
                "error": "Not Found",
                "path": request.url.path,
                "availableEndpoints": [
                    "/",
                    "/health",
                    "/sse",
                    self.config.messages_endpoint,
                ],
            },
            status_code=404,
        )

    async def _handle_error(self, request: Request, exc: Exception) -> Response:
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            {"error": "Internal Server Error", "message": str(exc)},
            status_code=500,
        )
