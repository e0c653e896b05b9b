"""MCP server session bound to one Canvas account and one transport."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from canvas_mcp import __version__
from canvas_mcp.canvas.client import CanvasClient
from canvas_mcp.canvas.models import CanvasCredentials
from canvas_mcp.protocol.base import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PROTOCOL_VERSION,
    Error,
)
from canvas_mcp.protocol.initialization import (
    Implementation,
    InitializeResult,
    ServerCapabilities,
    ToolsCapability,
)
from canvas_mcp.server.canvas_tools import register_canvas_tools
from canvas_mcp.server.tools import ToolManager
from canvas_mcp.shared.message_parser import MessageParser
from canvas_mcp.transport.base import Transport

logger = logging.getLogger(__name__)

RequestHandler = Callable[[dict[str, Any]], Awaitable[dict[str, Any] | Error]]


@dataclass
class ClientState:
    info: dict[str, Any] | None = None
    capabilities: dict[str, Any] | None = None
    protocol_version: str | None = None


class CanvasServerSession:
    """Protocol server for a single client.

    Constructed fresh for every session because it carries that client's
    credentials and conversational state. Messages from the transport are
    handled one at a time, in arrival order.
    """

    def __init__(
        self,
        credentials: CanvasCredentials,
        canvas_client: CanvasClient | None = None,
        info: Implementation | None = None,
        instructions: str | None = None,
    ):
        self.credentials = credentials
        self.info = info or Implementation(name="canvas-mcp", version=__version__)
        self.instructions = instructions
        self.canvas = canvas_client or CanvasClient(credentials)
        self.client_state = ClientState()
        self.tools = ToolManager()
        register_canvas_tools(self.tools, self.canvas)

        self.transport: Transport | None = None
        self._parser = MessageParser()
        self._message_loop_task: asyncio.Task[None] | None = None
        self._received_initialized = False
        self._closed = False

    @property
    def initialized(self) -> bool:
        return self._received_initialized

    @property
    def running(self) -> bool:
        """True if the message loop is actively processing messages."""
        return (
            self._message_loop_task is not None and not self._message_loop_task.done()
        )

    # ================================
    # Lifecycle
    # ================================

    async def connect(self, transport: Transport) -> None:
        """Bind to a transport and start processing its messages.

        Raises:
            RuntimeError: If already connected or closed.
            ConnectionError: If the transport is closed.
        """
        if self._closed:
            raise RuntimeError("Cannot connect: session is closed")
        if self.transport is not None:
            raise RuntimeError("Session is already connected")
        if not transport.is_open:
            raise ConnectionError("Cannot connect: transport is closed")

        self.transport = transport
        self._message_loop_task = asyncio.create_task(self._message_loop())

    async def close(self) -> None:
        """Stop message processing and release the Canvas client.

        Cancels any request currently being handled. Safe to call multiple
        times, including from inside the message loop.
        """
        if self._closed:
            return
        self._closed = True

        task = self._message_loop_task
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._message_loop_task = None

        await self.canvas.close()

    async def _message_loop(self) -> None:
        """Process incoming messages until cancelled or the transport fails.

        Errors in a single message are logged and don't stop the loop. A
        transport failure closes the transport, which tears the session down.
        """
        assert self.transport is not None
        try:
            async for transport_message in self.transport.messages():
                try:
                    await self._handle_message(transport_message.payload)
                except ConnectionError:
                    raise
                except Exception as e:
                    logger.error(f"Error handling message: {e}")
        except ConnectionError as e:
            logger.error(f"Transport error, closing: {e}")
            await self.transport.close()

    # ================================
    # Message routing
    # ================================

    async def _handle_message(self, payload: Any) -> None:
        if isinstance(payload, list):
            for item in payload:
                await self._handle_message(item)
            return

        if self._parser.is_valid_request(payload):
            await self._handle_request(payload)
        elif self._parser.is_valid_notification(payload):
            await self._handle_notification(payload)
        elif self._parser.is_valid_response(payload):
            # This server never sends requests, so there is nothing to resolve.
            logger.debug(f"Ignoring response with id {payload['id']}")
        else:
            logger.warning(f"Dropping invalid JSON-RPC message: {payload}")
            if isinstance(payload, dict) and "id" in payload:
                await self.transport.send(
                    self._parser.build_error(
                        payload["id"],
                        Error(code=INVALID_REQUEST, message="Invalid request"),
                    )
                )

    async def _handle_request(self, payload: dict[str, Any]) -> None:
        request_id = payload["id"]
        method = payload["method"]
        params = payload.get("params") or {}

        handler = self._get_request_handlers().get(method)
        if handler is None:
            result: dict[str, Any] | Error = Error(
                code=METHOD_NOT_FOUND, message=f"Method not supported: {method}"
            )
        else:
            try:
                result = await handler(params)
            except Exception as e:
                logger.error(f"Handler for {method} failed: {e}")
                result = Error(
                    code=INTERNAL_ERROR,
                    message="Error in request handler",
                    data=str(e),
                )

        if isinstance(result, Error):
            response = self._parser.build_error(request_id, result)
        else:
            response = self._parser.build_result(request_id, result)
        await self.transport.send(response)

    async def _handle_notification(self, payload: dict[str, Any]) -> None:
        method = payload["method"]
        if method == "notifications/initialized":
            self._received_initialized = True
            logger.debug("Client completed initialization")
        elif method == "notifications/cancelled":
            # Requests run to completion before the next message is read, so
            # the referenced request has already finished.
            logger.debug(f"Ignoring cancellation: {payload.get('params')}")
        else:
            logger.debug(f"Unhandled notification: {method}")

    def _get_request_handlers(self) -> dict[str, RequestHandler]:
        return {
            "initialize": self._handle_initialize,
            "ping": self._handle_ping,
            "tools/list": self._handle_list_tools,
            "tools/call": self._handle_call_tool,
        }

    # ================================
    # Request handlers
    # ================================

    async def _handle_initialize(self, params: dict[str, Any]) -> dict[str, Any]:
        self.client_state.info = params.get("clientInfo")
        self.client_state.capabilities = params.get("capabilities")
        self.client_state.protocol_version = params.get("protocolVersion")
        return InitializeResult(
            protocol_version=PROTOCOL_VERSION,
            capabilities=ServerCapabilities(tools=ToolsCapability(list_changed=False)),
            server_info=self.info,
            instructions=self.instructions,
        ).to_protocol()

    async def _handle_ping(self, params: dict[str, Any]) -> dict[str, Any]:
        return {}

    async def _handle_list_tools(self, params: dict[str, Any]) -> dict[str, Any]:
        return await self.tools.handle_list()

    async def _handle_call_tool(self, params: dict[str, Any]) -> dict[str, Any] | Error:
        name = params.get("name")
        if not isinstance(name, str):
            return Error(code=INVALID_PARAMS, message="Tool name is required")
        try:
            result = await self.tools.handle_call(name, params.get("arguments"))
        except KeyError:
            return Error(code=INVALID_PARAMS, message=f"Unknown tool: {name}")
        return result.to_protocol()
