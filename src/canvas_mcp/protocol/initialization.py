from typing import Any

from canvas_mcp.protocol.base import PROTOCOL_VERSION, ProtocolModel


class Implementation(ProtocolModel):
    """Name and version string of the server or client."""

    name: str
    version: str


class ToolsCapability(ProtocolModel):
    """Capabilities for tool execution and change notifications."""

    list_changed: bool | None = None
    """
    Whether the server sends notifications when the tool list changes.
    """


class ServerCapabilities(ProtocolModel):
    """
    Capabilities that the server supports. Sent in the initialize result.
    """

    experimental: dict[str, Any] | None = None
    tools: ToolsCapability | None = None


class InitializeResult(ProtocolModel):
    """
    Server response to the client's initialize request.
    """

    protocol_version: str = PROTOCOL_VERSION
    capabilities: ServerCapabilities
    server_info: Implementation
    instructions: str | None = None
    """
    Hints for the client on how to use this server's tools.
    """
