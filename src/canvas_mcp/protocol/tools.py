from typing import Any, Literal

from pydantic import Field

from canvas_mcp.protocol.base import ProtocolModel


class TextContent(ProtocolModel):
    """Plain text returned from a tool."""

    type: Literal["text"] = "text"
    text: str


class Tool(ProtocolModel):
    """
    Definition of a tool the client can call.
    """

    name: str
    description: str | None = None
    input_schema: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )
    """
    JSON Schema describing the tool's arguments.
    """


class CallToolResult(ProtocolModel):
    """
    Result of a tool call.

    Tool failures are reported here with is_error=True rather than as
    protocol errors, so the model on the other end can see what went wrong.
    """

    content: list[TextContent]
    is_error: bool = False
