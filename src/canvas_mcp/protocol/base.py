"""Base JSON-RPC and MCP protocol definitions.

Shared constants and the pydantic base model that every protocol object
builds on. Protocol objects use snake_case in Python and camelCase on the
wire.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

PROTOCOL_VERSION = "2024-11-05"
JSONRPC_VERSION = "2.0"

# Standard JSON-RPC error codes
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


class ProtocolModel(BaseModel):
    """Base class for all protocol objects.

    Accepts both field names and camelCase aliases on input, and always
    serializes to camelCase with unset optional fields dropped.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_protocol(self) -> dict[str, Any]:
        """Convert to wire format."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class Error(ProtocolModel):
    """JSON-RPC error object."""

    code: int
    """
    Error type. Standard JSON-RPC codes live in this module.
    """

    message: str
    """
    Short, human-readable description of the error.
    """

    data: Any | None = Field(default=None)
    """
    Additional details about the error.
    """
