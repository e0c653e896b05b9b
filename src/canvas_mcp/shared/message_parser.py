"""JSON-RPC message parsing utilities for the MCP protocol.

Classifies raw payloads and builds the response envelopes the server sends
back over the event stream.
"""

from typing import Any

from canvas_mcp.protocol.base import JSONRPC_VERSION, Error


class MessageParser:
    """Classifies JSON-RPC payloads and builds response envelopes."""

    def is_valid_request(self, payload: Any) -> bool:
        """Check if payload is a valid JSON-RPC request (method + id)."""
        if not isinstance(payload, dict):
            return False
        return isinstance(payload.get("method"), str) and self._has_valid_id(payload)

    def is_valid_notification(self, payload: Any) -> bool:
        """Check if payload is a valid JSON-RPC notification (method, no id)."""
        if not isinstance(payload, dict):
            return False
        return isinstance(payload.get("method"), str) and "id" not in payload

    def is_valid_response(self, payload: Any) -> bool:
        """Check if payload is a valid JSON-RPC response."""
        if not isinstance(payload, dict):
            return False
        has_result = "result" in payload
        has_error = "error" in payload
        return self._has_valid_id(payload) and (has_result ^ has_error)

    def build_result(
        self, request_id: str | int, result: dict[str, Any]
    ) -> dict[str, Any]:
        """Wrap a result in a JSON-RPC response envelope."""
        return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}

    def build_error(self, request_id: str | int | None, error: Error) -> dict[str, Any]:
        """Wrap an Error in a JSON-RPC error envelope."""
        return {
            "jsonrpc": JSONRPC_VERSION,
            "id": request_id,
            "error": error.to_protocol(),
        }

    def _has_valid_id(self, payload: dict[str, Any]) -> bool:
        id_value = payload.get("id")
        return (
            id_value is not None
            and isinstance(id_value, (int, str))
            and not isinstance(id_value, bool)
        )
