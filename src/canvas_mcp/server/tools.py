from typing import Any, Awaitable, Callable

from canvas_mcp.protocol.tools import CallToolResult, TextContent, Tool

ToolHandler = Callable[[dict[str, Any]], Awaitable[CallToolResult]]


class ToolManager:
    def __init__(self):
        self.registered: dict[str, Tool] = {}
        self.handlers: dict[str, ToolHandler] = {}

    def register(self, tool: Tool, handler: ToolHandler) -> None:
        """Register a tool with its handler function.

        Your handler should catch exceptions and return CallToolResult with
        is_error=True and descriptive error content. Uncaught exceptions become
        generic "Tool execution failed" results.

        Args:
            tool: Tool definition with name, description, and schema.
            handler: Async function that receives the call arguments.
        """
        self.registered[tool.name] = tool
        self.handlers[tool.name] = handler

    async def handle_list(self) -> dict[str, Any]:
        """List registered tools. Pagination is not supported."""
        return {"tools": [tool.to_protocol() for tool in self.registered.values()]}

    async def handle_call(
        self, name: str, arguments: dict[str, Any] | None
    ) -> CallToolResult:
        """Execute a tool call.

        Raises:
            KeyError: If the requested tool is not registered.
        """
        handler = self.handlers[name]
        try:
            return await handler(arguments or {})
        except Exception as e:
            return CallToolResult(
                content=[TextContent(text=f"Tool execution failed: {str(e)}")],
                is_error=True,
            )
