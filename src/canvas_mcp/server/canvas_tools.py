"""Canvas LMS tools exposed to MCP clients."""

import json
from typing import Any

from canvas_mcp.canvas.client import CanvasClient
from canvas_mcp.exceptions import CanvasAPIError
from canvas_mcp.protocol.tools import CallToolResult, TextContent, Tool
from canvas_mcp.server.tools import ToolManager

COURSE_ID_SCHEMA = {
    "type": "object",
    "properties": {"course_id": {"type": ["integer", "string"]}},
    "required": ["course_id"],
}


def _json_result(data: Any) -> CallToolResult:
    return CallToolResult(content=[TextContent(text=json.dumps(data, indent=2))])


def _api_error(error: CanvasAPIError) -> CallToolResult:
    return CallToolResult(
        content=[TextContent(text=f"Canvas API error: {error}")], is_error=True
    )


def _require_course_id(arguments: dict[str, Any]) -> int | str:
    course_id = arguments.get("course_id")
    if course_id is None or course_id == "":
        raise ValueError("course_id is required")
    return course_id


def register_canvas_tools(manager: ToolManager, client: CanvasClient) -> None:
    """Register every Canvas tool on the manager, bound to one client."""

    async def health_check(arguments: dict[str, Any]) -> CallToolResult:
        try:
            return _json_result(await client.health_check())
        except CanvasAPIError as e:
            return _api_error(e)

    async def list_courses(arguments: dict[str, Any]) -> CallToolResult:
        try:
            courses = await client.list_courses(
                arguments.get("enrollment_state", "active")
            )
        except CanvasAPIError as e:
            return _api_error(e)
        return _json_result(courses)

    async def get_course(arguments: dict[str, Any]) -> CallToolResult:
        course_id = _require_course_id(arguments)
        try:
            return _json_result(await client.get_course(course_id))
        except CanvasAPIError as e:
            return _api_error(e)

    async def list_assignments(arguments: dict[str, Any]) -> CallToolResult:
        course_id = _require_course_id(arguments)
        try:
            return _json_result(await client.list_assignments(course_id))
        except CanvasAPIError as e:
            return _api_error(e)

    manager.register(
        Tool(
            name="canvas_health_check",
            description="Check connectivity to the Canvas API",
        ),
        health_check,
    )
    manager.register(
        Tool(
            name="canvas_list_courses",
            description="List courses for the authenticated user",
            input_schema={
                "type": "object",
                "properties": {
                    "enrollment_state": {
                        "type": "string",
                        "enum": ["active", "completed", "invited_or_pending"],
                    }
                },
            },
        ),
        list_courses,
    )
    manager.register(
        Tool(
            name="canvas_get_course",
            description="Get details for one course",
            input_schema=COURSE_ID_SCHEMA,
        ),
        get_course,
    )
    manager.register(
        Tool(
            name="canvas_list_assignments",
            description="List assignments in a course",
            input_schema=COURSE_ID_SCHEMA,
        ),
        list_assignments,
    )
