import asyncio
import json

import pytest

from canvas_mcp.exceptions import CanvasAPIError
from canvas_mcp.protocol.base import (
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PROTOCOL_VERSION,
)
from canvas_mcp.server.session import CanvasServerSession
from tests.server.conftest import MockTransport, wait_for_sent


class TestLifecycle:
    async def test_connect_starts_message_loop(self, session):
        assert session.running is True

    async def test_connect_twice_raises(self, session):
        with pytest.raises(RuntimeError):
            await session.connect(MockTransport())

    async def test_connect_to_closed_transport_raises(self, credentials, canvas):
        # Arrange
        session = CanvasServerSession(credentials, canvas_client=canvas)
        transport = MockTransport()
        await transport.close()

        # Act & Assert
        with pytest.raises(ConnectionError):
            await session.connect(transport)

    async def test_close_stops_loop_and_releases_client(self, session, canvas):
        # Act
        await session.close()
        await session.close()

        # Assert
        assert session.running is False
        canvas.close.assert_awaited_once()

    async def test_connect_after_close_raises(self, credentials, canvas):
        # Arrange
        session = CanvasServerSession(credentials, canvas_client=canvas)
        await session.close()

        # Act & Assert
        with pytest.raises(RuntimeError):
            await session.connect(MockTransport())

    async def test_transport_failure_closes_transport(self, session, transport):
        # Act
        transport.simulate_error()
        for _ in range(100):
            if transport.closed:
                break
            await asyncio.sleep(0.001)

        # Assert
        assert transport.closed is True
        assert session.running is False


class TestRequestHandling:
    async def test_ping_returns_empty_result(self, session, transport):
        # Act
        transport.receive_message({"jsonrpc": "2.0", "id": 1, "method": "ping"})
        await wait_for_sent(transport)

        # Assert
        assert transport.sent_messages == [{"jsonrpc": "2.0", "id": 1, "result": {}}]

    async def test_initialize_returns_server_info(self, session, transport):
        # Act
        transport.receive_message(
            {
                "jsonrpc": "2.0",
                "id": "init",
                "method": "initialize",
                "params": {
                    "protocolVersion": PROTOCOL_VERSION,
                    "capabilities": {},
                    "clientInfo": {"name": "test-client", "version": "1.0"},
                },
            }
        )
        await wait_for_sent(transport)

        # Assert
        result = transport.sent_messages[0]["result"]
        assert result["protocolVersion"] == PROTOCOL_VERSION
        assert result["serverInfo"]["name"] == "canvas-mcp"
        assert "tools" in result["capabilities"]
        assert session.client_state.info == {"name": "test-client", "version": "1.0"}

    async def test_initialized_notification_marks_session(self, session, transport):
        # Act
        transport.receive_message(
            {"jsonrpc": "2.0", "method": "notifications/initialized"}
        )
        for _ in range(100):
            if session.initialized:
                break
            await asyncio.sleep(0.001)

        # Assert
        assert session.initialized is True
        assert transport.sent_messages == []

    async def test_unknown_method_returns_method_not_found(self, session, transport):
        # Act
        transport.receive_message({"jsonrpc": "2.0", "id": 5, "method": "bogus"})
        await wait_for_sent(transport)

        # Assert
        error = transport.sent_messages[0]["error"]
        assert error["code"] == METHOD_NOT_FOUND
        assert transport.sent_messages[0]["id"] == 5

    async def test_invalid_message_with_id_returns_invalid_request(
        self, session, transport
    ):
        # Act
        transport.receive_message({"jsonrpc": "2.0", "id": 9})
        await wait_for_sent(transport)

        # Assert
        assert transport.sent_messages[0]["error"]["code"] == INVALID_REQUEST

    async def test_requests_answered_in_arrival_order(self, session, transport):
        # Act
        for request_id in (1, 2, 3):
            transport.receive_message(
                {"jsonrpc": "2.0", "id": request_id, "method": "ping"}
            )
        await wait_for_sent(transport, count=3)

        # Assert
        assert [m["id"] for m in transport.sent_messages] == [1, 2, 3]

    async def test_batch_is_handled_in_order(self, session, transport):
        # Act
        transport.receive_message(
            [
                {"jsonrpc": "2.0", "id": "a", "method": "ping"},
                {"jsonrpc": "2.0", "id": "b", "method": "ping"},
            ]
        )
        await wait_for_sent(transport, count=2)

        # Assert
        assert [m["id"] for m in transport.sent_messages] == ["a", "b"]


class TestToolHandling:
    async def test_list_tools(self, session, transport):
        # Act
        transport.receive_message({"jsonrpc": "2.0", "id": 1, "method": "tools/list"})
        await wait_for_sent(transport)

        # Assert
        names = [tool["name"] for tool in transport.sent_messages[0]["result"]["tools"]]
        assert names == [
            "canvas_health_check",
            "canvas_list_courses",
            "canvas_get_course",
            "canvas_list_assignments",
        ]
        schema = transport.sent_messages[0]["result"]["tools"][2]["inputSchema"]
        assert schema["required"] == ["course_id"]

    async def test_call_tool_fetches_from_canvas(self, session, transport, canvas):
        # Arrange
        canvas.get_course.return_value = {"id": 42, "name": "Biology"}

        # Act
        transport.receive_message(
            {
                "jsonrpc": "2.0",
                "id": 2,
                "method": "tools/call",
                "params": {"name": "canvas_get_course", "arguments": {"course_id": 42}},
            }
        )
        await wait_for_sent(transport)

        # Assert
        canvas.get_course.assert_awaited_once_with(42)
        result = transport.sent_messages[0]["result"]
        assert result["isError"] is False
        assert json.loads(result["content"][0]["text"]) == {"id": 42, "name": "Biology"}

    async def test_canvas_error_becomes_tool_error(self, session, transport, canvas):
        # Arrange
        canvas.list_courses.side_effect = CanvasAPIError("Canvas API returned 500")

        # Act
        transport.receive_message(
            {
                "jsonrpc": "2.0",
                "id": 3,
                "method": "tools/call",
                "params": {"name": "canvas_list_courses"},
            }
        )
        await wait_for_sent(transport)

        # Assert
        result = transport.sent_messages[0]["result"]
        assert result["isError"] is True
        assert "Canvas API returned 500" in result["content"][0]["text"]

    async def test_missing_argument_becomes_tool_error(self, session, transport):
        # Act
        transport.receive_message(
            {
                "jsonrpc": "2.0",
                "id": 4,
                "method": "tools/call",
                "params": {"name": "canvas_get_course", "arguments": {}},
            }
        )
        await wait_for_sent(transport)

        # Assert
        result = transport.sent_messages[0]["result"]
        assert result["isError"] is True
        assert "course_id is required" in result["content"][0]["text"]

    async def test_unknown_tool_returns_invalid_params(self, session, transport):
        # Act
        transport.receive_message(
            {
                "jsonrpc": "2.0",
                "id": 5,
                "method": "tools/call",
                "params": {"name": "nope"},
            }
        )
        await wait_for_sent(transport)

        # Assert
        assert transport.sent_messages[0]["error"]["code"] == INVALID_PARAMS
