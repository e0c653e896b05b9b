import pytest

from canvas_mcp.canvas.models import CanvasCredentials
from canvas_mcp.config import ServerConfig


@pytest.fixture
def credentials() -> CanvasCredentials:
    return CanvasCredentials(token="test-token", domain="school.instructure.com")


@pytest.fixture
def config() -> ServerConfig:
    return ServerConfig(canvas_token="test-token", canvas_domain="school.instructure.com")
