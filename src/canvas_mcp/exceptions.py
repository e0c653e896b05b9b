"""Exception hierarchy for the Canvas MCP server.

Each failure mode in the session lifecycle gets its own type so the HTTP
surface can map it to the right response.
"""

from __future__ import annotations


class CanvasMCPError(Exception):
    """Base exception for all Canvas MCP server errors."""

    pass


class ConfigError(CanvasMCPError):
    """Raised when required configuration is missing or invalid."""

    pass


class CanvasAPIError(CanvasMCPError):
    """Raised when a call to the Canvas LMS API fails."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class SessionSetupError(CanvasMCPError):
    """Raised when a session cannot be established.

    Nothing is registered when this is raised; the stream must not be treated
    as open.
    """

    def __init__(self, message: str, session_id: str | None = None):
        super().__init__(message)
        self.session_id = session_id
