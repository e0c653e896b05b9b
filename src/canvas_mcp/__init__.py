"""Canvas LMS MCP server exposed over Server-Sent Events."""

__version__ = "2.3.0"
