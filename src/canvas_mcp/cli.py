"""Command-line entry point: run the SSE server from environment config."""

import asyncio
import logging
import sys

from dotenv import find_dotenv, load_dotenv

from canvas_mcp.config import ServerConfig
from canvas_mcp.exceptions import ConfigError
from canvas_mcp.transport.sse.server import SSEMCPServer

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Send all logs to stderr."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper())


def main() -> None:
    # Variables already set in the environment win over the .env file.
    load_dotenv(find_dotenv(usecwd=True))
    try:
        config = ServerConfig.from_env()
    except ConfigError as e:
        configure_logging()
        logger.error(str(e))
        sys.exit(1)

    configure_logging(config.log_level)
    server = SSEMCPServer(config)
    try:
        asyncio.run(server.serve())
    except KeyboardInterrupt:
        logger.info("Shutting down")


if __name__ == "__main__":
    main()
