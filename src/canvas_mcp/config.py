"""Server configuration loaded from the environment."""

import os
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from canvas_mcp.canvas.models import CanvasCredentials
from canvas_mcp.exceptions import ConfigError


class ServerConfig(BaseModel):
    """Everything the SSE server needs to run.

    The API key is optional. When it is None, /sse and /messages accept
    unauthenticated requests.
    """

    model_config = ConfigDict(frozen=True)

    canvas_token: str
    canvas_domain: str
    host: str = "0.0.0.0"
    port: int = Field(default=3000, ge=0, le=65535)
    api_key: str | None = None
    messages_endpoint: str = "/messages"
    log_level: str = "INFO"

    @field_validator("api_key")
    @classmethod
    def _blank_key_disables_auth(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return value

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()

    @property
    def credentials(self) -> CanvasCredentials:
        return CanvasCredentials(token=self.canvas_token, domain=self.canvas_domain)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ServerConfig":
        """Build config from environment variables.

        Reads CANVAS_API_TOKEN, CANVAS_DOMAIN, PORT, HOST, MCP_API_KEY and
        LOG_LEVEL.

        Raises:
            ConfigError: If the Canvas token or domain is missing, or a value
                fails validation.
        """
        env = os.environ if environ is None else environ

        missing = [
            name for name in ("CANVAS_API_TOKEN", "CANVAS_DOMAIN") if not env.get(name)
        ]
        if missing:
            raise ConfigError(f"Missing required environment: {', '.join(missing)}")

        values: dict[str, str] = {
            "canvas_token": env["CANVAS_API_TOKEN"],
            "canvas_domain": env["CANVAS_DOMAIN"],
        }
        optional = {
            "HOST": "host",
            "PORT": "port",
            "MCP_API_KEY": "api_key",
            "LOG_LEVEL": "log_level",
        }
        for env_name, field_name in optional.items():
            if env_name in env:
                values[field_name] = env[env_name]

        try:
            return cls.model_validate(values)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e
