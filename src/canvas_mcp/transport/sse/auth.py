import logging
import secrets

from starlette.requests import Request
from starlette.responses import JSONResponse

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


class BearerTokenGate:
    """Shared-secret bearer token check for the session endpoints.

    With no API key configured every request passes.
    """

    def __init__(self, api_key: str | None = None) -> None:
        self._api_key = api_key or None

    @property
    def is_enabled(self) -> bool:
        return self._api_key is not None

    def check(self, request: Request) -> bool:
        if self._api_key is None:
            return True

        header = request.headers.get("Authorization", "")
        if not header.startswith(BEARER_PREFIX):
            return False
        provided = header[len(BEARER_PREFIX) :].strip()
        return secrets.compare_digest(provided.encode(), self._api_key.encode())

    def reject(self, request: Request) -> JSONResponse:
        logger.warning(f"Authentication failed for {request.method} {request.url.path}")
        return JSONResponse({"error": "Unauthorized"}, status_code=401)
