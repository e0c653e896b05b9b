"""Async client for the Canvas LMS REST API.

Only the calls the MCP tools and the health endpoint need are implemented.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from types import TracebackType
from typing import Any, Self

import httpx

from canvas_mcp.canvas.models import CanvasCredentials
from canvas_mcp.exceptions import CanvasAPIError

logger = logging.getLogger(__name__)


class CanvasClient:
    """Thin wrapper around httpx for the Canvas REST API.

    Each instance owns its HTTP client unless one is injected, so sessions can
    be closed independently of each other.
    """

    def __init__(
        self,
        credentials: CanvasCredentials,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.credentials = credentials
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._http_client.aclose()

    # ================================
    # Health
    # ================================

    async def health_check(self) -> dict[str, Any]:
        """Probe the Canvas API with the configured token.

        Returns:
            Status dict with the authenticated user's id and name.

        Raises:
            CanvasAPIError: If Canvas is unreachable or rejects the token.
        """
        user = await self._get("/users/self")
        return {
            "status": "ok",
            "user": {"id": user.get("id"), "name": user.get("name")},
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    # ================================
    # Resources
    # ================================

    async def list_courses(
        self, enrollment_state: str | None = "active"
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"per_page": 100}
        if enrollment_state:
            params["enrollment_state"] = enrollment_state
        return await self._get("/courses", params=params)

    async def get_course(self, course_id: int | str) -> dict[str, Any]:
        return await self._get(f"/courses/{course_id}")

    async def list_assignments(self, course_id: int | str) -> list[dict[str, Any]]:
        return await self._get(
            f"/courses/{course_id}/assignments", params={"per_page": 100}
        )

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        url = f"{self.credentials.base_url}{path}"
        headers = {
            "Authorization": f"Bearer {self.credentials.token}",
            "Accept": "application/json",
        }
        logger.debug(f"GET {url}")

        try:
            response = await self._http_client.get(url, params=params, headers=headers)
        except httpx.HTTPError as e:
            raise CanvasAPIError(f"Canvas request failed: {e}") from e

        if response.status_code >= 400:
            raise CanvasAPIError(
                f"Canvas API returned {response.status_code} for {path}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise CanvasAPIError(f"Invalid JSON from Canvas for {path}") from e
