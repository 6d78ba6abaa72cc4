"""HTTP client for the dashboard sync API.

This module provides:
- SyncStatusClient: Async HTTP client for the status and start endpoints
- StartResult: Parsed response of an accepted start request
- APIError and subclasses mapping HTTP failures to exceptions
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from syncwatch.client.snapshot import StatusSnapshot
from syncwatch.core.config import ServerConfig

logger = logging.getLogger(__name__)

STATUS_PATH = "/api/sync/status"
START_PATH = "/api/sync"


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AuthenticationError(APIError):
    """Authentication failed."""


class ConflictError(APIError):
    """A sync job is already running."""


class RateLimitError(APIError):
    """The previous sync finished too recently."""


@dataclass
class StartResult:
    """Response of an accepted start request."""

    message: str
    status: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> StartResult:
        """Create from API response dictionary."""
        if not isinstance(data, dict):
            return cls(message="Sync started")
        return cls(
            message=str(data.get("message") or "Sync started"),
            status=data.get("status"),
        )


def _error_message(response: httpx.Response, default: str) -> str:
    """Extract the {message} body of an error response."""
    try:
        data = response.json()
    except ValueError:
        return default
    if isinstance(data, dict):
        for key in ("message", "error", "detail"):
            if isinstance(data.get(key), str) and data[key]:
                return str(data[key])
    return default


class SyncStatusClient:
    """Async HTTP client for the dashboard sync API.

    One client may be shared by several pollers; it holds no observer
    state.

    Usage:
        async with SyncStatusClient(ServerConfig("http://localhost:8000")) as client:
            snapshot = await client.get_status()
            await client.start_sync(project_id="proj-1")
    """

    def __init__(
        self,
        config: ServerConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Server configuration with URL, token, and settings.
            transport: Optional transport (tests, ASGI apps).
        """
        self._config = config
        self._client = httpx.AsyncClient(
            base_url=config.server_url,
            timeout=config.timeout,
            headers=config.headers,
            verify=config.verify_ssl,
            transport=transport,
        )

    @property
    def server_url(self) -> str:
        return self._config.server_url

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> SyncStatusClient:
        """Context manager entry."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Context manager exit."""
        await self.aclose()

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        """Handle API response and raise appropriate exceptions."""
        if response.status_code == 401:
            raise AuthenticationError(
                _error_message(response, "Invalid or expired token"), 401
            )
        if response.status_code == 409:
            raise ConflictError(_error_message(response, "Sync already in progress"), 409)
        if response.status_code == 429:
            raise RateLimitError(_error_message(response, "Rate limited"), 429)
        if response.status_code != 200:
            raise APIError(
                _error_message(response, f"Unexpected status {response.status_code}"),
                response.status_code,
            )
        return response

    # === Health check ===

    async def health_check(self) -> bool:
        """Check if the server is healthy.

        Returns:
            True if server is healthy.
        """
        try:
            response = await self._client.get("/health")
            return response.status_code == 200
        except httpx.RequestError:
            return False

    # === Sync status ===

    async def get_status(self) -> StatusSnapshot:
        """Fetch the current status of the sync job.

        Returns:
            Parsed snapshot.

        Raises:
            APIError: On a non-200 response.
            httpx.HTTPError: On network failure.
            ValueError: If the body is not a JSON object.
        """
        response = self._handle_response(await self._client.get(STATUS_PATH))
        return StatusSnapshot.from_dict(response.json())

    async def start_sync(self, project_id: str | None = None) -> StartResult:
        """Ask the server to start a sync job.

        Args:
            project_id: Limit the job to one project; None starts a full sync.

        Returns:
            Parsed acceptance response.

        Raises:
            ConflictError: If a job is already running (409).
            RateLimitError: If the last sync finished too recently (429).
            APIError: On any other non-200 response.
            httpx.HTTPError: On network failure.
        """
        path = START_PATH
        if project_id is not None:
            path = f"{START_PATH}/project/{quote(project_id, safe='')}"
        response = self._handle_response(await self._client.post(path))
        try:
            data = response.json()
        except ValueError:
            data = None
        result = StartResult.from_dict(data)
        logger.info(f"Sync start accepted: {result.message}")
        return result
