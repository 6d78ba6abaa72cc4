"""Shared configuration classes for syncwatch.

This module defines configuration classes used by both client and server components.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ServerConfig:
    """Configuration for connecting to a dashboard server.

    Used by the HTTP client (SyncStatusClient) and the CLI to ensure
    consistent connection settings.

    Attributes:
        server_url: Base URL of the server (e.g., "https://dash.example.com").
        token: Optional bearer token sent with every request.
        timeout: Request timeout in seconds.
        verify_ssl: Whether to verify SSL certificates (default True).
    """

    server_url: str
    token: str | None = None
    timeout: float = 10.0
    verify_ssl: bool = True

    def __post_init__(self) -> None:
        """Normalize server URL."""
        self.server_url = self.server_url.rstrip("/")

    @property
    def headers(self) -> dict[str, str]:
        """Get default request headers.

        Returns:
            Headers including the bearer token when one is configured.
        """
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}
