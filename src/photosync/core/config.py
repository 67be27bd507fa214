"""Shared configuration classes for photosync.

This module defines configuration classes used by client-side components.
"""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass
class ServerConfig:
    """Configuration for connecting to a PhotoSync server.

    Attributes:
        server_url: Base URL of the server (e.g., "https://photos.example.com").
        api_key: Shared API key sent as the X-API-Key header.
        timeout: Request timeout in seconds.
        verify_ssl: Whether to verify SSL certificates (default True).
    """

    server_url: str
    api_key: str
    timeout: float = 30.0
    verify_ssl: bool = True

    def __post_init__(self) -> None:
        """Normalize server URL."""
        self.server_url = self.server_url.rstrip("/")

    @property
    def is_secure(self) -> bool:
        """Check if using HTTPS."""
        return self.server_url.startswith("https://")

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Build a config from PHOTOSYNC_SERVER_URL and PHOTOSYNC_API_KEY.

        Raises:
            KeyError: If PHOTOSYNC_SERVER_URL is not set.
        """
        return cls(
            server_url=os.environ["PHOTOSYNC_SERVER_URL"],
            api_key=os.environ.get("PHOTOSYNC_API_KEY", ""),
            timeout=float(os.environ.get("PHOTOSYNC_TIMEOUT", "30")),
        )
