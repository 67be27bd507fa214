"""HTTP client for the PhotoSync server API.

This module provides:
- SyncClient: HTTP client for the sync protocol
- Typed results for each protocol call
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import httpx

from photosync.core.config import ServerConfig

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(APIError):
    """The API key was rejected."""


class InvalidSessionError(APIError):
    """The sync session is unknown or no longer in progress."""


class NotFoundError(APIError):
    """Resource not found."""


@dataclass
class SessionInfo:
    """An opened sync session."""

    sync_id: str
    timestamp: datetime

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionInfo:
        """Create from API response dictionary."""
        return cls(
            sync_id=data["syncId"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )


@dataclass
class IncrementalResult:
    """An incremental session and the records changed since the watermark."""

    session: SessionInfo
    changes: list[dict[str, Any]]


@dataclass
class ReconcileSummary:
    """Outcome of one metadata batch."""

    processed: int
    added: int
    updated: int
    errors: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReconcileSummary:
        """Create from API response dictionary."""
        return cls(
            processed=data["processed"],
            added=data["added"],
            updated=data["updated"],
            errors=list(data.get("errors", [])),
        )


@dataclass
class UploadOutcome:
    """Outcome of one binary upload."""

    success: bool
    file_path: str
    error: str | None = None


@dataclass
class VerifyItem:
    """Verification result for one id."""

    id: str
    exists: bool
    file_exists: bool


@dataclass
class VerifyOutcome:
    """Verification results plus the server's summary counts."""

    results: list[VerifyItem]
    total: int
    found: int
    missing: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VerifyOutcome:
        """Create from API response dictionary."""
        summary = data["summary"]
        return cls(
            results=[
                VerifyItem(id=r["id"], exists=r["exists"], file_exists=r["fileExists"])
                for r in data["results"]
            ],
            total=summary["total"],
            found=summary["found"],
            missing=summary["missing"],
        )


class SyncClient:
    """HTTP client for the PhotoSync sync protocol."""

    def __init__(self, config: ServerConfig) -> None:
        """Initialize the sync client.

        Args:
            config: Server connection settings.
        """
        self._config = config
        self._client = httpx.Client(
            base_url=config.server_url,
            timeout=config.timeout,
            verify=config.verify_ssl,
            headers={"X-API-Key": config.api_key},
        )
        if not config.is_secure:
            logger.warning("API key will be sent without TLS to %s", config.server_url)

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> SyncClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        """Handle API response and raise appropriate exceptions."""
        if response.status_code < 400:
            return response

        try:
            detail = response.json().get("error", "Unknown error")
        except ValueError:
            detail = response.text or "Unknown error"

        if response.status_code == 401:
            raise AuthenticationError(detail, 401)
        if response.status_code == 404:
            raise NotFoundError(detail, 404)
        if response.status_code == 400 and detail == "Invalid sync session":
            raise InvalidSessionError(detail, 400)
        raise APIError(detail, response.status_code)

    # === Health check ===

    def health_check(self) -> bool:
        """Check if the server is healthy."""
        try:
            response = self._client.get("/health")
            return response.status_code == 200
        except httpx.RequestError:
            return False

    # === Session operations ===

    def initialize(self, device_id: str, user_name: str) -> SessionInfo:
        """Open a full sync session for a device."""
        response = self._handle_response(
            self._client.post(
                "/api/sync/initialize",
                json={"deviceId": device_id, "userName": user_name},
            )
        )
        return SessionInfo.from_dict(response.json())

    def incremental(self, device_id: str, last_sync_time: datetime | str) -> IncrementalResult:
        """Open an incremental session and fetch changes since a watermark."""
        if isinstance(last_sync_time, datetime):
            last_sync_time = last_sync_time.isoformat()
        response = self._handle_response(
            self._client.post(
                "/api/sync/incremental",
                json={"deviceId": device_id, "lastSyncTime": last_sync_time},
            )
        )
        data = response.json()
        return IncrementalResult(
            session=SessionInfo.from_dict(data),
            changes=list(data["changes"]),
        )

    def complete(self, sync_id: str, success: bool = True, message: str | None = None) -> dict[str, Any]:
        """Mark a session completed (or failed) and return the session."""
        response = self._handle_response(
            self._client.post(
                "/api/sync/complete",
                json={"syncId": sync_id, "success": success, "message": message},
            )
        )
        session: dict[str, Any] = response.json()["session"]
        return session

    def get_status(
        self,
        sync_id: str | None = None,
        device_id: str | None = None,
    ) -> dict[str, Any]:
        """Get a session and its operations, by session id or device id."""
        params = {}
        if sync_id:
            params["syncId"] = sync_id
        if device_id:
            params["deviceId"] = device_id
        response = self._handle_response(self._client.get("/api/sync/status", params=params))
        status: dict[str, Any] = response.json()["status"]
        return status

    # === Transfer operations ===

    def sync_database(
        self,
        sync_id: str,
        photos: Sequence[dict[str, Any]],
        is_incremental: bool = False,
    ) -> ReconcileSummary:
        """Push a batch of photo records."""
        response = self._handle_response(
            self._client.post(
                "/api/sync/database",
                json={
                    "syncId": sync_id,
                    "photos": list(photos),
                    "isIncremental": is_incremental,
                },
            )
        )
        return ReconcileSummary.from_dict(response.json())

    def upload_file(self, sync_id: str, file_path: str, data: bytes) -> UploadOutcome:
        """Upload one binary to the given object path."""
        response = self._handle_response(
            self._client.post(
                "/api/sync/file",
                data={"syncId": sync_id, "filePath": file_path},
                files={"file": (file_path.rsplit("/", 1)[-1], data)},
            )
        )
        body = response.json()
        return UploadOutcome(
            success=body["success"],
            file_path=body["filePath"],
            error=body.get("error"),
        )

    def verify(self, sync_id: str, photo_ids: Sequence[str]) -> VerifyOutcome:
        """Verify that photos and their binaries exist on the server."""
        response = self._handle_response(
            self._client.post(
                "/api/sync/verify",
                json={"syncId": sync_id, "photoIds": list(photo_ids)},
            )
        )
        return VerifyOutcome.from_dict(response.json())
