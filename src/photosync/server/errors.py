"""Exception hierarchy for the sync protocol core."""

from __future__ import annotations


class PhotoSyncError(Exception):
    """Base class for protocol errors."""


class ValidationError(PhotoSyncError):
    """Raised when a required input is missing or malformed."""


class InvalidSessionError(PhotoSyncError):
    """Raised when a sync id is unknown or the session is no longer in progress."""

    def __init__(self, sync_id: str | None) -> None:
        super().__init__(f"Invalid sync session: {sync_id}")
        self.sync_id = sync_id


class StoreError(PhotoSyncError):
    """Raised when the catalog store or object store call fails."""


class NotFoundError(PhotoSyncError):
    """Raised when a requested record does not exist."""
