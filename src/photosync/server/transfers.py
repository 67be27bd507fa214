"""Binary upload coordination.

Uploads are idempotent by path: re-uploading replaces the object. Adapter
failures are returned to the caller instead of raised, and nothing is
retried here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from photosync.core.types import OperationStatus
from photosync.server.errors import StoreError
from photosync.server.schemas import FileDetails

if TYPE_CHECKING:
    from photosync.server.sessions import SessionManager
    from photosync.server.storage import ObjectStorage

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"

CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}


def content_type_for(path: str) -> str:
    """Infer a content type from the path's extension only."""
    lowered = path.lower()
    for suffix, content_type in CONTENT_TYPES.items():
        if lowered.endswith(suffix):
            return content_type
    return DEFAULT_CONTENT_TYPE


@dataclass
class UploadResult:
    """Outcome of one upload attempt."""

    success: bool
    path: str
    size: int
    content_type: str
    error: str | None = None


class FileTransferCoordinator:
    """Binds binary uploads to their owning session."""

    def __init__(self, storage: ObjectStorage, sessions: SessionManager) -> None:
        self._storage = storage
        self._sessions = sessions

    def upload(self, sync_id: str | None, path: str, payload: bytes) -> UploadResult:
        """Write a payload to the object store under an active session.

        Every attempt, successful or not, is appended to the session log.

        Args:
            sync_id: Owning session id.
            path: Object path (its extension selects the content type).
            payload: Raw bytes.

        Returns:
            UploadResult; ``success`` is False with ``error`` set when the
            object store write failed.

        Raises:
            InvalidSessionError: If the session is not in progress.
        """
        sync_id = self._sessions.require_active(sync_id)
        content_type = content_type_for(path)

        error: str | None = None
        try:
            self._storage.put(path, payload, content_type)
        except (StoreError, ValueError) as e:
            error = str(e)
            logger.warning("Session %s: upload of %s failed: %s", sync_id, path, error)

        result = UploadResult(
            success=error is None,
            path=path,
            size=len(payload),
            content_type=content_type,
            error=error,
        )
        self._sessions.log_operation(
            sync_id,
            OperationStatus.COMPLETED if result.success else OperationStatus.FAILED,
            FileDetails(
                file_path=path,
                size=result.size,
                content_type=content_type,
                error=error,
            ),
        )
        if result.success:
            logger.info("Session %s: stored %s (%d bytes, %s)", sync_id, path, result.size, content_type)
        return result
