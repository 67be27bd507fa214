"""Client-side push workflow.

Runs a full sync the way the mobile client does: open a session, push
metadata in small batches, upload each photo's binary, verify, complete.
Metadata and binaries are independent steps; a failed batch or upload is
counted and the run continues.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from photosync.client.api import APIError, SyncClient

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 5

ProgressCallback = Callable[[str, int, int], None]


@dataclass
class PushReport:
    """Outcome of a push run."""

    sync_id: str
    processed: int = 0
    added: int = 0
    updated: int = 0
    record_errors: list[dict[str, Any]] = field(default_factory=list)
    failed_batches: int = 0
    uploaded: int = 0
    upload_failures: list[str] = field(default_factory=list)
    missing_files: list[str] = field(default_factory=list)
    verified: int = 0
    unverified: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """True when every record and binary landed and verified."""
        return not (
            self.record_errors
            or self.failed_batches
            or self.upload_failures
            or self.missing_files
            or self.unverified
        )


def _photo_id(photo: dict[str, Any]) -> str | None:
    for key, value in photo.items():
        if key.lower() == "id" and value is not None:
            return str(value)
    return None


def _photo_path(photo: dict[str, Any]) -> str | None:
    for key, value in photo.items():
        if key.lower() == "path" and value:
            return str(value)
    return None


class PushRunner:
    """Pushes a local catalog and its files to the server."""

    def __init__(
        self,
        client: SyncClient,
        files_root: Path,
        batch_size: int = DEFAULT_BATCH_SIZE,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        """Initialize the runner.

        Args:
            client: Connected SyncClient.
            files_root: Local directory holding binaries at their object paths.
            batch_size: Records per metadata request.
            on_progress: Optional callback(stage, done, total).
        """
        self._client = client
        self._files_root = Path(files_root)
        self._batch_size = max(1, batch_size)
        self._on_progress = on_progress

    def _progress(self, stage: str, done: int, total: int) -> None:
        if self._on_progress is not None:
            self._on_progress(stage, done, total)

    def push(
        self,
        device_id: str,
        user_name: str,
        photos: Sequence[dict[str, Any]],
        is_incremental: bool = False,
    ) -> PushReport:
        """Run a full push and complete the session.

        Returns:
            PushReport describing what landed.

        Raises:
            APIError: If the session cannot be opened, or a step fails
                outright. In the latter case the session is first marked failed.
        """
        session = self._client.initialize(device_id, user_name)
        report = PushReport(sync_id=session.sync_id)
        logger.info("Push started: session %s, %d records", session.sync_id, len(photos))

        try:
            self._push_metadata(report, photos, is_incremental)
            self._push_files(report, photos)
            self._verify(report, photos)
        except APIError as e:
            logger.error("Push aborted: session %s: %s", session.sync_id, e)
            try:
                self._client.complete(report.sync_id, success=False, message=f"Push aborted: {e}")
            except APIError as complete_error:
                logger.warning("Could not mark session %s failed: %s", session.sync_id, complete_error)
            raise

        message = None if report.success else "Push finished with errors"
        self._client.complete(report.sync_id, success=report.success, message=message)
        logger.info(
            "Push finished: session %s, success=%s (added=%d, updated=%d, uploaded=%d)",
            report.sync_id,
            report.success,
            report.added,
            report.updated,
            report.uploaded,
        )
        return report

    def _push_metadata(
        self,
        report: PushReport,
        photos: Sequence[dict[str, Any]],
        is_incremental: bool,
    ) -> None:
        total = len(photos)
        for start in range(0, total, self._batch_size):
            batch = photos[start : start + self._batch_size]
            try:
                summary = self._client.sync_database(report.sync_id, batch, is_incremental)
            except APIError as e:
                logger.warning("Metadata batch at %d failed: %s", start, e)
                report.failed_batches += 1
                continue
            report.processed += summary.processed
            report.added += summary.added
            report.updated += summary.updated
            report.record_errors.extend(summary.errors)
            self._progress("metadata", min(start + self._batch_size, total), total)

    def _push_files(self, report: PushReport, photos: Sequence[dict[str, Any]]) -> None:
        paths = [p for p in (_photo_path(photo) for photo in photos) if p]
        for index, object_path in enumerate(paths, start=1):
            local_file = self._files_root / object_path
            if not local_file.is_file():
                report.missing_files.append(object_path)
                continue
            try:
                outcome = self._client.upload_file(report.sync_id, object_path, local_file.read_bytes())
            except APIError as e:
                logger.warning("Upload of %s failed: %s", object_path, e)
                report.upload_failures.append(object_path)
                continue
            if outcome.success:
                report.uploaded += 1
            else:
                report.upload_failures.append(object_path)
            self._progress("files", index, len(paths))

    def _verify(self, report: PushReport, photos: Sequence[dict[str, Any]]) -> None:
        ids = [i for i in (_photo_id(photo) for photo in photos) if i]
        if not ids:
            return
        outcome = self._client.verify(report.sync_id, ids)
        for item in outcome.results:
            if item.exists and item.file_exists:
                report.verified += 1
            else:
                report.unverified.append(item.id)
