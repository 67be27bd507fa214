"""Post-hoc verification that catalog records and their binaries exist.

Lookups start from the catalog side, so an object without a catalog record
is not reachable here.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from photosync.core.types import OperationStatus
from photosync.server.reconciler import describe_error
from photosync.server.schemas import VerifyDetails

if TYPE_CHECKING:
    from photosync.server.database import Database
    from photosync.server.sessions import SessionManager
    from photosync.server.storage import ObjectStorage

logger = logging.getLogger(__name__)


@dataclass
class VerifyResult:
    """Verification outcome for one id."""

    id: str
    exists: bool
    file_exists: bool
    error: str | None = None


@dataclass
class VerifyReport:
    """Per-id results plus the found/missing summary."""

    results: list[VerifyResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def found(self) -> int:
        return sum(1 for r in self.results if r.exists)

    @property
    def missing(self) -> int:
        return self.total - self.found

    @property
    def files_found(self) -> int:
        return sum(1 for r in self.results if r.file_exists)


class Verifier:
    """Cross-checks the catalog against the object store."""

    def __init__(
        self,
        db: Database,
        storage: ObjectStorage,
        sessions: SessionManager,
        workers: int = 1,
    ) -> None:
        self._db = db
        self._storage = storage
        self._sessions = sessions
        self._workers = max(1, workers)

    def verify(self, sync_id: str | None, ids: Sequence[str]) -> VerifyReport:
        """Verify a set of photo ids under an active session.

        Raises:
            InvalidSessionError: If the session is not in progress.
        """
        sync_id = self._sessions.require_active(sync_id)

        if self._workers > 1 and len(ids) > 1:
            with ThreadPoolExecutor(max_workers=self._workers) as pool:
                results = list(pool.map(self.check, ids))
        else:
            results = [self.check(photo_id) for photo_id in ids]
        report = VerifyReport(results=results)

        self._sessions.log_operation(
            sync_id,
            OperationStatus.COMPLETED,
            VerifyDetails(
                total=report.total,
                found=report.found,
                missing=report.missing,
                files_found=report.files_found,
            ),
        )
        logger.info(
            "Session %s: verified %d ids (found=%d, missing=%d, files=%d)",
            sync_id,
            report.total,
            report.found,
            report.missing,
            report.files_found,
        )
        return report

    def check(self, photo_id: str) -> VerifyResult:
        """Check one id; failures are reported on the result, never raised."""
        exists = False
        try:
            photo = self._db.get_photo(photo_id)
            if photo is None:
                return VerifyResult(id=photo_id, exists=False, file_exists=False)
            exists = True
            file_exists = bool(photo.path) and self._storage.exists(photo.path or "")
            return VerifyResult(id=photo_id, exists=True, file_exists=file_exists)
        except Exception as e:
            logger.warning("Verification of %s failed: %s", photo_id, describe_error(e))
            return VerifyResult(
                id=photo_id,
                exists=exists,
                file_exists=False,
                error=describe_error(e),
            )
