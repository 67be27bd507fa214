"""Metadata reconciliation of client-submitted photo records.

Each record is applied independently: a failure on one record is reported
inline and never aborts the rest of the batch.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

import pydantic

from photosync.core.types import OperationStatus
from photosync.server.schemas import DatabaseDetails, PhotoRecord

if TYPE_CHECKING:
    from photosync.server.database import Database
    from photosync.server.sessions import SessionManager

logger = logging.getLogger(__name__)


class Outcome(str, Enum):
    """What happened to one record."""

    ADDED = "added"
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class ItemError:
    """A per-record failure."""

    id: str | None
    error: str


@dataclass
class ReconcileResult:
    """Aggregate outcome of a batch. ``processed`` counts every record."""

    processed: int = 0
    added: int = 0
    updated: int = 0
    errors: list[ItemError] = field(default_factory=list)


def _record_id(raw: Any) -> str | None:
    """Best-effort id of a raw record, for error reporting."""
    if not isinstance(raw, dict):
        return None
    for key, value in raw.items():
        if str(key).lower() == "id" and value is not None:
            return str(value)
    return None


def describe_error(exc: Exception) -> str:
    """Render an exception as a short single-line message."""
    if isinstance(exc, pydantic.ValidationError):
        return "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'record'}: {err['msg']}"
            for err in exc.errors()
        )
    return str(exc) or exc.__class__.__name__


class MetadataReconciler:
    """Applies batches of photo records against the catalog."""

    def __init__(self, db: Database, sessions: SessionManager, workers: int = 1) -> None:
        """Initialize the reconciler.

        Args:
            db: Catalog store.
            sessions: Session manager used for validation and logging.
            workers: Number of threads used to apply records (1 = sequential).
        """
        self._db = db
        self._sessions = sessions
        self._workers = max(1, workers)

    def reconcile(
        self,
        sync_id: str | None,
        records: Sequence[Any],
        is_incremental: bool,
    ) -> ReconcileResult:
        """Apply a batch under an active session and log the outcome.

        Raises:
            InvalidSessionError: If the session is not in progress.
        """
        sync_id = self._sessions.require_active(sync_id)
        result = self.apply(records, is_incremental)

        self._sessions.log_operation(
            sync_id,
            OperationStatus.COMPLETED,
            DatabaseDetails(
                is_incremental=is_incremental,
                processed=result.processed,
                added=result.added,
                updated=result.updated,
                errors=len(result.errors),
            ),
        )
        logger.info(
            "Session %s: reconciled %d records (added=%d, updated=%d, errors=%d)",
            sync_id,
            result.processed,
            result.added,
            result.updated,
            len(result.errors),
        )
        return result

    def apply(self, records: Sequence[Any], is_incremental: bool) -> ReconcileResult:
        """Apply a batch of raw records and aggregate the outcomes.

        A full (non-incremental) batch only inserts unseen ids; existing rows
        are skipped so concurrent incremental updates are not clobbered.
        """
        if self._workers > 1 and len(records) > 1:
            with ThreadPoolExecutor(max_workers=self._workers) as pool:
                outcomes = list(pool.map(lambda raw: self._apply_one(raw, is_incremental), records))
        else:
            outcomes = [self._apply_one(raw, is_incremental) for raw in records]

        result = ReconcileResult(processed=len(records))
        for outcome, error in outcomes:
            if outcome is Outcome.ADDED:
                result.added += 1
            elif outcome is Outcome.UPDATED:
                result.updated += 1
            elif outcome is Outcome.FAILED and error is not None:
                result.errors.append(error)
        return result

    def _apply_one(self, raw: Any, is_incremental: bool) -> tuple[Outcome, ItemError | None]:
        try:
            record = PhotoRecord.model_validate(raw)
            now = self._sessions.now()
            # None means the id already exists, possibly from a concurrent insert
            if self._db.insert_photo(record.to_columns(), now) is not None:
                return Outcome.ADDED, None
            if is_incremental:
                self._db.update_photo(record.id, record.to_columns(), now)
                return Outcome.UPDATED, None
            return Outcome.SKIPPED, None
        except Exception as e:
            # Any per-record failure is reported inline
            item_id = _record_id(raw)
            logger.warning("Failed to reconcile record %s: %s", item_id, describe_error(e))
            return Outcome.FAILED, ItemError(id=item_id, error=describe_error(e))
