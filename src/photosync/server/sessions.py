"""Sync session lifecycle.

Sessions are the authorization boundary for every write after open: the
reconciler, the transfer coordinator and the verifier all call
``require_active`` first. Session state lives only in the catalog store.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from photosync.core.clock import new_id, parse_timestamp, utc_now
from photosync.core.types import OperationKind, OperationStatus, SessionKind, SessionStatus
from photosync.server.errors import InvalidSessionError, NotFoundError, ValidationError
from photosync.server.schemas import (
    CompleteDetails,
    IncrementalDetails,
    InitializeDetails,
    dump_details,
)

if TYPE_CHECKING:
    from pydantic import BaseModel

    from photosync.server.changes import ChangeSetResolver
    from photosync.server.database import Database
    from photosync.server.models import Photo, SyncOperation, SyncSession

logger = logging.getLogger(__name__)


@dataclass
class SessionHistory:
    """A session together with its operation log (oldest first)."""

    session: SyncSession
    operations: list[SyncOperation]


class SessionManager:
    """Owns sync session creation, validation and termination."""

    def __init__(
        self,
        db: Database,
        changes: ChangeSetResolver,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = new_id,
    ) -> None:
        """Initialize the session manager.

        Args:
            db: Catalog store.
            changes: Resolver used by incremental opens.
            clock: Source of the current UTC time.
            id_factory: Source of new session ids.
        """
        self._db = db
        self._changes = changes
        self._clock = clock
        self._id_factory = id_factory

    def now(self) -> datetime:
        """Return the current time from the injected clock."""
        return self._clock()

    def open_session(self, device_id: str | None, user_name: str | None) -> SyncSession:
        """Open a full sync session, cancelling the device's live sessions.

        Args:
            device_id: Device opening the session.
            user_name: User owning the device.

        Returns:
            The new in-progress session.

        Raises:
            ValidationError: If device_id or user_name is empty.
            StoreError: If the catalog store fails.
        """
        if not device_id or not user_name:
            raise ValidationError("Missing required fields: deviceId and userName")

        sync_session, cancelled = self._db.open_full_session(
            sync_id=self._id_factory(),
            device_id=device_id,
            user_name=user_name,
            now=self.now(),
        )
        if cancelled:
            logger.info("Cancelled %d stale session(s) for device %s", cancelled, device_id)
        self.log_operation(
            sync_session.id,
            OperationStatus.STARTED,
            InitializeDetails(
                device_id=device_id,
                user_name=user_name,
                cancelled_sessions=cancelled,
            ),
        )
        logger.info("Opened sync session %s for device %s", sync_session.id, device_id)
        return sync_session

    def open_incremental_session(
        self,
        device_id: str | None,
        last_sync_time: str | datetime | None,
        user_name: str | None = None,
    ) -> tuple[SyncSession, list[Photo]]:
        """Open an incremental session and resolve the changes to pull.

        Prior sessions of the device are left untouched.

        Args:
            device_id: Device opening the session.
            last_sync_time: Watermark (ISO 8601 string or datetime).
            user_name: Optional user name.

        Returns:
            Tuple of (new session, photos changed since the watermark).

        Raises:
            ValidationError: If device_id or last_sync_time is missing or
                the watermark cannot be parsed.
        """
        if not device_id or not last_sync_time:
            raise ValidationError("Missing required fields: deviceId and lastSyncTime")

        if isinstance(last_sync_time, datetime):
            watermark = last_sync_time
        else:
            try:
                watermark = parse_timestamp(last_sync_time)
            except ValueError as e:
                raise ValidationError(f"Invalid lastSyncTime: {last_sync_time}") from e

        changes = self._changes.changes_since(watermark)
        sync_session = self._db.create_session(
            sync_id=self._id_factory(),
            device_id=device_id,
            kind=SessionKind.INCREMENTAL,
            now=self.now(),
            user_name=user_name,
        )
        self.log_operation(
            sync_session.id,
            OperationStatus.COMPLETED,
            IncrementalDetails(
                device_id=device_id,
                last_sync_time=watermark.isoformat(),
                items_changed=len(changes),
            ),
        )
        logger.info(
            "Opened incremental session %s for device %s (%d changes)",
            sync_session.id,
            device_id,
            len(changes),
        )
        return sync_session, changes

    def is_session_active(self, sync_id: str | None) -> bool:
        """Return True iff the session exists and is in progress."""
        if not sync_id:
            return False
        return self._db.is_session_active(sync_id)

    def require_active(self, sync_id: str | None) -> str:
        """Ensure a session is active.

        Returns:
            The validated sync id.

        Raises:
            InvalidSessionError: If the session is unknown or not in progress.
        """
        if not sync_id or not self._db.is_session_active(sync_id):
            raise InvalidSessionError(sync_id)
        return sync_id

    def complete_session(
        self,
        sync_id: str | None,
        success: bool = True,
        message: str | None = None,
    ) -> SyncSession:
        """Mark an active session completed (or failed).

        Raises:
            InvalidSessionError: If the session is not in progress.
        """
        sync_id = self.require_active(sync_id)
        status = SessionStatus.COMPLETED if success else SessionStatus.FAILED
        sync_session = self._db.finish_session(sync_id, status, self.now())
        if sync_session is None:
            # Lost a race with another completion or an expiry sweep
            raise InvalidSessionError(sync_id)

        self.log_operation(
            sync_id,
            OperationStatus.COMPLETED if success else OperationStatus.FAILED,
            CompleteDetails(success=success, message=message),
        )
        logger.info("Session %s finished as %s", sync_id, status.value)
        return sync_session

    def get_status(
        self,
        sync_id: str | None = None,
        device_id: str | None = None,
    ) -> SessionHistory:
        """Return a session and its operations.

        Exactly one of sync_id or device_id must be given; the device variant
        returns the device's most recently started session.

        Raises:
            ValidationError: If neither or both selectors are given.
            NotFoundError: If no matching session exists.
        """
        if sync_id and not device_id:
            sync_session = self._db.get_session(sync_id)
        elif device_id and not sync_id:
            sync_session = self._db.get_latest_session(device_id)
        else:
            raise ValidationError("Exactly one of syncId or deviceId is required")

        if sync_session is None:
            raise NotFoundError("No sync status found")
        return SessionHistory(
            session=sync_session,
            operations=self._db.list_operations(sync_session.id),
        )

    def expire_stale_sessions(self, max_age: timedelta) -> int:
        """Fail in-progress sessions that started more than max_age ago.

        Returns:
            Number of sessions expired.
        """
        now = self.now()
        expired = self._db.expire_sessions(started_before=now - max_age, now=now)
        if expired:
            logger.info("Expired %d stale session(s) older than %s", expired, max_age)
        return expired

    def log_operation(
        self,
        sync_id: str,
        status: OperationStatus,
        details: BaseModel,
    ) -> SyncOperation:
        """Append an entry to the session's operation log.

        The operation name is taken from the details' ``kind`` tag.
        """
        payload = dump_details(details)
        return self._db.append_operation(
            sync_id=sync_id,
            operation=OperationKind(payload["kind"]).value,
            status=status.value,
            details=payload,
            timestamp=self.now(),
        )
