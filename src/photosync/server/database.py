"""Catalog store using SQLAlchemy with SQLite.

This module provides:
- Sync session persistence (open, cancel, finish, expire)
- The append-only operation log
- Photo metadata records with change-since queries
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sqlalchemy import create_engine, func, or_, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from photosync.core.clock import ensure_utc, utc_now
from photosync.core.types import SessionKind, SessionStatus
from photosync.server.errors import StoreError
from photosync.server.models import Base, Photo, SyncOperation, SyncSession

if TYPE_CHECKING:
    from sqlalchemy import Engine

# Smallest step the stored timestamps can represent.
TIMESTAMP_RESOLUTION = timedelta(microseconds=1)


class Database:
    """SQLAlchemy catalog store for sessions, operations and photos.

    Uses SQLite with WAL mode for better concurrency with multiple readers.
    Every SQLAlchemy failure leaves this class as a StoreError.
    """

    def __init__(self, db_path: Path | str) -> None:
        """Initialize the database.

        Args:
            db_path: Path to the SQLite database file.
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        # check_same_thread=False: FastAPI runs sync handlers on a thread pool
        self._engine: Engine = create_engine(
            f"sqlite:///{self._db_path}",
            connect_args={"check_same_thread": False, "timeout": 30},
            echo=False,
        )

        with self._engine.connect() as conn:
            conn.exec_driver_sql("PRAGMA journal_mode=WAL")
            conn.exec_driver_sql("PRAGMA foreign_keys=ON")

        Base.metadata.create_all(self._engine)

    @property
    def location(self) -> str:
        """Return a human-readable description of the database."""
        return str(self._db_path)

    def close(self) -> None:
        """Close the database connection."""
        self._engine.dispose()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        """Yield a database session, translating driver errors to StoreError."""
        try:
            with Session(self._engine) as session:
                yield session
        except SQLAlchemyError as e:
            raise StoreError(f"Catalog store error: {e}") from e

    # === Session operations ===

    def open_full_session(
        self,
        sync_id: str,
        device_id: str,
        user_name: str,
        now: datetime,
    ) -> tuple[SyncSession, int]:
        """Cancel the device's live sessions and insert a new full session.

        Both writes happen in one transaction, and a partial unique index
        rejects a second live full session for the same device.

        Args:
            sync_id: Identifier for the new session.
            device_id: Device opening the session.
            user_name: User owning the device.
            now: Timestamp used for the cancellation and the new start.

        Returns:
            Tuple of (created session, number of sessions cancelled).
        """
        with self._session() as session:
            result = session.execute(
                update(SyncSession)
                .where(
                    SyncSession.device_id == device_id,
                    SyncSession.status == SessionStatus.IN_PROGRESS.value,
                )
                .values(status=SessionStatus.CANCELLED.value, end_timestamp=now)
            )
            sync_session = SyncSession(
                id=sync_id,
                device_id=device_id,
                user_name=user_name,
                kind=SessionKind.FULL.value,
                status=SessionStatus.IN_PROGRESS.value,
                start_timestamp=now,
            )
            session.add(sync_session)
            session.commit()
            session.refresh(sync_session)
            session.expunge(sync_session)
            return sync_session, result.rowcount

    def create_session(
        self,
        sync_id: str,
        device_id: str,
        kind: SessionKind,
        now: datetime,
        user_name: str | None = None,
    ) -> SyncSession:
        """Insert a new in-progress session without touching other sessions.

        Args:
            sync_id: Identifier for the new session.
            device_id: Device opening the session.
            kind: Session kind.
            now: Start timestamp.
            user_name: Optional user name.

        Returns:
            Created SyncSession.
        """
        with self._session() as session:
            sync_session = SyncSession(
                id=sync_id,
                device_id=device_id,
                user_name=user_name,
                kind=kind.value,
                status=SessionStatus.IN_PROGRESS.value,
                start_timestamp=now,
            )
            session.add(sync_session)
            session.commit()
            session.refresh(sync_session)
            session.expunge(sync_session)
            return sync_session

    def get_session(self, sync_id: str) -> SyncSession | None:
        """Get a session by id.

        Args:
            sync_id: Session id.

        Returns:
            SyncSession if found, None otherwise.
        """
        with self._session() as session:
            sync_session = session.get(SyncSession, sync_id)
            if sync_session:
                session.expunge(sync_session)
            return sync_session

    def is_session_active(self, sync_id: str) -> bool:
        """Check whether a session exists and is in progress."""
        with self._session() as session:
            stmt = select(SyncSession.id).where(
                SyncSession.id == sync_id,
                SyncSession.status == SessionStatus.IN_PROGRESS.value,
            )
            return session.execute(stmt).first() is not None

    def get_latest_session(self, device_id: str) -> SyncSession | None:
        """Get the most recently started session for a device.

        Args:
            device_id: Device id.

        Returns:
            Latest SyncSession if any, None otherwise.
        """
        with self._session() as session:
            stmt = (
                select(SyncSession)
                .where(SyncSession.device_id == device_id)
                .order_by(SyncSession.start_timestamp.desc())
                .limit(1)
            )
            sync_session = session.execute(stmt).scalar_one_or_none()
            if sync_session:
                session.expunge(sync_session)
            return sync_session

    def finish_session(
        self,
        sync_id: str,
        status: SessionStatus,
        now: datetime,
    ) -> SyncSession | None:
        """Move an in-progress session to a terminal status.

        The write is conditional on the session still being in progress.

        Args:
            sync_id: Session id.
            status: Terminal status to set.
            now: End timestamp.

        Returns:
            Updated SyncSession, or None if it was not in progress.
        """
        with self._session() as session:
            result = session.execute(
                update(SyncSession)
                .where(
                    SyncSession.id == sync_id,
                    SyncSession.status == SessionStatus.IN_PROGRESS.value,
                )
                .values(status=status.value, end_timestamp=now)
            )
            session.commit()
            if result.rowcount == 0:
                return None
            sync_session = session.get(SyncSession, sync_id)
            if sync_session:
                session.expunge(sync_session)
            return sync_session

    def expire_sessions(self, started_before: datetime, now: datetime) -> int:
        """Mark in-progress sessions started before a cutoff as failed.

        Args:
            started_before: Cutoff start timestamp.
            now: End timestamp to record.

        Returns:
            Number of sessions expired.
        """
        with self._session() as session:
            result = session.execute(
                update(SyncSession)
                .where(
                    SyncSession.status == SessionStatus.IN_PROGRESS.value,
                    SyncSession.start_timestamp < started_before,
                )
                .values(status=SessionStatus.FAILED.value, end_timestamp=now)
            )
            session.commit()
            return result.rowcount

    # === Operation log ===

    def append_operation(
        self,
        sync_id: str,
        operation: str,
        status: str,
        details: dict[str, Any],
        timestamp: datetime | None = None,
    ) -> SyncOperation:
        """Append an entry to a session's operation log.

        Args:
            sync_id: Owning session id.
            operation: Operation kind.
            status: Operation outcome.
            details: JSON-serializable details.
            timestamp: Entry timestamp (default: now).

        Returns:
            Created SyncOperation.
        """
        with self._session() as session:
            entry = SyncOperation(
                sync_id=sync_id,
                operation=operation,
                status=status,
                details=details,
                timestamp=timestamp or utc_now(),
            )
            session.add(entry)
            session.commit()
            session.refresh(entry)
            session.expunge(entry)
            return entry

    def list_operations(self, sync_id: str) -> list[SyncOperation]:
        """List a session's operations ordered by timestamp ascending."""
        with self._session() as session:
            stmt = (
                select(SyncOperation)
                .where(SyncOperation.sync_id == sync_id)
                .order_by(SyncOperation.timestamp.asc(), SyncOperation.id.asc())
            )
            operations = list(session.execute(stmt).scalars().all())
            for entry in operations:
                session.expunge(entry)
            return operations

    # === Photo operations ===

    def get_photo(self, photo_id: str) -> Photo | None:
        """Get a photo record by id.

        Args:
            photo_id: Photo id.

        Returns:
            Photo if found, None otherwise.
        """
        with self._session() as session:
            photo = session.get(Photo, photo_id)
            if photo:
                session.expunge(photo)
            return photo

    def insert_photo(self, values: dict[str, Any], now: datetime) -> Photo | None:
        """Insert a new photo record unless its id is already taken.

        The existence check and the insert are one statement, so concurrent
        inserts of the same id leave exactly one winner.

        Args:
            values: Column values keyed by attribute name; must include ``id``.
            now: Server timestamp used for ``modified_timestamp`` and, when
                the record carries none, ``add_timestamp``.

        Returns:
            Created Photo, or None if a record with this id already exists.
        """
        row = dict(values)
        add_timestamp = row.get("add_timestamp")
        row["add_timestamp"] = now if add_timestamp is None else ensure_utc(add_timestamp)
        row["modified_timestamp"] = now
        if row.get("extra") is None:
            row["extra"] = {}

        with self._session() as session:
            stmt = (
                sqlite_insert(Photo.__table__)
                .values(**row)
                .on_conflict_do_nothing(index_elements=["id"])
            )
            result = session.execute(stmt)
            session.commit()
            if result.rowcount == 0:
                return None
            photo = session.get(Photo, row["id"])
            if photo:
                session.expunge(photo)
            return photo

    def update_photo(
        self,
        photo_id: str,
        values: dict[str, Any],
        now: datetime,
    ) -> Photo:
        """Overwrite the given fields of an existing photo record.

        ``modified_timestamp`` is always advanced strictly past its previous
        value, even when the clock has not moved.

        Args:
            photo_id: Photo id.
            values: Column values to overwrite; ``id`` and a None
                ``add_timestamp`` are ignored.
            now: Server timestamp.

        Returns:
            Updated Photo.

        Raises:
            ValueError: If the photo does not exist.
        """
        with self._session() as session:
            photo = session.get(Photo, photo_id)
            if photo is None:
                raise ValueError(f"Photo not found: {photo_id}")

            for key, value in values.items():
                if key == "id":
                    continue
                if key == "add_timestamp":
                    if value is None:
                        continue
                    value = ensure_utc(value)
                if key == "extra":
                    value = {**(photo.extra or {}), **(value or {})}
                setattr(photo, key, value)

            previous = ensure_utc(photo.modified_timestamp)
            photo.modified_timestamp = max(ensure_utc(now), previous + TIMESTAMP_RESOLUTION)
            session.commit()
            session.refresh(photo)
            session.expunge(photo)
            return photo

    def get_photos_changed_since(self, since: datetime) -> list[Photo]:
        """Get photos added or modified strictly after a timestamp.

        Args:
            since: Watermark timestamp.

        Returns:
            List of photos, in no particular order.
        """
        since = ensure_utc(since)
        with self._session() as session:
            stmt = select(Photo).where(
                or_(Photo.add_timestamp > since, Photo.modified_timestamp > since)
            )
            photos = list(session.execute(stmt).scalars().all())
            for photo in photos:
                session.expunge(photo)
            return photos

    def list_photos(self, limit: int = 100, offset: int = 0) -> list[Photo]:
        """List photos, most recently added first."""
        with self._session() as session:
            stmt = (
                select(Photo)
                .order_by(Photo.add_timestamp.desc(), Photo.id)
                .limit(limit)
                .offset(offset)
            )
            photos = list(session.execute(stmt).scalars().all())
            for photo in photos:
                session.expunge(photo)
            return photos

    def count_photos(self) -> int:
        """Count photo records."""
        with self._session() as session:
            return session.execute(select(func.count()).select_from(Photo)).scalar_one()
