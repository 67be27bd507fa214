"""SQLAlchemy models for the PhotoSync catalog store.

This module defines the database schema using SQLAlchemy ORM.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from photosync.core.clock import utc_now


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""


# Only one live full session per device. Incremental sessions are exempt.
_LIVE_FULL_SESSION = text("status = 'in_progress' AND kind = 'full'")


class SyncSession(Base):
    """A bounded unit of synchronization work tied to one device."""

    __tablename__ = "sync_sessions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    device_id: Mapped[str] = mapped_column(String(255), nullable=False)
    user_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    kind: Mapped[str] = mapped_column(String(20), nullable=False, default="full")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="in_progress")
    start_timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
    )
    end_timestamp: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    operations: Mapped[list[SyncOperation]] = relationship(
        "SyncOperation",
        back_populates="session",
        order_by="SyncOperation.timestamp",
    )

    # Indexes
    __table_args__ = (
        Index("idx_sync_sessions_device", "device_id", "start_timestamp"),
        Index("idx_sync_sessions_status", "status"),
        Index(
            "uq_sync_sessions_live_full",
            "device_id",
            unique=True,
            sqlite_where=_LIVE_FULL_SESSION,
            postgresql_where=_LIVE_FULL_SESSION,
        ),
    )


class SyncOperation(Base):
    """Append-only log entry recording the outcome of one session step."""

    __tablename__ = "sync_operations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sync_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("sync_sessions.id"), nullable=False
    )
    operation: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
    )

    # Relationships
    session: Mapped[SyncSession] = relationship("SyncSession", back_populates="operations")

    # Indexes
    __table_args__ = (Index("idx_sync_operations_sync", "sync_id", "timestamp"),)


class Photo(Base):
    """A synced catalog item.

    ``id`` is client-assigned and is the join key between the catalog and
    the object store (through ``path``). Keys the schema does not know are
    kept in ``extra``.
    """

    __tablename__ = "photos"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    path: Mapped[str | None] = mapped_column(Text, nullable=True)
    thumbnail_path_100: Mapped[str | None] = mapped_column(Text, nullable=True)
    thumbnail_path_350: Mapped[str | None] = mapped_column(Text, nullable=True)
    star_rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    country: Mapped[str | None] = mapped_column(String(255), nullable=True)
    area: Mapped[str | None] = mapped_column(String(255), nullable=True)
    locality: Mapped[str | None] = mapped_column(String(255), nullable=True)
    date_time_original: Mapped[str | None] = mapped_column(String(64), nullable=True)
    lens_model: Mapped[str | None] = mapped_column(String(255), nullable=True)
    model: Mapped[str | None] = mapped_column(String(255), nullable=True)
    exposure_time: Mapped[float | None] = mapped_column(Float, nullable=True)
    f_number: Mapped[float | None] = mapped_column(Float, nullable=True)
    focal_len_in_35mm_film: Mapped[float | None] = mapped_column(Float, nullable=True)
    focal_length: Mapped[float | None] = mapped_column(Float, nullable=True)
    iso_speed_ratings: Mapped[int | None] = mapped_column(Integer, nullable=True)
    altitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    object_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    caption: Mapped[str | None] = mapped_column(Text, nullable=True)
    extra: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    add_timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
    )
    modified_timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
    )

    # Indexes
    __table_args__ = (
        Index("idx_photos_added", "add_timestamp"),
        Index("idx_photos_modified", "modified_timestamp"),
    )
