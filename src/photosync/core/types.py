"""Shared types for photosync.

This module defines enums used by both client and server.
"""

from __future__ import annotations

from enum import Enum


class SessionStatus(str, Enum):
    """Lifecycle status of a sync session."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class SessionKind(str, Enum):
    """Kind of sync session.

    Only FULL sessions are subject to the one-live-session-per-device rule;
    INCREMENTAL sessions are opened for change pulls and never cancel others.
    """

    FULL = "full"
    INCREMENTAL = "incremental"


class OperationKind(str, Enum):
    """Step recorded in a session's operation log."""

    INITIALIZE = "initialize"
    INCREMENTAL = "incremental"
    DATABASE = "database"
    FILE = "file"
    VERIFY = "verify"
    COMPLETE = "complete"


class OperationStatus(str, Enum):
    """Outcome of a logged operation."""

    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"
