"""Core module - shared clock, configuration and types."""

from photosync.core.clock import (
    ensure_utc,
    format_timestamp,
    new_id,
    parse_timestamp,
    utc_now,
)
from photosync.core.config import ServerConfig
from photosync.core.types import (
    OperationKind,
    OperationStatus,
    SessionKind,
    SessionStatus,
)

__all__ = [
    # Clock
    "ensure_utc",
    "format_timestamp",
    "new_id",
    "parse_timestamp",
    "utc_now",
    # Config
    "ServerConfig",
    # Types
    "OperationKind",
    "OperationStatus",
    "SessionKind",
    "SessionStatus",
]
