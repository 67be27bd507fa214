"""Change-set resolution for incremental pulls.

Watermarks are absolute, caller-supplied times rather than version counters,
so clock skew between client and server can cause missed or duplicate
change detection. There is no pagination: callers receive the full set.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from photosync.core.clock import ensure_utc, format_timestamp

if TYPE_CHECKING:
    from photosync.server.database import Database
    from photosync.server.models import Photo

logger = logging.getLogger(__name__)


class ChangeSetResolver:
    """Computes the catalog changes a client must pull."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def changes_since(self, watermark: datetime) -> list[Photo]:
        """Return every photo added or modified strictly after the watermark.

        Args:
            watermark: Absolute timestamp; naive values are taken as UTC.

        Returns:
            Photos in no guaranteed order; treat the result as a set.
        """
        watermark = ensure_utc(watermark)
        photos = self._db.get_photos_changed_since(watermark)
        logger.debug(
            "Resolved %d changes since %s", len(photos), format_timestamp(watermark)
        )
        return photos
