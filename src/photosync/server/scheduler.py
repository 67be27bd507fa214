"""Scheduler for automatic maintenance tasks.

This module provides:
- Periodic expiry of abandoned in-progress sessions
- A manual trigger for CLI usage
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

if TYPE_CHECKING:
    from photosync.server.sessions import SessionManager

logger = logging.getLogger(__name__)


class SessionExpiryScheduler:
    """Periodically marks stale in-progress sessions as failed.

    A client that crashes mid-sync never completes its session; without this
    job such sessions stay in progress until the device opens a new one.
    """

    def __init__(
        self,
        sessions: SessionManager,
        max_age: timedelta = timedelta(hours=24),
        interval_minutes: int = 15,
    ) -> None:
        """Initialize the scheduler.

        Args:
            sessions: Session manager.
            max_age: Sessions started longer ago than this are expired.
            interval_minutes: Minutes between runs.
        """
        self._sessions = sessions
        self._max_age = max_age
        self._interval_minutes = interval_minutes
        self._scheduler: BackgroundScheduler | None = None

    @property
    def running(self) -> bool:
        """Whether the background scheduler is started."""
        return self._scheduler is not None

    def _expire_job(self) -> None:
        """Job function for scheduled session expiry."""
        try:
            expired = self._sessions.expire_stale_sessions(self._max_age)
            if expired == 0:
                logger.debug("Session expiry: no sessions older than %s", self._max_age)
        except Exception:
            logger.exception("Error during scheduled session expiry")

    def start(self) -> None:
        """Start the scheduler."""
        if self._scheduler is not None:
            return  # Already running

        self._scheduler = BackgroundScheduler()
        self._scheduler.add_job(
            self._expire_job,
            trigger=IntervalTrigger(minutes=self._interval_minutes),
            id="session_expiry",
            name="Stale session expiry",
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info(
            "Session expiry scheduler started (every %d min, max age: %s)",
            self._interval_minutes,
            self._max_age,
        )

    def stop(self) -> None:
        """Stop the scheduler."""
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("Session expiry scheduler stopped")

    def run_now(self) -> int:
        """Run the expiry immediately (manual trigger).

        Returns:
            Number of sessions expired.
        """
        return self._sessions.expire_stale_sessions(self._max_age)
