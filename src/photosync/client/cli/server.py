"""Server administration commands for PhotoSync CLI.

Commands:
- server serve: Run the HTTP server
- server expire-sessions: Fail abandoned in-progress sessions
"""

from __future__ import annotations

import os
import sys
from datetime import timedelta
from pathlib import Path

import click


@click.group()
def server() -> None:
    """Server management commands.

    These commands are for server administrators to run and maintain the
    PhotoSync server.
    """


@server.command("serve")
@click.option("--host", default="127.0.0.1", show_default=True, help="Bind address.")
@click.option("--port", default=8000, type=int, show_default=True, help="Bind port.")
def serve_cmd(host: str, port: int) -> None:
    """Run the PhotoSync server.

    Configuration is read from PHOTOSYNC_* environment variables
    (PHOTOSYNC_DB_PATH, PHOTOSYNC_API_KEY, PHOTOSYNC_STORAGE_PATH, ...).
    """
    import uvicorn

    uvicorn.run("photosync.server.app:app_factory", factory=True, host=host, port=port)


@server.command("expire-sessions")
@click.option(
    "--older-than-hours",
    type=float,
    default=None,
    help="Expire sessions started more than N hours ago (default: server config).",
)
@click.option(
    "--db-path",
    type=click.Path(),
    default=None,
    help="Path to database file (default: PHOTOSYNC_DB_PATH or ./photosync.db).",
)
def expire_sessions_cmd(older_than_hours: float | None, db_path: str | None) -> None:
    """Mark abandoned in-progress sessions as failed.

    This command can be run manually or via cron when the server's own
    scheduler is disabled.

    Examples:

        # Expire using server defaults (24 hours)
        photosync server expire-sessions

        # Expire sessions older than 2 hours
        photosync server expire-sessions --older-than-hours 2
    """
    from photosync.server.changes import ChangeSetResolver
    from photosync.server.database import Database
    from photosync.server.scheduler import SessionExpiryScheduler
    from photosync.server.sessions import SessionManager

    resolved_db_path = db_path or os.environ.get("PHOTOSYNC_DB_PATH", "photosync.db")
    default_hours = float(os.environ.get("PHOTOSYNC_SESSION_MAX_AGE_HOURS", "24"))
    hours = older_than_hours if older_than_hours is not None else default_hours

    db_file = Path(resolved_db_path)
    if not db_file.exists():
        click.echo(f"Error: Database not found: {db_file}", err=True)
        click.echo("Make sure the server has been run at least once.", err=True)
        sys.exit(1)

    click.echo(f"Database: {db_file}")
    click.echo(f"Expiring sessions older than {hours:g} hours...")

    db = Database(db_file)
    try:
        sessions = SessionManager(db, ChangeSetResolver(db))
        expired = SessionExpiryScheduler(sessions, max_age=timedelta(hours=hours)).run_now()
        if expired > 0:
            click.echo(f"Expired {expired} session(s).")
        else:
            click.echo("No sessions to expire.")
    finally:
        db.close()
