"""Sync commands for PhotoSync CLI.

Commands:
- push: Push a photo manifest and its files to the server
- status: Show a session and its operation log
- verify: Verify photos and their binaries exist on the server
"""

from __future__ import annotations

import json
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click

from photosync.client.api import APIError, SyncClient
from photosync.client.sync import DEFAULT_BATCH_SIZE, PushRunner
from photosync.core.config import ServerConfig


def server_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Add --server-url and --api-key options (also read from the environment)."""

    func = click.option(
        "--api-key",
        envvar="PHOTOSYNC_API_KEY",
        required=True,
        help="Shared API key (env: PHOTOSYNC_API_KEY).",
    )(func)
    func = click.option(
        "--server-url",
        envvar="PHOTOSYNC_SERVER_URL",
        required=True,
        help="Server base URL (env: PHOTOSYNC_SERVER_URL).",
    )(func)
    return func


def load_manifest(path: Path) -> list[dict[str, Any]]:
    """Load photo records from a JSON manifest.

    The manifest is either a list of records or an object with a "photos" list.
    """
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("photos", [])
    if not isinstance(data, list):
        raise click.BadParameter("manifest must contain a list of photo records")
    return [record for record in data if isinstance(record, dict)]


@click.command()
@click.argument("manifest", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--device-id", required=True, help="Identifier of this device.")
@click.option("--user", "user_name", required=True, help="User name owning the device.")
@click.option(
    "--files",
    "files_root",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("."),
    show_default=True,
    help="Directory holding binaries at their object paths.",
)
@click.option("--batch-size", type=int, default=DEFAULT_BATCH_SIZE, show_default=True)
@click.option("--incremental", is_flag=True, help="Overwrite existing records.")
@server_options
def push(
    manifest: Path,
    device_id: str,
    user_name: str,
    files_root: Path,
    batch_size: int,
    incremental: bool,
    server_url: str,
    api_key: str,
) -> None:
    """Push a photo manifest and its files to the server.

    Opens a session, sends metadata in batches, uploads each photo's file,
    verifies the result and completes the session.
    """
    photos = load_manifest(manifest)
    click.echo(f"Pushing {len(photos)} photo record(s) to {server_url}")

    def on_progress(stage: str, done: int, total: int) -> None:
        click.echo(f"  {stage}: {done}/{total}")

    with SyncClient(ServerConfig(server_url=server_url, api_key=api_key)) as client:
        runner = PushRunner(client, files_root, batch_size=batch_size, on_progress=on_progress)
        try:
            report = runner.push(device_id, user_name, photos, is_incremental=incremental)
        except APIError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)

    click.echo(f"Session: {report.sync_id}")
    click.echo(
        f"Metadata: {report.processed} processed, {report.added} added, "
        f"{report.updated} updated, {len(report.record_errors)} error(s)"
    )
    click.echo(f"Files: {report.uploaded} uploaded, {len(report.upload_failures)} failed, "
               f"{len(report.missing_files)} missing locally")
    click.echo(f"Verified: {report.verified}, unverified: {len(report.unverified)}")
    if not report.success:
        sys.exit(1)


@click.command()
@click.option("--sync-id", default=None, help="Session id.")
@click.option("--device-id", default=None, help="Device id (shows its latest session).")
@server_options
def status(
    sync_id: str | None,
    device_id: str | None,
    server_url: str,
    api_key: str,
) -> None:
    """Show a session and its operation log."""
    if bool(sync_id) == bool(device_id):
        click.echo("Error: pass exactly one of --sync-id or --device-id.", err=True)
        sys.exit(2)

    with SyncClient(ServerConfig(server_url=server_url, api_key=api_key)) as client:
        try:
            result = client.get_status(sync_id=sync_id, device_id=device_id)
        except APIError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)

    session = result["session"]
    click.echo(f"Session:  {session['id']}")
    click.echo(f"Device:   {session['deviceId']}")
    click.echo(f"Kind:     {session['kind']}")
    click.echo(f"Status:   {session['status']}")
    click.echo(f"Started:  {session['startTimestamp']}")
    click.echo(f"Ended:    {session.get('endTimestamp') or '-'}")
    for operation in result["operations"]:
        click.echo(f"  {operation['timestamp']}  {operation['operation']:<12} {operation['status']}")


@click.command()
@click.argument("photo_ids", nargs=-1, required=True)
@click.option("--sync-id", required=True, help="Active session id.")
@server_options
def verify(
    photo_ids: tuple[str, ...],
    sync_id: str,
    server_url: str,
    api_key: str,
) -> None:
    """Verify photos and their binaries exist on the server."""
    with SyncClient(ServerConfig(server_url=server_url, api_key=api_key)) as client:
        try:
            outcome = client.verify(sync_id, list(photo_ids))
        except APIError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)

    for item in outcome.results:
        record = "yes" if item.exists else "no"
        binary = "yes" if item.file_exists else "no"
        click.echo(f"{item.id}: record={record} file={binary}")
    click.echo(f"Total: {outcome.total}, found: {outcome.found}, missing: {outcome.missing}")
    if outcome.missing or any(not item.file_exists for item in outcome.results):
        sys.exit(1)
