"""Command-line interface for PhotoSync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- push: Push a photo manifest and its files to the server
- status: Show a session and its operation log
- verify: Verify photos and their binaries exist on the server
- server: Server administration commands (serve, expire-sessions)
"""

from __future__ import annotations

import click

from photosync.client.cli.server import server
from photosync.client.cli.sync import push, status, verify


@click.group()
@click.version_option(package_name="photosync")
def cli() -> None:
    """PhotoSync - photo catalog synchronization."""


# Sync commands
cli.add_command(push)
cli.add_command(status)
cli.add_command(verify)

# Server admin commands
cli.add_command(server)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = ["cli", "main"]
