"""Command-line interface for editorsync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- upload: Upload the local settings to the gist
- download: Download the gist into the local settings
- watch: Auto-sync until interrupted
- gists: List the settings gists
- config: Show or change the sync configuration
"""

from __future__ import annotations

from pathlib import Path

import click

from editorsync.client.cli.config import build_environment, config, configure_logging
from editorsync.client.cli.sync import download, gists, upload, watch

_path = click.Path(file_okay=False, path_type=Path)


@click.group()
@click.version_option(package_name="editorsync")
@click.option("--user-dir", type=_path, default=None, help="The editor's User directory.")
@click.option("--extensions-dir", type=_path, default=None, help="The editor's extensions directory.")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logs.")
@click.pass_context
def cli(ctx: click.Context, user_dir: Path | None, extensions_dir: Path | None, verbose: bool) -> None:
    """editorsync - Synchronize editor settings and extensions with a GitHub Gist."""
    configure_logging(verbose)
    ctx.obj = build_environment(user_dir, extensions_dir)


# Sync commands
cli.add_command(upload)
cli.add_command(download)
cli.add_command(watch)
cli.add_command(gists)

# Config commands
cli.add_command(config)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    "cli",
    "main",
]
