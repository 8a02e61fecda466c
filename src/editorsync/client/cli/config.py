"""Configuration commands for the editorsync CLI.

Commands:
- config: Show or change the sync configuration
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from editorsync.client.environment import Environment
from editorsync.core.config import load_syncing_config, save_syncing_config

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(verbose: bool) -> None:
    """Send editorsync logs to stderr."""
    logger = logging.getLogger("editorsync")
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT if verbose else "%(message)s"))
    logger.handlers = [handler]
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.propagate = False


def build_environment(user_dir: Path | None, extensions_dir: Path | None) -> Environment:
    """Resolve the editor layout, with command-line overrides."""
    detected = Environment.detect() if user_dir is None or extensions_dir is None else None
    return Environment(
        user_dir=user_dir or detected.user_dir,  # type: ignore[union-attr]
        extensions_dir=extensions_dir or detected.extensions_dir,  # type: ignore[union-attr]
    )


def mask_token(token: str) -> str:
    """Hide most of a token for display."""
    if not token:
        return "(not set)"
    return token[:4] + "*" * max(len(token) - 4, 4)


@click.command()
@click.option("--set-token", "token", help="GitHub Personal Access Token (gist scope).")
@click.option("--set-gist", "gist_id", help="Id of the gist holding the settings.")
@click.option("--set-proxy", "proxy", help="Proxy URL (empty string to clear).")
@click.option("--auto-sync/--no-auto-sync", default=None, help="Enable or disable auto-sync.")
@click.pass_obj
def config(
    env: Environment,
    token: str | None,
    gist_id: str | None,
    proxy: str | None,
    auto_sync: bool | None,
) -> None:
    """Show or change the sync configuration."""
    syncing = load_syncing_config(env.syncing_file, env.settings_file)

    changed = False
    if token is not None:
        syncing.token = token.strip()
        changed = True
    if gist_id is not None:
        syncing.gist_id = gist_id.strip()
        changed = True
    if proxy is not None:
        syncing.http_proxy = proxy.strip() or None
        changed = True
    if auto_sync is not None:
        syncing.auto_sync = auto_sync
        changed = True

    if changed:
        save_syncing_config(env.syncing_file, syncing)
        click.echo(f"Saved {env.syncing_file}")

    click.echo(f"User directory:       {env.user_dir}")
    click.echo(f"Extensions directory: {env.extensions_dir}")
    click.echo(f"Token:                {mask_token(syncing.token)}")
    click.echo(f"Gist id:              {syncing.gist_id or '(not set)'}")
    click.echo(f"Proxy:                {syncing.http_proxy or '(none)'}")
    click.echo(f"Auto-sync:            {'on' if syncing.auto_sync else 'off'}")
    click.echo(f"Poka-yoke threshold:  {syncing.poka_yoke_threshold}")
    click.echo(f"Excluded settings:    {', '.join(syncing.excluded_settings) or '(none)'}")
    click.echo(f"Excluded extensions:  {', '.join(syncing.excluded_extensions) or '(none)'}")
