"""Sync commands for the editorsync CLI.

Commands:
- upload: Upload the local settings to the gist
- download: Download the gist into the local settings
- watch: Upload automatically whenever the settings change
- gists: List the settings gists of the GitHub user
"""

from __future__ import annotations

import sys
import threading

import click

from editorsync.client.api import APIError, GistClient
from editorsync.client.environment import Environment
from editorsync.client.sync.auto_sync import AutoSyncService
from editorsync.client.sync.extensions import ExtensionReconciler
from editorsync.client.sync.installer import ExtensionInstaller
from editorsync.client.sync.orchestrator import SyncOrchestrator, SyncReport
from editorsync.client.sync.types import AttemptState
from editorsync.client.sync.watcher import ChangeWatcher, ExtensionsDirectorySource
from editorsync.core.config import load_syncing_config

editor_version_option = click.option(
    "--editor-version",
    default=None,
    help="Editor version used to pick compatible extension updates.",
)


def _confirm(message: str) -> bool:
    return click.confirm(message, default=False)


def _progress(step: int, total: int, message: str) -> None:
    click.echo(f"[{step}/{total}] {message}")


def build_orchestrator(env: Environment, editor_version: str | None = None) -> SyncOrchestrator:
    """Wire the orchestrator for an interactive session."""
    syncing = load_syncing_config(env.syncing_file, env.settings_file)
    installer = ExtensionInstaller(env.extensions_dir, proxy=syncing.http_proxy)
    return SyncOrchestrator(
        env,
        installer=installer,
        reconciler=ExtensionReconciler(installer, host_version=editor_version),
        confirm=_confirm,
        on_progress=_progress,
    )


def _finish(report: SyncReport) -> None:
    result = report.result
    for label, phase in (("Installed", result.added), ("Updated", result.updated), ("Removed", result.removed)):
        if phase.succeeded:
            click.echo(f"{label}: {', '.join(str(e) for e in phase.succeeded)}")
        if phase.failed:
            click.echo(f"{label} (failed): {', '.join(str(e) for e in phase.failed)}", err=True)
    for error in result.errors:
        click.echo(f"Skipped: {error}", err=True)

    if report.state is AttemptState.FAILED:
        click.echo(f"Error: {report.message}", err=True)
        sys.exit(1)
    click.echo(report.message)


@click.command()
@click.pass_obj
def upload(env: Environment) -> None:
    """Upload the local settings to the gist."""
    _finish(build_orchestrator(env).upload())


@click.command()
@editor_version_option
@click.pass_obj
def download(env: Environment, editor_version: str | None) -> None:
    """Download the gist into the local settings."""
    _finish(build_orchestrator(env, editor_version).download())


@click.command()
@click.option("--debounce", default=10.0, show_default=True, help="Seconds to wait after the last change.")
@click.option("--no-initial-sync", is_flag=True, help="Do not synchronize on start-up.")
@editor_version_option
@click.pass_obj
def watch(env: Environment, debounce: float, no_initial_sync: bool, editor_version: str | None) -> None:
    """Upload automatically whenever the settings change.

    On start-up the newer side (local files or gist) wins. Press Ctrl+C to stop.
    """
    syncing = load_syncing_config(env.syncing_file, env.settings_file)
    if not syncing.auto_sync:
        click.echo("Error: Auto-sync is disabled. Run 'editorsync config --auto-sync' first.", err=True)
        sys.exit(1)

    orchestrator = build_orchestrator(env, editor_version)
    watcher = ChangeWatcher(
        env.user_dir,
        extension_source=ExtensionsDirectorySource(env.extensions_dir),
        debounce_ms=int(debounce * 1000),
    )
    service = AutoSyncService(orchestrator, watcher)

    if not no_initial_sync:
        report = service.synchronize()
        click.echo(report.message)

    service.start()
    click.echo(f"Watching {env.user_dir} (Ctrl+C to stop)")
    stop = threading.Event()
    try:
        while not stop.wait(1.0):
            pass
    except KeyboardInterrupt:
        click.echo("\nStopping...")
    finally:
        service.stop()


@click.command()
@click.pass_obj
def gists(env: Environment) -> None:
    """List the settings gists of the GitHub user."""
    syncing = load_syncing_config(env.syncing_file)
    if not syncing.has_token:
        click.echo("Error: No GitHub token. Run 'editorsync config --set-token' first.", err=True)
        sys.exit(1)

    try:
        with GistClient(token=syncing.token, proxy=syncing.http_proxy) as client:
            found = client.list_all()
    except APIError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if not found:
        click.echo("No settings gist found.")
        return
    for gist in found:
        marker = "*" if gist.id == syncing.gist_id else " "
        click.echo(f"{marker} {gist.id}  {gist.updated_at:%Y-%m-%d %H:%M}  {gist.description}")
