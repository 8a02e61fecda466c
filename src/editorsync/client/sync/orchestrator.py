"""Upload and download pipelines.

This module provides:
- SyncOrchestrator: Runs one upload or download attempt at a time
- SyncReport: Outcome of an attempt, with a single status message

Each attempt goes through ``PREPARING`` (configuration and local files),
``IN_FLIGHT`` (remote fetch and writes) and ends ``SUCCEEDED``, ``FAILED``
or ``ABORTED`` (confirmation declined). A request made while another
attempt runs returns ``SKIPPED`` without doing anything.

When the number of structural changes reaches the poka-yoke threshold the
user must confirm before anything is overwritten. Uploads compare using the
remote's declared exclusions; downloads compare after restoring the
locally excluded settings, so neither side's private keys count.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from editorsync.client.api import (
    APIError,
    AuthenticationError,
    GistClient,
    NotFoundError,
    RemoteSnapshot,
)
from editorsync.client.environment import SNIPPET_PREFIX, Environment
from editorsync.client.marketplace import ExtensionMeta, MarketplaceClient
from editorsync.client.sync import settings_filter
from editorsync.client.sync.extensions import ExtensionReconciler
from editorsync.client.sync.installer import ExtensionInstaller
from editorsync.client.sync.local_store import LocalStore
from editorsync.client.sync.types import (
    AttemptState,
    ConfirmationDeclined,
    ConfirmCallback,
    ContentLoadError,
    ProgressCallback,
    SaveError,
    SyncError,
    SyncResult,
)
from editorsync.core import jsonc
from editorsync.core.config import (
    SETTING_EXCLUDED_EXTENSIONS,
    SyncingConfig,
    clear_gist_id,
    clear_token,
    load_syncing_config,
    save_syncing_config,
)
from editorsync.core.diff import count
from editorsync.core.patterns import match_any
from editorsync.core.types import Extension, Setting, SettingKind

logger = logging.getLogger(__name__)

SETTINGS_FILE = "settings.json"
EXTENSIONS_FILE = "extensions.json"

UPLOAD_CONFIRMATION = (
    "A lot of changes have been made since your last sync. "
    "Are you sure to OVERWRITE THE REMOTE SETTINGS?"
)
DOWNLOAD_CONFIRMATION = (
    "A lot of changes have been made since your last sync. "
    "Are you sure to OVERWRITE THE LOCAL SETTINGS?"
)

RemoteFactory = Callable[[SyncingConfig], GistClient]
QueryFactory = Callable[[SyncingConfig], Callable[[list[str]], Mapping[str, ExtensionMeta]]]


@dataclass
class SyncReport:
    """Outcome of a sync attempt.

    Attributes:
        state: Terminal state of the attempt.
        message: Human-readable status line.
        result: Extension changes and content load errors.
        snapshot: Remote gist after the attempt, when known.
    """

    state: AttemptState
    message: str
    result: SyncResult = field(default_factory=SyncResult)
    snapshot: RemoteSnapshot | None = None

    @property
    def ok(self) -> bool:
        """Check if the attempt did not fail."""
        return self.state is not AttemptState.FAILED


def _default_remote(config: SyncingConfig) -> GistClient:
    return GistClient(token=config.token, proxy=config.http_proxy)


def _default_query(config: SyncingConfig) -> Callable[[list[str]], Mapping[str, ExtensionMeta]]:
    def query(ids: list[str]) -> Mapping[str, ExtensionMeta]:
        with MarketplaceClient(proxy=config.http_proxy) as client:
            return client.query_extensions(ids)

    return query


def serialize_extensions(extensions: list[Extension]) -> str:
    """Serialize an extension list as ``extensions.json`` content."""
    return json.dumps([ext.to_dict() for ext in extensions], indent=4)


def parse_extensions(content: str | None) -> list[Extension]:
    """Parse ``extensions.json`` content, skipping malformed entries."""
    parsed = jsonc.parse(content or "[]")
    if not isinstance(parsed, list):
        return []
    return [Extension.from_dict(item) for item in parsed if isinstance(item, dict) and item.get("id")]


def _comparable(name: str, content: str | None, settings_patterns: list[str], extension_patterns: list[str]) -> Any:
    """Parse a file for the change count, dropping excluded entries."""
    if content is None:
        return None
    if name == SETTINGS_FILE:
        parsed = jsonc.parse(content)
        parsed = jsonc.parse(settings_filter.exclude(content, parsed, settings_patterns))
        return parsed if parsed is not None else content
    if name == EXTENSIONS_FILE:
        # Only ids and versions matter
        return [
            {"id": ext.key, "version": ext.version}
            for ext in parse_extensions(content)
            if not match_any(ext.id, extension_patterns)
        ]
    parsed = jsonc.parse(content)
    return parsed if parsed is not None else content


def _string_patterns(value: Any) -> list[str]:
    return [p for p in value if isinstance(p, str)] if isinstance(value, list) else []


class SyncOrchestrator:
    """Uploads and downloads the editor configuration."""

    def __init__(
        self,
        environment: Environment,
        installer: ExtensionInstaller | None = None,
        reconciler: ExtensionReconciler | None = None,
        local_store: LocalStore | None = None,
        remote_factory: RemoteFactory = _default_remote,
        query_factory: QueryFactory = _default_query,
        confirm: ConfirmCallback | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            environment: Local editor layout.
            installer: Extension installer.
            reconciler: Extension reconciler (built on the installer if omitted).
            local_store: Settings file access.
            remote_factory: Builds the gist client from the configuration.
            query_factory: Builds the marketplace lookup from the configuration.
            confirm: Poka-yoke prompt; without one, confirmations are declined.
            on_progress: Extension reconciliation progress callback.
        """
        self._env = environment
        self._installer = installer or ExtensionInstaller(environment.extensions_dir)
        self._reconciler = reconciler or ExtensionReconciler(self._installer)
        self._store = local_store or LocalStore()
        self._remote_factory = remote_factory
        self._query_factory = query_factory
        self._confirm = confirm
        self._on_progress = on_progress

        self._guard = threading.Lock()
        self._state = AttemptState.IDLE

    @property
    def state(self) -> AttemptState:
        """Get the state of the current attempt."""
        return self._state

    @property
    def environment(self) -> Environment:
        """Get the local editor layout."""
        return self._env

    @property
    def local_store(self) -> LocalStore:
        """Get the settings file access."""
        return self._store

    @property
    def is_busy(self) -> bool:
        """Check if an attempt is running."""
        return self._guard.locked()

    def load_config(self) -> SyncingConfig:
        """Load the configuration of an attempt."""
        return load_syncing_config(self._env.syncing_file, self._env.settings_file)

    # === Entry points ===

    def upload(self) -> SyncReport:
        """Upload the local configuration to the gist."""
        return self._run("upload", self._upload)

    def download(self) -> SyncReport:
        """Download the gist into the local configuration."""
        return self._run("download", self._download)

    def _run(
        self,
        name: str,
        operation: Callable[[SyncingConfig, GistClient, SyncResult], SyncReport],
    ) -> SyncReport:
        if not self._guard.acquire(blocking=False):
            logger.info("A synchronization is already in progress, ignoring %s", name)
            return SyncReport(AttemptState.SKIPPED, "Synchronization already in progress.")

        result = SyncResult()
        try:
            self._state = AttemptState.PREPARING
            config = self.load_config()
            remote = self._remote_factory(config)
            try:
                report = operation(config, remote, result)
            except ConfirmationDeclined:
                report = SyncReport(AttemptState.ABORTED, "You abort the synchronization.", result)
            except AuthenticationError as e:
                clear_token(self._env.syncing_file, config)
                report = SyncReport(AttemptState.FAILED, f"{name.capitalize()} failed. {e}", result)
            except NotFoundError as e:
                clear_gist_id(self._env.syncing_file, config)
                report = SyncReport(AttemptState.FAILED, f"{name.capitalize()} failed. {e}", result)
            except (APIError, SyncError) as e:
                report = SyncReport(AttemptState.FAILED, f"{name.capitalize()} failed. {e}", result)
            except OSError as e:
                logger.debug("Local file system error", exc_info=True)
                report = SyncReport(AttemptState.FAILED, f"{name.capitalize()} failed. {e}", result)
            finally:
                close = getattr(remote, "close", None)
                if close is not None:
                    close()

            log = logger.error if report.state is AttemptState.FAILED else logger.info
            log("%s", report.message)
            for error in result.errors:
                logger.warning("Skipped: %s", error)
            return report
        finally:
            self._state = AttemptState.IDLE
            self._guard.release()

    def _ask(self, changes: int, threshold: int, message: str) -> None:
        if changes < threshold:
            return
        logger.info("%d changes detected (threshold %d), asking for confirmation", changes, threshold)
        if self._confirm is None or not self._confirm(message):
            raise ConfirmationDeclined(message)

    # === Upload ===

    def _load_local(self, config: SyncingConfig, result: SyncResult) -> list[Setting]:
        """Load local settings with their excluded entries removed."""
        loaded: list[Setting] = []
        for setting in self._env.settings(config.separate_keybindings):
            if setting.kind is SettingKind.EXTENSIONS:
                extensions = [
                    ext for ext in self._installer.installed()
                    if not match_any(ext.id, config.excluded_extensions)
                ]
                loaded.append(setting.with_content(serialize_extensions(extensions)))
                continue

            if not setting.local_path.exists():
                logger.debug("Skipping missing %s", setting.local_path)
                continue
            try:
                content = self._store.read(setting)
            except ContentLoadError as e:
                result.errors.append(str(e))
                continue

            if setting.kind is SettingKind.SETTINGS:
                content = settings_filter.exclude(
                    content, jsonc.parse(content), config.excluded_settings
                )
            loaded.append(setting.with_content(content))
        return loaded

    def _fetch_existing(self, config: SyncingConfig, remote: GistClient) -> RemoteSnapshot | None:
        if not config.has_gist_id:
            return None
        snapshot = remote.exists(config.gist_id)
        if snapshot is None:
            logger.warning("Gist %s not found or not yours, a new one will be created", config.gist_id)
        return snapshot

    @staticmethod
    def write_set(files: dict[str, str], snapshot: RemoteSnapshot | None) -> dict[str, str | None]:
        """Compute the minimal set of remote writes.

        Changed and new files are written. Remote files missing locally are
        deleted only when they are snippets.
        """
        if snapshot is None:
            return dict(files)

        result: dict[str, str | None] = {}
        for name in snapshot.files:
            content = files.get(name)
            if content is not None:
                if content != snapshot.content_of(name):
                    result[name] = content
            elif name.startswith(SNIPPET_PREFIX):
                result[name] = None
        for name, content in files.items():
            if name not in snapshot.files:
                result[name] = content
        return result

    def upload_changes(self, writes: dict[str, str | None], snapshot: RemoteSnapshot) -> int:
        """Count the changes an upload would make, using the remote's exclusions."""
        remote_options = jsonc.parse(snapshot.content_of(SETTINGS_FILE) or "")
        settings_patterns = settings_filter.declared_patterns(remote_options)
        extension_patterns = _string_patterns(
            remote_options.get(SETTING_EXCLUDED_EXTENSIONS) if isinstance(remote_options, dict) else None
        )
        left = {
            name: _comparable(name, content, settings_patterns, extension_patterns)
            for name, content in writes.items()
        }
        right = {
            name: _comparable(name, snapshot.content_of(name), settings_patterns, extension_patterns)
            for name in writes
        }
        return count(left, right)

    def _upload(self, config: SyncingConfig, remote: GistClient, result: SyncResult) -> SyncReport:
        settings = self._load_local(config, result)
        # Blank files are never uploaded
        files = {s.remote_name: s.content for s in settings if s.content}

        self._state = AttemptState.IN_FLIGHT
        snapshot = self._fetch_existing(config, remote)
        writes = self.write_set(files, snapshot)

        if snapshot is not None:
            if not writes:
                return SyncReport(AttemptState.SUCCEEDED, "Remote settings are up to date.", result, snapshot)
            if config.poka_yoke_threshold > 0:
                self._ask(
                    self.upload_changes(writes, snapshot),
                    config.poka_yoke_threshold,
                    UPLOAD_CONFIRMATION,
                )
            snapshot = remote.update(snapshot.id, writes)
        else:
            snapshot = remote.create({k: v for k, v in writes.items() if v is not None})

        if snapshot.id != config.gist_id:
            config.gist_id = snapshot.id
            save_syncing_config(self._env.syncing_file, config)
            logger.info("Gist id saved: %s", snapshot.id)

        self._state = AttemptState.SUCCEEDED
        return SyncReport(
            AttemptState.SUCCEEDED,
            f"Settings uploaded to gist {snapshot.id}.",
            result,
            snapshot,
        )

    # === Download ===

    def stage(self, snapshot: RemoteSnapshot, config: SyncingConfig) -> tuple[list[Setting], list[Setting]]:
        """Stage remote files for saving and local snippets for removal.

        Returns:
            (to_save, to_remove); the extensions setting, if any, is last.
        """
        to_save: list[Setting] = []
        to_remove: list[Setting] = []
        extensions: Setting | None = None
        known: set[str] = set()

        for setting in self._env.settings(config.separate_keybindings):
            if setting.remote_name in snapshot.files:
                known.add(setting.remote_name)
                content = snapshot.content_of(setting.remote_name)
                if setting.kind is SettingKind.EXTENSIONS:
                    extensions = setting.with_content(content or "[]")
                elif content is not None:
                    to_save.append(setting.with_content(content))
            elif setting.kind is SettingKind.SNIPPETS:
                to_remove.append(setting)

        for name in snapshot.files:
            if name in known or not name.startswith(SNIPPET_PREFIX) or name == SNIPPET_PREFIX:
                continue
            content = snapshot.content_of(name)
            if content is not None:
                to_save.append(self._env.snippet_setting(name).with_content(content))

        if extensions is not None:
            to_save.append(extensions)
        return to_save, to_remove

    def _local_content(self, setting: Setting, result: SyncResult) -> str | None:
        if setting.kind is SettingKind.EXTENSIONS:
            return serialize_extensions(self._installer.installed())
        if not setting.local_path.exists():
            return None
        try:
            return self._store.read(setting)
        except ContentLoadError as e:
            result.errors.append(str(e))
            return None

    def download_changes(
        self,
        to_save: list[Setting],
        to_remove: list[Setting],
        config: SyncingConfig,
        result: SyncResult,
    ) -> int:
        """Count the changes a download would make, using the local exclusions."""
        left: dict[str, Any] = {}
        right: dict[str, Any] = {}
        for setting in to_save:
            local = self._local_content(setting, result)
            incoming = setting.content
            if setting.kind is SettingKind.SETTINGS and local and incoming:
                incoming = settings_filter.merge(incoming, local)
            left[setting.remote_name] = _comparable(
                setting.remote_name, local, config.excluded_settings, config.excluded_extensions
            )
            right[setting.remote_name] = _comparable(
                setting.remote_name, incoming, config.excluded_settings, config.excluded_extensions
            )
        return count(left, right) + len(to_remove)

    def _save(self, setting: Setting, config: SyncingConfig, modified: datetime, result: SyncResult) -> None:
        if setting.kind is SettingKind.EXTENSIONS:
            desired = parse_extensions(setting.content)
            plan = self._reconciler.plan(
                desired,
                self._installer.installed(),
                config.excluded_extensions,
                config.auto_update_extensions,
                self._query_factory(config) if config.auto_update_extensions else None,
            )
            result.merge(self._reconciler.apply(plan, self._on_progress))
            setting.last_modified = modified.timestamp()
            return

        if setting.kind is SettingKind.SETTINGS and setting.content and setting.local_path.exists():
            try:
                local = self._store.read(setting)
            except ContentLoadError as e:
                raise SaveError(setting.remote_name, str(e)) from e
            if local:
                setting = setting.with_content(settings_filter.merge(setting.content, local))
        self._store.write(setting, modified)

    def _download(self, config: SyncingConfig, remote: GistClient, result: SyncResult) -> SyncReport:
        if not config.has_gist_id:
            return SyncReport(AttemptState.FAILED, "Download failed. Please check your Gist ID.", result)

        self._state = AttemptState.IN_FLIGHT
        snapshot = remote.get(config.gist_id)
        to_save, to_remove = self.stage(snapshot, config)

        if config.poka_yoke_threshold > 0:
            self._ask(
                self.download_changes(to_save, to_remove, config, result),
                config.poka_yoke_threshold,
                DOWNLOAD_CONFIRMATION,
            )

        for setting in to_save:
            self._save(setting, config, snapshot.updated_at, result)
        for setting in to_remove:
            self._store.remove(setting)

        self._state = AttemptState.SUCCEEDED
        message = f"Settings downloaded from gist {snapshot.id}."
        if result.has_failures:
            message += " Some extensions could not be synchronized."
        return SyncReport(AttemptState.SUCCEEDED, message, result, snapshot)
