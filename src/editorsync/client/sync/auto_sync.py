"""Auto-sync service.

Uploads the settings whenever the watcher reports a change, and decides on
start-up whether the local or the remote copy is newer.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from editorsync.client.api import APIError, GistClient
from editorsync.client.sync.orchestrator import SyncOrchestrator, SyncReport
from editorsync.client.sync.types import AttemptState
from editorsync.client.sync.watcher import ChangeWatcher, WatcherEvent
from editorsync.core.config import SyncingConfig

logger = logging.getLogger(__name__)


class AutoSyncService:
    """Keeps the gist up to date with local changes."""

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        watcher: ChangeWatcher,
        remote_factory: Callable[[SyncingConfig], GistClient] | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            orchestrator: Runs uploads and downloads.
            watcher: Change notifications.
            remote_factory: Builds the gist client used by ``synchronize()``.
        """
        self._orchestrator = orchestrator
        self._watcher = watcher
        self._remote_factory = remote_factory or (
            lambda config: GistClient(token=config.token, proxy=config.http_proxy)
        )
        self._unsubscribe: Callable[[], None] | None = None

    def _on_change(self, event: WatcherEvent) -> None:
        logger.info("Local settings changed, uploading")
        self._orchestrator.upload()

    def start(self) -> None:
        """Start uploading on changes."""
        if self._unsubscribe is None:
            self._unsubscribe = self._watcher.subscribe(self._on_change)
        self._watcher.start()

    def pause(self) -> None:
        """Stop reacting to changes until resumed."""
        self._watcher.pause()

    def resume(self) -> None:
        """React to changes again."""
        self._watcher.resume()

    def stop(self) -> None:
        """Stop the service permanently."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._watcher.stop()

    def download(self) -> SyncReport:
        """Download with the watcher paused, so written files are not re-uploaded."""
        self.pause()
        try:
            return self._orchestrator.download()
        finally:
            self.resume()

    def synchronize(self) -> SyncReport:
        """Upload or download, whichever side is newer.

        The newest local settings file is compared with the gist revision.
        """
        config = self._orchestrator.load_config()
        if not config.has_gist_id:
            return self._orchestrator.upload()

        remote = self._remote_factory(config)
        try:
            remote_modified = remote.get_last_modified(config.gist_id).timestamp()
        except APIError as e:
            logger.error("Auto-sync cannot check the gist: %s", e)
            return SyncReport(AttemptState.FAILED, f"Auto-sync failed. {e}")
        finally:
            remote.close()

        env = self._orchestrator.environment
        local_settings = [
            s for s in env.settings(config.separate_keybindings) if s.local_path.is_file()
        ]
        local_modified = self._orchestrator.local_store.last_modified(local_settings)
        if local_modified is not None and local_modified > remote_modified:
            logger.info("Local settings are newer, uploading")
            return self._orchestrator.upload()
        logger.info("Remote settings are newer, downloading")
        return self.download()
