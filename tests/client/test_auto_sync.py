"""Tests for the auto-sync service."""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path

from editorsync.client.api import NetworkError
from editorsync.client.environment import Environment
from editorsync.client.sync.auto_sync import AutoSyncService
from editorsync.client.sync.local_store import LocalStore
from editorsync.client.sync.orchestrator import SyncReport
from editorsync.client.sync.types import AttemptState
from editorsync.client.sync.watcher import ChangeWatcher
from editorsync.core.config import SyncingConfig, load_syncing_config


class FakeOrchestrator:
    """Orchestrator recording the requested operations."""

    def __init__(self, env: Environment, watcher: ChangeWatcher | None = None) -> None:
        self.environment = env
        self.local_store = LocalStore()
        self.calls: list[str] = []
        self.paused_during_download: bool | None = None
        self._watcher = watcher

    def load_config(self) -> SyncingConfig:
        return load_syncing_config(self.environment.syncing_file, self.environment.settings_file)

    def upload(self) -> SyncReport:
        self.calls.append("upload")
        return SyncReport(AttemptState.SUCCEEDED, "uploaded")

    def download(self) -> SyncReport:
        self.calls.append("download")
        if self._watcher is not None:
            self.paused_during_download = self._watcher.is_paused
        return SyncReport(AttemptState.SUCCEEDED, "downloaded")


class FakeRemote:
    def __init__(self, modified: datetime | None = None) -> None:
        self.modified = modified
        self.closed = False

    def get_last_modified(self, gist_id: str) -> datetime:
        if self.modified is None:
            raise NetworkError("Please check your Internet connection or proxy settings.")
        return self.modified

    def close(self) -> None:
        self.closed = True


def make_env(tmp_path: Path, gist_id: str = "g1") -> Environment:
    user_dir = tmp_path / "User"
    user_dir.mkdir()
    env = Environment(user_dir=user_dir, extensions_dir=tmp_path / "extensions", is_mac=False)
    env.syncing_file.write_text(json.dumps({"id": gist_id, "token": "t"}))
    return env


def touch(path: Path, when: datetime) -> None:
    path.write_text("{}")
    os.utime(path, (when.timestamp(), when.timestamp()))


OLD = datetime(2024, 1, 1, tzinfo=timezone.utc)
NEW = datetime(2025, 1, 1, tzinfo=timezone.utc)


class TestSynchronize:
    """Tests for AutoSyncService.synchronize."""

    def test_local_newer_uploads(self, tmp_path: Path) -> None:
        """Should upload when a local file is newer than the gist."""
        env = make_env(tmp_path)
        touch(env.settings_file, NEW)
        orchestrator = FakeOrchestrator(env)
        remote = FakeRemote(OLD)
        service = AutoSyncService(
            orchestrator, ChangeWatcher(env.user_dir, debounce=False), lambda config: remote  # type: ignore[arg-type,return-value]
        )

        service.synchronize()

        assert orchestrator.calls == ["upload"]
        assert remote.closed is True

    def test_remote_newer_downloads_paused(self, tmp_path: Path) -> None:
        """Should download with the watcher paused when the gist is newer."""
        env = make_env(tmp_path)
        touch(env.settings_file, OLD)
        watcher = ChangeWatcher(env.user_dir, debounce=False)
        orchestrator = FakeOrchestrator(env, watcher)
        service = AutoSyncService(orchestrator, watcher, lambda config: FakeRemote(NEW))  # type: ignore[arg-type,return-value]

        service.synchronize()

        assert orchestrator.calls == ["download"]
        assert orchestrator.paused_during_download is True
        assert watcher.is_paused is False

    def test_no_gist_uploads(self, tmp_path: Path) -> None:
        """Should upload when no gist is configured."""
        env = make_env(tmp_path, gist_id="")
        orchestrator = FakeOrchestrator(env)
        service = AutoSyncService(orchestrator, ChangeWatcher(env.user_dir, debounce=False))  # type: ignore[arg-type]

        service.synchronize()

        assert orchestrator.calls == ["upload"]

    def test_remote_failure(self, tmp_path: Path) -> None:
        """Should report a failure when the gist cannot be checked."""
        env = make_env(tmp_path)
        orchestrator = FakeOrchestrator(env)
        service = AutoSyncService(
            orchestrator, ChangeWatcher(env.user_dir, debounce=False), lambda config: FakeRemote()  # type: ignore[arg-type,return-value]
        )

        report = service.synchronize()

        assert report.state is AttemptState.FAILED
        assert orchestrator.calls == []


class TestWatching:
    """Tests for uploads triggered by the watcher."""

    def test_change_triggers_upload(self, tmp_path: Path) -> None:
        """Should upload on each watcher signal until stopped."""
        env = make_env(tmp_path)
        watcher = ChangeWatcher(env.user_dir, debounce=False)
        orchestrator = FakeOrchestrator(env)
        service = AutoSyncService(orchestrator, watcher)  # type: ignore[arg-type]

        service.start()
        watcher.notify()
        service.pause()
        watcher.notify()
        service.resume()
        service.stop()
        watcher.notify()

        assert orchestrator.calls == ["upload"]
