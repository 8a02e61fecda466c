"""Tests for the settings watcher with debouncing."""

import threading
import time
from collections.abc import Callable
from pathlib import Path

import pytest

from editorsync.client.sync.ignore import SettingsIgnore, is_junk
from editorsync.client.sync.watcher import (
    ChangeWatcher,
    DebounceTimer,
    ExtensionsDirectorySource,
    WatcherEvent,
)


class Recorder:
    """Watcher callback counting emissions."""

    def __init__(self) -> None:
        self.events: list[WatcherEvent] = []
        self.received = threading.Event()

    def __call__(self, event: WatcherEvent) -> None:
        self.events.append(event)
        self.received.set()


class FakeSource:
    """Extension list source driven by the test."""

    def __init__(self) -> None:
        self.callbacks: list[Callable[[WatcherEvent], None]] = []
        self.started = False
        self.stopped = False

    def subscribe(self, callback: Callable[[WatcherEvent], None]) -> Callable[[], None]:
        self.callbacks.append(callback)
        return lambda: self.callbacks.remove(callback)

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True

    def fire(self) -> None:
        for callback in list(self.callbacks):
            callback(WatcherEvent.ALL)


@pytest.fixture
def user_dir(tmp_path: Path) -> Path:
    path = tmp_path / "User"
    path.mkdir()
    return path.resolve()


class TestSettingsIgnore:
    """Tests for settings ignore rules."""

    def test_settings_files_watched(self, user_dir: Path) -> None:
        """Should not ignore JSON settings and snippets."""
        ignore = SettingsIgnore(user_dir)

        assert ignore.should_ignore(user_dir / "settings.json") is False
        assert ignore.should_ignore(user_dir / "snippets" / "python.json") is False

    def test_engine_file_ignored(self, user_dir: Path) -> None:
        """Should ignore the engine's own syncing.json."""
        assert SettingsIgnore(user_dir).should_ignore(user_dir / "syncing.json") is True

    def test_internal_directories_ignored(self, user_dir: Path) -> None:
        """Should ignore editor-internal storage."""
        ignore = SettingsIgnore(user_dir)

        assert ignore.should_ignore(user_dir / "globalStorage" / "state.json") is True
        assert ignore.should_ignore(user_dir / "workspaceStorage" / "x" / "a.json") is True

    def test_junk_and_non_json_ignored(self, user_dir: Path) -> None:
        """Should ignore junk and non-JSON files."""
        ignore = SettingsIgnore(user_dir)

        assert ignore.should_ignore(user_dir / ".DS_Store") is True
        assert ignore.should_ignore(user_dir / "settings.json~") is True
        assert ignore.should_ignore(user_dir / "notes.txt") is True
        assert is_junk(".settings.json.swp") is True

    def test_directories_and_outside_paths_ignored(self, user_dir: Path, tmp_path: Path) -> None:
        """Should ignore directory events and paths outside the user directory."""
        ignore = SettingsIgnore(user_dir)

        assert ignore.should_ignore(user_dir / "snippets", is_directory=True) is True
        assert ignore.should_ignore(tmp_path / "other.json") is True

    def test_extra_patterns(self, user_dir: Path) -> None:
        """Should support additional patterns."""
        ignore = SettingsIgnore(user_dir, ["*.backup.json"])
        ignore.add_pattern("local-*.json")

        assert ignore.should_ignore(user_dir / "settings.backup.json") is True
        assert ignore.should_ignore(user_dir / "local-a.json") is True


class TestDebounceTimer:
    """Tests for DebounceTimer class."""

    def test_only_last_schedule_fires(self) -> None:
        """Should run only the last scheduled callback."""
        timer = DebounceTimer()
        calls: list[int] = []
        done = threading.Event()

        timer.schedule(0.05, lambda: calls.append(1))
        timer.schedule(0.05, lambda: (calls.append(2), done.set()))

        assert done.wait(2.0)
        time.sleep(0.1)
        assert calls == [2]
        assert timer.pending is False

    def test_cancel_is_idempotent(self) -> None:
        """Should allow cancelling twice or with nothing pending."""
        timer = DebounceTimer()
        calls: list[int] = []
        timer.cancel()

        timer.schedule(0.05, lambda: calls.append(1))
        assert timer.pending is True
        timer.cancel()
        timer.cancel()

        time.sleep(0.15)
        assert calls == []


class TestChangeWatcher:
    """Tests for ChangeWatcher class."""

    def test_without_debounce(self, user_dir: Path) -> None:
        """Should emit each change immediately."""
        watcher = ChangeWatcher(user_dir, debounce=False)
        recorder = Recorder()
        watcher.subscribe(recorder)

        watcher.notify()
        watcher.notify()

        assert recorder.events == [WatcherEvent.ALL, WatcherEvent.ALL]

    def test_debounce_collapses_changes(self, user_dir: Path) -> None:
        """Should emit once after a burst of changes."""
        watcher = ChangeWatcher(user_dir, debounce_ms=100)
        recorder = Recorder()
        watcher.subscribe(recorder)

        for _ in range(5):
            watcher.notify()
            time.sleep(0.01)

        assert recorder.events == []
        assert recorder.received.wait(2.0)
        time.sleep(0.2)
        assert recorder.events == [WatcherEvent.ALL]
        watcher.stop()

    def test_changes_while_paused_are_dropped(self, user_dir: Path) -> None:
        """Should drop changes while paused and not deliver them on resume."""
        watcher = ChangeWatcher(user_dir, debounce_ms=50)
        recorder = Recorder()
        watcher.subscribe(recorder)

        watcher.pause()
        watcher.notify()
        assert watcher.is_paused is True
        assert watcher.pending is False
        watcher.resume()

        time.sleep(0.2)
        assert recorder.events == []
        watcher.stop()

    def test_resume_cancels_pending_emission(self, user_dir: Path) -> None:
        """Should discard an emission scheduled before the pause."""
        watcher = ChangeWatcher(user_dir, debounce_ms=100)
        recorder = Recorder()
        watcher.subscribe(recorder)

        watcher.notify()
        watcher.pause()
        watcher.resume()

        assert watcher.pending is False
        time.sleep(0.3)
        assert recorder.events == []
        watcher.stop()

    def test_extension_source_is_merged(self, user_dir: Path) -> None:
        """Should emit the same signal for extension changes."""
        source = FakeSource()
        watcher = ChangeWatcher(user_dir, extension_source=source, debounce=False)
        recorder = Recorder()
        watcher.subscribe(recorder)

        watcher.start()
        source.fire()

        assert source.started is True
        assert recorder.events == [WatcherEvent.ALL]
        watcher.stop()

    def test_stop_detaches_permanently(self, user_dir: Path) -> None:
        """Should detach both sources and refuse to restart."""
        source = FakeSource()
        watcher = ChangeWatcher(user_dir, extension_source=source, debounce=False)
        recorder = Recorder()
        watcher.subscribe(recorder)
        watcher.start()

        watcher.stop()
        watcher.stop()
        source.fire()
        watcher.notify()

        assert recorder.events == []
        assert source.callbacks == []
        assert source.stopped is True
        assert watcher.is_running is False
        with pytest.raises(RuntimeError):
            watcher.start()

    def test_detects_settings_change(self, user_dir: Path) -> None:
        """Should emit when a settings file is written."""
        recorder = Recorder()
        with ChangeWatcher(user_dir, debounce_ms=50) as watcher:
            watcher.subscribe(recorder)
            time.sleep(0.2)  # Wait for the observer to be ready

            (user_dir / "settings.json").write_text("{}")

            assert recorder.received.wait(5.0)

    def test_ignores_syncing_json(self, user_dir: Path) -> None:
        """Should not emit for the engine's own file."""
        recorder = Recorder()
        with ChangeWatcher(user_dir, debounce_ms=50) as watcher:
            watcher.subscribe(recorder)
            time.sleep(0.2)

            (user_dir / "syncing.json").write_text("{}")

            assert not recorder.received.wait(0.5)


class TestExtensionsDirectorySource:
    """Tests for ExtensionsDirectorySource class."""

    def test_detects_new_extension_folder(self, tmp_path: Path) -> None:
        """Should notify when an extension folder appears."""
        extensions_dir = tmp_path.resolve() / "extensions"
        extensions_dir.mkdir()
        source = ExtensionsDirectorySource(extensions_dir)
        recorder = Recorder()
        source.subscribe(recorder)
        source.start()
        try:
            time.sleep(0.2)
            (extensions_dir / "pub.ext-1.0.0").mkdir()

            assert recorder.received.wait(5.0)
        finally:
            source.stop()

    def test_missing_directory(self, tmp_path: Path) -> None:
        """Should not fail when the directory does not exist."""
        source = ExtensionsDirectorySource(tmp_path / "missing")
        source.start()
        source.stop()
