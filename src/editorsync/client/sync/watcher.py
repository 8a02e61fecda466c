"""Settings watcher with debouncing for auto-sync.

This module provides:
- ChangeWatcher: Watches the user directory and the installed extensions
  and emits one debounced ``WatcherEvent.ALL`` signal
- DebounceTimer: Cancellable trailing-edge timer handle
- ExtensionsDirectorySource: Extension list change notifications, from a
  watch on the extensions directory

Signals carry no payload: consumers re-read the current state.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from editorsync.client.environment import OBSOLETE_FILE
from editorsync.client.sync.ignore import SettingsIgnore

if TYPE_CHECKING:
    from watchdog.observers.api import BaseObserver

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_MS = 10_000

# watchdog also reports opened/closed events, which change nothing
_CHANGE_EVENTS = frozenset({"created", "modified", "deleted", "moved"})


class WatcherEvent(Enum):
    """Signal emitted by the watchers."""

    ALL = "all"


WatcherCallback = Callable[[WatcherEvent], None]


def _event_path(path: str | bytes) -> Path:
    if isinstance(path, bytes):
        path = path.decode("utf-8", errors="replace")
    return Path(path)


class _Subscribers:
    """Thread-safe callback registry."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._callbacks: list[WatcherCallback] = []

    def add(self, callback: WatcherCallback) -> Callable[[], None]:
        with self._lock:
            self._callbacks.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return unsubscribe

    def clear(self) -> None:
        with self._lock:
            self._callbacks.clear()

    def emit(self, event: WatcherEvent) -> None:
        with self._lock:
            callbacks = list(self._callbacks)
        for callback in callbacks:
            try:
                callback(event)
            except Exception:
                logger.exception("Watcher callback failed")


class DebounceTimer:
    """Trailing-edge debounce timer.

    Each ``schedule()`` restarts the window; only the last callback runs.
    ``cancel()`` may be called from any thread, any number of times.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._generation = 0

    @property
    def pending(self) -> bool:
        """Check if an emission is scheduled."""
        with self._lock:
            return self._timer is not None

    def schedule(self, delay_s: float, callback: Callable[[], None]) -> None:
        """Run ``callback`` after ``delay_s`` unless rescheduled or cancelled."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            self._timer = threading.Timer(delay_s, self._fire, args=(self._generation, callback))
            self._timer.daemon = True
            self._timer.start()

    def _fire(self, generation: int, callback: Callable[[], None]) -> None:
        with self._lock:
            # Cancelled or rescheduled after the timer thread woke up
            if generation != self._generation or self._timer is None:
                return
            self._timer = None
        callback()

    def cancel(self) -> None:
        """Cancel the scheduled emission, if any."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._generation += 1


class ExtensionListSource(Protocol):
    """Source of "installed extensions changed" notifications."""

    def subscribe(self, callback: WatcherCallback) -> Callable[[], None]: ...

    def start(self) -> None: ...

    def stop(self) -> None: ...


class _CallbackHandler(FileSystemEventHandler):
    """Forwards relevant file system events to a callback."""

    def __init__(self, callback: Callable[[Path], None], accept: Callable[[FileSystemEvent], bool]) -> None:
        super().__init__()
        self._callback = callback
        self._accept = accept

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type not in _CHANGE_EVENTS:
            return
        if self._accept(event):
            self._callback(_event_path(event.src_path))


class ExtensionsDirectorySource:
    """Notifies when extensions are installed or removed.

    Watches the top level of the extensions directory: extension folders
    appearing or disappearing, and ``.obsolete`` updates.
    """

    def __init__(self, extensions_dir: Path) -> None:
        self._extensions_dir = extensions_dir
        self._subscribers = _Subscribers()
        self._observer: BaseObserver | None = None

    def subscribe(self, callback: WatcherCallback) -> Callable[[], None]:
        """Register a callback; returns a function removing it."""
        return self._subscribers.add(callback)

    def _accept(self, event: FileSystemEvent) -> bool:
        path = _event_path(event.src_path)
        if path.parent != self._extensions_dir:
            return False
        if event.is_directory:
            return event.event_type in ("created", "deleted", "moved")
        return path.name == OBSOLETE_FILE

    def _on_change(self, path: Path) -> None:
        logger.debug("Extensions changed: %s", path)
        self._subscribers.emit(WatcherEvent.ALL)

    def start(self) -> None:
        """Start watching."""
        if self._observer is not None or not self._extensions_dir.is_dir():
            return
        self._observer = Observer()
        self._observer.schedule(
            _CallbackHandler(self._on_change, self._accept),
            str(self._extensions_dir),
            recursive=False,
        )
        self._observer.start()

    def stop(self) -> None:
        """Stop watching and drop all subscribers."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5.0)
            self._observer = None
        self._subscribers.clear()


class ChangeWatcher:
    """Merges settings file changes and extension changes into one signal.

    The signal is debounced (trailing edge) when enabled. While paused,
    changes are dropped; ``resume()`` cancels any pending emission. A
    stopped watcher cannot be restarted.
    """

    def __init__(
        self,
        user_dir: Path,
        extension_source: ExtensionListSource | None = None,
        debounce: bool = True,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        ignore: SettingsIgnore | None = None,
    ) -> None:
        """Initialize the watcher.

        Args:
            user_dir: The editor's user directory, watched recursively.
            extension_source: Extension list change notifications.
            debounce: Whether to debounce the signal.
            debounce_ms: Debounce window in milliseconds.
            ignore: Paths to ignore (defaults to the settings rules).
        """
        self._user_dir = Path(user_dir).resolve()
        self._extension_source = extension_source
        self._debounce = debounce
        self._debounce_s = debounce_ms / 1000.0
        self._ignore = ignore or SettingsIgnore(self._user_dir)

        self._subscribers = _Subscribers()
        self._timer = DebounceTimer()
        self._lock = threading.Lock()
        self._paused = False
        self._running = False
        self._stopped = False
        self._observer: BaseObserver | None = None
        self._unsubscribe_source: Callable[[], None] | None = None

    @property
    def is_running(self) -> bool:
        """Check if the watcher is running."""
        return self._running

    @property
    def is_paused(self) -> bool:
        """Check if the watcher is paused."""
        return self._paused

    @property
    def pending(self) -> bool:
        """Check if a debounced emission is scheduled."""
        return self._timer.pending

    def subscribe(self, callback: WatcherCallback) -> Callable[[], None]:
        """Register a callback; returns a function removing it."""
        return self._subscribers.add(callback)

    def _accept_file_event(self, event: FileSystemEvent) -> bool:
        path = _event_path(event.src_path)
        if not self._ignore.should_ignore(path, event.is_directory):
            return True
        # A settings file saved through a temporary file arrives as a move
        dest = getattr(event, "dest_path", None)
        return bool(dest) and not self._ignore.should_ignore(_event_path(dest), event.is_directory)

    def _on_file_change(self, path: Path) -> None:
        logger.debug("Settings changed: %s", path)
        self.notify()

    def _on_source_event(self, event: WatcherEvent) -> None:
        self.notify()

    def notify(self) -> None:
        """Feed a change into the watcher."""
        with self._lock:
            if self._paused or self._stopped:
                return
        if self._debounce:
            self._timer.schedule(self._debounce_s, self._emit)
        else:
            self._emit()

    def _emit(self) -> None:
        with self._lock:
            if self._paused or self._stopped:
                return
        self._subscribers.emit(WatcherEvent.ALL)

    def start(self) -> None:
        """Start watching.

        Raises:
            RuntimeError: If the watcher was stopped.
        """
        with self._lock:
            if self._stopped:
                raise RuntimeError("A stopped watcher cannot be restarted")
            if self._running:
                return
            self._running = True

        if self._user_dir.is_dir():
            self._observer = Observer()
            self._observer.schedule(
                _CallbackHandler(self._on_file_change, self._accept_file_event),
                str(self._user_dir),
                recursive=True,
            )
            self._observer.start()
        else:
            logger.warning("User directory %s does not exist, not watching it", self._user_dir)

        if self._extension_source is not None:
            self._unsubscribe_source = self._extension_source.subscribe(self._on_source_event)
            self._extension_source.start()
        logger.info("Watching %s", self._user_dir)

    def pause(self) -> None:
        """Drop changes until resumed."""
        with self._lock:
            self._paused = True

    def resume(self) -> None:
        """Accept changes again, discarding any pending emission."""
        with self._lock:
            self._paused = False
        self._timer.cancel()

    def stop(self) -> None:
        """Detach from both sources permanently."""
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
            self._running = False

        self._timer.cancel()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5.0)
            self._observer = None
        if self._unsubscribe_source is not None:
            self._unsubscribe_source()
            self._unsubscribe_source = None
        if self._extension_source is not None:
            self._extension_source.stop()
        self._subscribers.clear()

    def __enter__(self) -> ChangeWatcher:
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.stop()
