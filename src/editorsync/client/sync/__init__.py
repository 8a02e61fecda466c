"""Settings synchronization.

Architecture:
    ChangeWatcher → AutoSyncService → SyncOrchestrator → GistClient / LocalStore

Components:
- **SyncOrchestrator**: Upload and download pipelines, poka-yoke gate
- **settings_filter**: Excluded settings stripped on upload, restored on download
- **ExtensionReconciler**: Extensions to add, update and remove
- **ExtensionInstaller**: Package download, extraction and removal
- **ChangeWatcher**: Debounced change signal from settings and extensions
- **AutoSyncService**: Uploads on change, picks a direction on start-up
"""

from editorsync.client.sync.auto_sync import AutoSyncService
from editorsync.client.sync.extensions import ExtensionPlan, ExtensionReconciler
from editorsync.client.sync.ignore import SettingsIgnore
from editorsync.client.sync.installer import ExtensionInstaller, list_installed_extensions
from editorsync.client.sync.local_store import LocalStore
from editorsync.client.sync.orchestrator import SyncOrchestrator, SyncReport
from editorsync.client.sync.types import (
    AttemptState,
    ConfirmationDeclined,
    ContentLoadError,
    InstallError,
    PhaseResult,
    SaveError,
    SyncError,
    SyncResult,
)
from editorsync.client.sync.watcher import (
    ChangeWatcher,
    DebounceTimer,
    ExtensionsDirectorySource,
    WatcherEvent,
)

__all__ = [
    # Types
    "AttemptState",
    "ConfirmationDeclined",
    "ContentLoadError",
    "InstallError",
    "PhaseResult",
    "SaveError",
    "SyncError",
    "SyncResult",
    # Pipelines
    "AutoSyncService",
    "SyncOrchestrator",
    "SyncReport",
    # Extensions
    "ExtensionInstaller",
    "ExtensionPlan",
    "ExtensionReconciler",
    "list_installed_extensions",
    # Local files
    "LocalStore",
    "SettingsIgnore",
    # Watcher
    "ChangeWatcher",
    "DebounceTimer",
    "ExtensionsDirectorySource",
    "WatcherEvent",
]
