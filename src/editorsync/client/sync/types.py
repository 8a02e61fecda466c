"""Shared types and dataclasses for sync operations.

This module provides:
- SyncError, ContentLoadError, InstallError, SaveError, ConfirmationDeclined:
  Exception classes
- PhaseResult, SyncResult: Per-phase and overall results
- AttemptState: States of a sync attempt
- Type aliases for callbacks
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class SyncError(Exception):
    """Base exception for sync errors."""


class ContentLoadError(SyncError):
    """A local file could not be read.

    Attributes:
        path: Path of the unreadable file.
    """

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        super().__init__(f"Cannot read {path}: {reason}")


class InstallError(SyncError):
    """Failed to install, update or uninstall an extension."""


class SaveError(SyncError):
    """Failed to write a setting to disk.

    Attributes:
        remote_name: Remote name of the setting that could not be saved.
    """

    def __init__(self, remote_name: str, reason: str = "") -> None:
        self.remote_name = remote_name
        super().__init__(f"Cannot save file: {remote_name}" + (f" ({reason})" if reason else ""))


class ConfirmationDeclined(SyncError):
    """The user declined the confirmation prompt."""


class AttemptState(Enum):
    """State of a sync attempt."""

    IDLE = "idle"
    PREPARING = "preparing"
    IN_FLIGHT = "in_flight"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ABORTED = "aborted"
    SKIPPED = "skipped"  # Another attempt was already in flight


@dataclass
class PhaseResult(Generic[T]):
    """Outcome of one reconciliation phase (add, update or remove)."""

    succeeded: list[T] = field(default_factory=list)
    failed: list[T] = field(default_factory=list)

    @property
    def total(self) -> int:
        """Number of processed items."""
        return len(self.succeeded) + len(self.failed)


@dataclass
class SyncResult:
    """Result of a sync operation.

    Attributes:
        added: Extensions installed.
        updated: Extensions upgraded.
        removed: Extensions uninstalled.
        errors: Content load errors (files skipped).
    """

    added: PhaseResult[Any] = field(default_factory=PhaseResult)
    updated: PhaseResult[Any] = field(default_factory=PhaseResult)
    removed: PhaseResult[Any] = field(default_factory=PhaseResult)
    errors: list[str] = field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        """Check if any item failed."""
        return bool(self.added.failed or self.updated.failed or self.removed.failed)

    def merge(self, other: SyncResult) -> None:
        """Accumulate another result into this one."""
        for mine, theirs in (
            (self.added, other.added),
            (self.updated, other.updated),
            (self.removed, other.removed),
        ):
            mine.succeeded.extend(theirs.succeeded)
            mine.failed.extend(theirs.failed)
        self.errors.extend(other.errors)


# Type alias for reconciliation progress: (step, total, message)
ProgressCallback = Callable[[int, int, str], None]

# Type alias for the poka-yoke confirmation prompt: (message) -> accepted
ConfirmCallback = Callable[[str], bool]
