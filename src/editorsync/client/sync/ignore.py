"""Paths ignored by the settings watcher.

This module provides:
- SettingsIgnore: Decides which changes in the user directory matter
- JUNK_PATTERNS: Operating system and editor junk files
"""

from __future__ import annotations

import fnmatch
from pathlib import Path

from editorsync.core.config import SYNCING_SETTINGS_FILE

# Junk files created by operating systems and editors
JUNK_PATTERNS = [
    ".DS_Store",
    "._*",
    ".AppleDouble",
    ".LSOverride",
    ".Spotlight-V100",
    ".Trashes",
    "Thumbs.db",
    "ehthumbs.db",
    "Desktop.ini",
    "*~",
    ".*.swp",
    ".*.swo",
    "npm-debug.log",
    ".~lock.*#",
]

# Editor-internal subdirectories of the user directory
IGNORED_DIRECTORIES = ["globalStorage", "workspaceStorage"]


def is_junk(name: str) -> bool:
    """Check if a filename is a junk file."""
    return any(fnmatch.fnmatchcase(name, pattern) for pattern in JUNK_PATTERNS)


class SettingsIgnore:
    """Decides which file changes in the user directory are ignored."""

    def __init__(self, base_path: Path, extra_patterns: list[str] | None = None) -> None:
        """Initialize with the watched directory.

        Args:
            base_path: The editor's user directory.
            extra_patterns: Additional filename patterns to ignore.
        """
        self._base_path = base_path
        self._patterns = list(extra_patterns or [])

    def add_pattern(self, pattern: str) -> None:
        """Add an ignore pattern."""
        self._patterns.append(pattern)

    def should_ignore(self, path: Path, is_directory: bool = False) -> bool:
        """Check if a change to a path should be ignored.

        Args:
            path: Absolute path of the changed entry.
            is_directory: Whether the entry is a directory.

        Returns:
            True if the change does not affect synchronized settings.
        """
        try:
            rel_path = path.relative_to(self._base_path)
        except ValueError:
            return True

        parts = rel_path.parts
        if any(part in IGNORED_DIRECTORIES for part in parts):
            return True

        # Directory events carry no content change of their own
        if is_directory:
            return True

        name = path.name
        if rel_path.as_posix() == SYNCING_SETTINGS_FILE:
            return True
        if is_junk(name) or not name.endswith(".json"):
            return True
        return any(fnmatch.fnmatchcase(name, pattern) for pattern in self._patterns)
