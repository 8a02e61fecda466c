"""Local settings files.

Reads and writes the editor's settings files on disk.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path

from editorsync.client.sync.types import ContentLoadError, SaveError
from editorsync.core.types import Setting

logger = logging.getLogger(__name__)


class LocalStore:
    """Reads and writes settings files."""

    def read(self, setting: Setting) -> str:
        """Read the content of a setting file.

        Raises:
            ContentLoadError: If the file cannot be read.
        """
        try:
            return setting.local_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ContentLoadError(str(setting.local_path), str(e)) from e

    def write(self, setting: Setting, modified: datetime | None = None) -> Setting:
        """Write a setting to disk.

        Args:
            setting: Setting carrying the content to write.
            modified: Remote revision timestamp, recorded as the file's
                modification time.

        Returns:
            The setting with ``last_modified`` set.

        Raises:
            SaveError: If the setting has no content or cannot be written.
        """
        if setting.content is None:
            raise SaveError(setting.remote_name, "no content")

        path: Path = setting.local_path
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(setting.content, encoding="utf-8")
            if modified is not None:
                timestamp = modified.timestamp()
                os.utime(path, (timestamp, timestamp))
        except OSError as e:
            raise SaveError(setting.remote_name, str(e)) from e

        logger.debug("Saved %s", path)
        setting.last_modified = modified.timestamp() if modified is not None else path.stat().st_mtime
        return setting

    def remove(self, setting: Setting) -> None:
        """Delete a setting file.

        Raises:
            SaveError: If the file exists but cannot be deleted.
        """
        try:
            setting.local_path.unlink(missing_ok=True)
        except OSError as e:
            raise SaveError(setting.remote_name, str(e)) from e
        logger.debug("Removed %s", setting.local_path)

    def last_modified(self, settings: list[Setting]) -> float | None:
        """Get the newest modification time among existing setting files."""
        times = []
        for setting in settings:
            try:
                if setting.local_path.is_file():
                    times.append(setting.local_path.stat().st_mtime)
            except OSError:
                continue
        return max(times) if times else None
