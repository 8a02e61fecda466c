"""Local layout of the editor's configuration.

Resolves the user directory (settings, keybindings, snippets, syncing.json)
and the extensions directory for the current platform, and builds the list
of synchronized settings.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path

from editorsync.core.config import SYNCING_SETTINGS_FILE
from editorsync.core.types import SETTING_KINDS, Setting, SettingKind

# Prefix of snippet files in the gist
SNIPPET_PREFIX = "snippet-"

# Remote name of the keybindings when they are kept separate on macOS
MAC_KEYBINDINGS_NAME = "keybindings-mac.json"

OBSOLETE_FILE = ".obsolete"


def get_data_directory(insiders: bool = False) -> Path:
    """Get the editor's data directory for the current platform.

    Raises:
        RuntimeError: On an unsupported platform.
    """
    portable = os.environ.get("VSCODE_PORTABLE")
    if portable:
        return Path(portable) / "user-data"

    name = "Code - Insiders" if insiders else "Code"
    if sys.platform == "win32":
        return Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming")) / name
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / name
    if sys.platform.startswith("linux"):
        return Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")) / name
    raise RuntimeError(f"Unsupported platform: {sys.platform}")


def get_extensions_directory(insiders: bool = False) -> Path:
    """Get the editor's extensions directory."""
    portable = os.environ.get("VSCODE_PORTABLE")
    if portable:
        return Path(portable) / "extensions"
    return Path.home() / (".vscode-insiders" if insiders else ".vscode") / "extensions"


@dataclass
class Environment:
    """Paths of the editor installation being synchronized.

    Attributes:
        user_dir: The editor's ``User`` directory.
        extensions_dir: Directory holding installed extensions.
        is_mac: Whether keybindings are the macOS flavour.
    """

    user_dir: Path
    extensions_dir: Path
    is_mac: bool = sys.platform == "darwin"

    @classmethod
    def detect(cls, insiders: bool = False) -> Environment:
        """Build the environment of the local editor installation."""
        return cls(
            user_dir=get_data_directory(insiders) / "User",
            extensions_dir=get_extensions_directory(insiders),
        )

    @property
    def is_portable(self) -> bool:
        """Check if the editor runs in portable mode."""
        return bool(os.environ.get("VSCODE_PORTABLE"))

    @property
    def settings_file(self) -> Path:
        return self.user_dir / "settings.json"

    @property
    def snippets_dir(self) -> Path:
        return self.user_dir / "snippets"

    @property
    def syncing_file(self) -> Path:
        return self.user_dir / SYNCING_SETTINGS_FILE

    @property
    def obsolete_file(self) -> Path:
        return self.extensions_dir / OBSOLETE_FILE

    def keybindings_remote_name(self, separate_keybindings: bool) -> str:
        """Remote name of the keybindings file on this platform."""
        if separate_keybindings and self.is_mac:
            return MAC_KEYBINDINGS_NAME
        return "keybindings.json"

    def snippet_path(self, remote_name: str) -> Path:
        """Local path of a snippet from its remote name."""
        return self.snippets_dir / remote_name[len(SNIPPET_PREFIX):]

    def snippet_setting(self, remote_name: str) -> Setting:
        """Build the setting of a remote-only snippet."""
        return Setting(SettingKind.SNIPPETS, self.snippet_path(remote_name), remote_name)

    def settings(self, separate_keybindings: bool = True) -> list[Setting]:
        """List the synchronized settings in processing order.

        Snippets are listed from the snippets directory; the extensions
        setting has no file of its own.
        """
        result: list[Setting] = []
        for kind in SETTING_KINDS:
            if kind is SettingKind.SNIPPETS:
                result.extend(self._snippet_settings())
            elif kind is SettingKind.KEYBINDINGS:
                result.append(
                    Setting(
                        kind,
                        self.user_dir / "keybindings.json",
                        self.keybindings_remote_name(separate_keybindings),
                    )
                )
            elif kind is SettingKind.EXTENSIONS:
                result.append(Setting(kind, self.extensions_dir, "extensions.json"))
            else:
                result.append(Setting(kind, self.user_dir / f"{kind.value}.json", f"{kind.value}.json"))
        return result

    def _snippet_settings(self) -> list[Setting]:
        if not self.snippets_dir.is_dir():
            return []
        return [
            Setting(SettingKind.SNIPPETS, path, SNIPPET_PREFIX + path.name)
            for path in sorted(self.snippets_dir.iterdir())
            if path.is_file()
        ]
