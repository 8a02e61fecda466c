"""Configuration for editorsync.

Two sources make up the configuration of a sync attempt:

- ``syncing.json`` (engine-private): GitHub token, gist id, proxy, auto-sync
- ``settings.json`` (the editor's own settings): ``syncing.*`` options such
  as exclusion patterns and the poka-yoke threshold
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from editorsync.core import jsonc

logger = logging.getLogger(__name__)

SYNCING_SETTINGS_FILE = "syncing.json"

# Keys of editorsync options inside the editor's settings.json
SETTING_EXCLUDED_EXTENSIONS = "syncing.excludedExtensions"
SETTING_EXCLUDED_SETTINGS = "syncing.excludedSettings"
SETTING_POKA_YOKE_THRESHOLD = "syncing.pokaYokeThreshold"
SETTING_SEPARATE_KEYBINDINGS = "syncing.separateKeybindings"
SETTING_EXTENSIONS_AUTOUPDATE = "syncing.extensions.autoUpdate"

DEFAULT_POKA_YOKE_THRESHOLD = 10


@dataclass
class SyncingConfig:
    """Configuration of a sync attempt.

    Attributes:
        token: GitHub Personal Access Token.
        gist_id: Id of the gist holding the settings.
        http_proxy: Proxy URL override.
        auto_sync: Whether the auto-sync service should run.
        poka_yoke_threshold: Change count that requires a confirmation (0 disables).
        excluded_extensions: Glob patterns of extension ids kept local.
        excluded_settings: Glob patterns of setting keys kept local.
        separate_keybindings: Upload macOS keybindings as ``keybindings-mac.json``.
        auto_update_extensions: Upgrade extensions to the latest compatible version.
    """

    token: str = ""
    gist_id: str = ""
    http_proxy: str | None = None
    auto_sync: bool = False
    poka_yoke_threshold: int = DEFAULT_POKA_YOKE_THRESHOLD
    excluded_extensions: list[str] = field(default_factory=list)
    excluded_settings: list[str] = field(default_factory=list)
    separate_keybindings: bool = True
    auto_update_extensions: bool = False

    def __post_init__(self) -> None:
        """Normalize values."""
        self.token = (self.token or "").strip()
        self.gist_id = (self.gist_id or "").strip()
        self.http_proxy = self.http_proxy or None
        self.poka_yoke_threshold = max(int(self.poka_yoke_threshold or 0), 0)

    @property
    def has_token(self) -> bool:
        """Check if a token is configured."""
        return bool(self.token)

    @property
    def has_gist_id(self) -> bool:
        """Check if a gist id is configured."""
        return bool(self.gist_id)

    def to_syncing_json(self) -> dict[str, Any]:
        """Fields persisted in ``syncing.json``."""
        data: dict[str, Any] = {
            "id": self.gist_id,
            "token": self.token,
            "auto_sync": self.auto_sync,
        }
        if self.http_proxy:
            data["http_proxy"] = self.http_proxy
        return data


def _string_list(value: Any) -> list[str]:
    if isinstance(value, list):
        return [item for item in value if isinstance(item, str)]
    return []


def read_syncing_json(path: Path) -> dict[str, Any]:
    """Read ``syncing.json``, returning an empty dict when missing or corrupt."""
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.error("Cannot load syncing settings from %s: %s", path, e)
        return {}
    return dict(data) if isinstance(data, dict) else {}


def read_editor_options(settings_path: Path) -> dict[str, Any]:
    """Read the editorsync options declared in the editor's settings.json."""
    try:
        content = settings_path.read_text(encoding="utf-8")
    except OSError:
        return {}
    parsed = jsonc.parse(content)
    return parsed if isinstance(parsed, dict) else {}


def load_syncing_config(syncing_path: Path, settings_path: Path | None = None) -> SyncingConfig:
    """Load the configuration of a sync attempt.

    Args:
        syncing_path: Path to ``syncing.json``.
        settings_path: Path to the editor's ``settings.json``.

    Returns:
        The resolved configuration; defaults for anything missing.
    """
    data = read_syncing_json(syncing_path)
    options = read_editor_options(settings_path) if settings_path else {}

    threshold = options.get(SETTING_POKA_YOKE_THRESHOLD, DEFAULT_POKA_YOKE_THRESHOLD)
    if not isinstance(threshold, int) or isinstance(threshold, bool):
        threshold = DEFAULT_POKA_YOKE_THRESHOLD

    return SyncingConfig(
        token=str(data.get("token") or ""),
        gist_id=str(data.get("id") or ""),
        http_proxy=data.get("http_proxy") or None,
        auto_sync=bool(data.get("auto_sync", False)),
        poka_yoke_threshold=threshold,
        excluded_extensions=_string_list(options.get(SETTING_EXCLUDED_EXTENSIONS)),
        excluded_settings=_string_list(options.get(SETTING_EXCLUDED_SETTINGS)),
        separate_keybindings=bool(options.get(SETTING_SEPARATE_KEYBINDINGS, True)),
        auto_update_extensions=bool(options.get(SETTING_EXTENSIONS_AUTOUPDATE, False)),
    )


def save_syncing_config(syncing_path: Path, config: SyncingConfig) -> None:
    """Save the engine-private part of the configuration to ``syncing.json``."""
    syncing_path.parent.mkdir(parents=True, exist_ok=True)
    syncing_path.write_text(
        json.dumps(config.to_syncing_json(), indent=4),
        encoding="utf-8",
    )


def clear_token(syncing_path: Path, config: SyncingConfig) -> None:
    """Forget the GitHub token (after the server rejected it)."""
    config.token = ""
    save_syncing_config(syncing_path, config)


def clear_gist_id(syncing_path: Path, config: SyncingConfig) -> None:
    """Forget the gist id (after the server did not find it)."""
    config.gist_id = ""
    save_syncing_config(syncing_path, config)
