"""Core module - Shared types, configuration, JSONC editing and diffing."""

from editorsync.core.config import (
    SyncingConfig,
    clear_gist_id,
    clear_token,
    load_syncing_config,
    save_syncing_config,
)
from editorsync.core.diff import count, count_changes, diff
from editorsync.core.patterns import match_any, match_glob
from editorsync.core.types import (
    SETTING_KINDS,
    CaseInsensitiveDict,
    CaseInsensitiveSet,
    Extension,
    Setting,
    SettingKind,
)

__all__ = [
    # Config
    "SyncingConfig",
    "clear_gist_id",
    "clear_token",
    "load_syncing_config",
    "save_syncing_config",
    # Diff
    "count",
    "count_changes",
    "diff",
    # Patterns
    "match_any",
    "match_glob",
    # Types
    "SETTING_KINDS",
    "CaseInsensitiveDict",
    "CaseInsensitiveSet",
    "Extension",
    "Setting",
    "SettingKind",
]
