"""Exclusion and merge of editor settings.

Users keep some settings local by listing glob patterns in
``syncing.excludedSettings``. Those keys are stripped before an upload and
restored from the local copy after a download. Both operations edit the
settings text in place so comments and formatting survive.
"""

from __future__ import annotations

import logging
from typing import Any

from editorsync.core import jsonc
from editorsync.core.config import SETTING_EXCLUDED_SETTINGS
from editorsync.core.patterns import match_any

logger = logging.getLogger(__name__)

FORMAT_ON_SAVE = "editor.formatOnSave"

_MISSING = object()


def format_on_save(parsed: Any) -> bool | None:
    """Get the document's own ``editor.formatOnSave`` flag.

    Looked up in ``[json]``, then ``[jsonc]``, then at the top level.

    Returns:
        The flag, or None when no level declares it.
    """
    if not isinstance(parsed, dict):
        return None
    for scope in ("[json]", "[jsonc]"):
        section = parsed.get(scope)
        if isinstance(section, dict) and section.get(FORMAT_ON_SAVE) is not None:
            return bool(section[FORMAT_ON_SAVE])
    value = parsed.get(FORMAT_ON_SAVE)
    return None if value is None else bool(value)


def get_excluded_keys(parsed: Any, patterns: list[str]) -> list[str]:
    """Get the sorted top-level keys matching any of the patterns."""
    if not isinstance(parsed, dict) or not patterns:
        return []
    return sorted(key for key in parsed if match_any(key, patterns))


def declared_patterns(parsed: Any) -> list[str]:
    """Get the ``syncing.excludedSettings`` patterns declared by a document."""
    if not isinstance(parsed, dict):
        return []
    patterns = parsed.get(SETTING_EXCLUDED_SETTINGS)
    if not isinstance(patterns, list):
        return []
    return [p for p in patterns if isinstance(p, str)]


def _finish(text: str, modified: bool, parsed: Any) -> str:
    if modified and format_on_save(parsed) is not False:
        return jsonc.format(text)
    return text


def exclude(text: str, parsed: Any, patterns: list[str]) -> str:
    """Remove the top-level keys matching the patterns.

    Args:
        text: Settings text.
        parsed: Parsed form of ``text``.
        patterns: Glob patterns of keys to remove.

    Returns:
        The edited text, reformatted when something was removed and the
        document does not disable ``editor.formatOnSave``.
    """
    if not text or not isinstance(parsed, dict):
        return text

    result = text
    modified = False
    for key in get_excluded_keys(parsed, patterns):
        edited = jsonc.modify(result, key, jsonc.REMOVE)
        if edited != result:
            modified = True
            result = edited
    if modified:
        logger.debug("Excluded settings matching %s", patterns)
    return _finish(result, modified, parsed)


def merge(source_text: str, dest_text: str) -> str:
    """Restore the destination's values for the source's excluded keys.

    The patterns come from the source's own ``syncing.excludedSettings``.
    Every matching key of either document takes the destination's value in
    the source text; a key absent from the destination is removed.

    Args:
        source_text: Incoming settings (e.g. the remote copy).
        dest_text: Settings whose excluded values win (e.g. the local copy).

    Returns:
        The edited source text.
    """
    source = jsonc.parse(source_text)
    dest = jsonc.parse(dest_text)
    if not isinstance(source, dict) or not isinstance(dest, dict):
        return source_text

    patterns = declared_patterns(source)
    keys = sorted(set(get_excluded_keys(source, patterns)) | set(get_excluded_keys(dest, patterns)))

    result = source_text
    modified = False
    for key in keys:
        dest_value = dest.get(key, _MISSING)
        source_value = source.get(key, _MISSING)
        if dest_value is source_value:
            continue
        if dest_value is not _MISSING and source_value is not _MISSING and dest_value == source_value:
            continue
        edited = jsonc.modify(result, key, jsonc.REMOVE if dest_value is _MISSING else dest_value)
        if edited != result:
            modified = True
            result = edited
    return _finish(result, modified, source)
