"""Glob matching for exclusion patterns.

Patterns are matched case-sensitively against whole values, one path
segment at a time: ``*`` never crosses a ``/`` and ``**`` spans any number
of segments. Setting keys rarely contain ``/``, so in practice this behaves
like a plain glob over the key.
"""

from __future__ import annotations

from collections.abc import Iterable
from fnmatch import fnmatchcase


def _match_segments(parts: list[str], pattern: list[str]) -> bool:
    if not pattern:
        return not parts

    head, rest = pattern[0], pattern[1:]
    if head == "**":
        # Try to consume zero or more segments
        return any(_match_segments(parts[i:], rest) for i in range(len(parts) + 1))

    if not parts:
        return False
    return fnmatchcase(parts[0], head) and _match_segments(parts[1:], rest)


def match_glob(value: str, pattern: str) -> bool:
    """Check if a value matches a glob pattern.

    Args:
        value: Value to test (a setting key or an extension id).
        pattern: Glob pattern.

    Returns:
        True if the whole value matches.
    """
    if not pattern:
        return False
    return _match_segments(value.split("/"), pattern.split("/"))


def match_any(value: str, patterns: Iterable[str]) -> bool:
    """Check if a value matches any of the patterns."""
    return any(match_glob(value, pattern) for pattern in patterns)
