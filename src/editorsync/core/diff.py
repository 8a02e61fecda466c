"""Structural diff of JSON-like values and change counting.

The delta format follows jsondiffpatch so that deltas stay readable in logs:

- ``[new]``: value added
- ``[old, new]``: value modified
- ``[old, 0, 0]``: value deleted
- ``["", new_index, 3]``: array item moved
- ``{"_t": "a", ...}``: array delta; keys are right-side indices for
  added/changed items and ``_<left index>`` for deleted/moved ones
- ``{key: delta, ...}``: object delta

Array items are matched by identity (``id`` or ``key`` of objects, the value
itself for strings and other scalars). Objects without identity only match
the object at the same position.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

ARRAY_MARKER = "_t"
ARRAY_MARKER_VALUE = "a"

DELETED = 0
MOVED = 3

Delta = Any
ObjectHash = Callable[[Any], Any]


def default_object_hash(item: Any) -> Any:
    """Identity of an array item: ``id`` first, then ``key``."""
    if isinstance(item, str):
        return item
    if isinstance(item, dict):
        if item.get("id") is not None:
            return item["id"]
        return item.get("key")
    return None


def _equal(left: Any, right: Any) -> bool:
    # bool is an int subclass; JSON keeps them apart
    if isinstance(left, bool) or isinstance(right, bool):
        return type(left) is type(right) and left == right
    if isinstance(left, (dict, list)) or isinstance(right, (dict, list)):
        return False
    return bool(left == right)


class _Differ:
    def __init__(self, object_hash: ObjectHash) -> None:
        self._hash = object_hash

    def diff(self, left: Any, right: Any) -> Delta | None:
        if isinstance(left, dict) and isinstance(right, dict):
            return self._diff_objects(left, right)
        if isinstance(left, list) and isinstance(right, list):
            return self._diff_arrays(left, right)
        if _equal(left, right):
            return None
        return [left, right]

    def _diff_objects(self, left: dict[str, Any], right: dict[str, Any]) -> Delta | None:
        delta: dict[str, Any] = {}
        for key, value in left.items():
            if key in right:
                child = self.diff(value, right[key])
                if child is not None:
                    delta[key] = child
            else:
                delta[key] = [value, DELETED, DELETED]
        for key, value in right.items():
            if key not in left:
                delta[key] = [value]
        return delta or None

    def _match(self, left: Any, right: Any, left_index: int, right_index: int) -> bool:
        if isinstance(left, (dict, list)) and isinstance(right, (dict, list)):
            left_hash = self._hash(left)
            right_hash = self._hash(right)
            if left_hash is not None and right_hash is not None:
                return bool(left_hash == right_hash)
            return left_index == right_index
        if isinstance(left, (dict, list)) or isinstance(right, (dict, list)):
            return False
        return _equal(left, right)

    def _diff_arrays(self, left: list[Any], right: list[Any]) -> Delta | None:
        delta: dict[str, Any] = {}
        len_left, len_right = len(left), len(right)

        head = 0
        while (
            head < len_left
            and head < len_right
            and self._match(left[head], right[head], head, head)
        ):
            self._nested(delta, left[head], right[head], head)
            head += 1

        tail = 0
        while (
            head + tail < len_left
            and head + tail < len_right
            and self._match(
                left[len_left - 1 - tail],
                right[len_right - 1 - tail],
                len_left - 1 - tail,
                len_right - 1 - tail,
            )
        ):
            self._nested(
                delta,
                left[len_left - 1 - tail],
                right[len_right - 1 - tail],
                len_right - 1 - tail,
            )
            tail += 1

        left_indices = list(range(head, len_left - tail))
        right_indices = list(range(head, len_right - tail))
        pairs = self._lcs(left, right, left_indices, right_indices)
        matched_left = {i for i, _ in pairs}
        matched_right = {j for _, j in pairs}
        for i, j in pairs:
            self._nested(delta, left[i], right[j], j)

        added = [j for j in right_indices if j not in matched_right]
        for i in left_indices:
            if i in matched_left:
                continue
            target = next(
                (j for j in added if self._match(left[i], right[j], i, j)),
                None,
            )
            if target is None:
                delta[f"_{i}"] = [left[i], DELETED, DELETED]
            else:
                added.remove(target)
                delta[f"_{i}"] = ["", target, MOVED]
                self._nested(delta, left[i], right[target], target)

        for j in added:
            delta[str(j)] = [right[j]]

        if not delta:
            return None
        delta[ARRAY_MARKER] = ARRAY_MARKER_VALUE
        return delta

    def _nested(self, delta: dict[str, Any], left: Any, right: Any, index: int) -> None:
        child = self.diff(left, right)
        if child is not None:
            delta[str(index)] = child

    def _lcs(
        self,
        left: list[Any],
        right: list[Any],
        left_indices: list[int],
        right_indices: list[int],
    ) -> list[tuple[int, int]]:
        """Longest common subsequence of the untrimmed middle parts."""
        rows, cols = len(left_indices), len(right_indices)
        if rows == 0 or cols == 0:
            return []

        table = [[0] * (cols + 1) for _ in range(rows + 1)]
        for r in range(rows - 1, -1, -1):
            for c in range(cols - 1, -1, -1):
                i, j = left_indices[r], right_indices[c]
                if self._match(left[i], right[j], i, j):
                    table[r][c] = table[r + 1][c + 1] + 1
                else:
                    table[r][c] = max(table[r + 1][c], table[r][c + 1])

        pairs: list[tuple[int, int]] = []
        r = c = 0
        while r < rows and c < cols:
            i, j = left_indices[r], right_indices[c]
            if self._match(left[i], right[j], i, j):
                pairs.append((i, j))
                r += 1
                c += 1
            elif table[r + 1][c] >= table[r][c + 1]:
                r += 1
            else:
                c += 1
        return pairs


def diff(
    left: Any,
    right: Any,
    object_hash: ObjectHash = default_object_hash,
) -> Delta | None:
    """Compute the structural delta between two JSON-like values.

    Args:
        left: Original value.
        right: New value.
        object_hash: Identity extractor for array items.

    Returns:
        The delta, or None when both values are equal.
    """
    return _Differ(object_hash).diff(left, right)


def count_changes(delta: Delta | None, changes: int = 0) -> int:
    """Count the atomic changes recorded in a delta.

    Added, modified and deleted values count one each; moving an item inside
    an array is not a change.
    """
    if delta is None:
        return changes

    if isinstance(delta, list):
        length = len(delta)
        if length in (1, 2) or (length == 3 and delta[2] == DELETED):
            changes += 1
    elif isinstance(delta, dict):
        for key, child in delta.items():
            if key != ARRAY_MARKER:
                changes = count_changes(child, changes)

    return changes


def count(left: Any, right: Any, object_hash: ObjectHash = default_object_hash) -> int:
    """Count the differences between two JSON-like values."""
    return count_changes(diff(left, right, object_hash))
