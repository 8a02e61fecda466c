"""Tests for structural diff and change counting."""

import pytest

from editorsync.core.diff import ARRAY_MARKER, count, count_changes, diff


class TestDiff:
    """Tests for delta computation."""

    def test_equal_values_have_no_delta(self) -> None:
        """Should return None for equal values."""
        assert diff({"a": [1, 2, {"b": True}]}, {"a": [1, 2, {"b": True}]}) is None

    def test_object_added_modified_deleted(self) -> None:
        """Should encode object changes like jsondiffpatch."""
        delta = diff({"a": 1, "b": 2}, {"a": 3, "c": 4})

        assert delta == {"a": [1, 3], "b": [2, 0, 0], "c": [4]}

    def test_array_delta_has_marker(self) -> None:
        """Should flag array deltas with the marker key."""
        delta = diff([1, 2], [1, 2, 3])

        assert delta == {ARRAY_MARKER: "a", "2": [3]}

    def test_array_deleted_item(self) -> None:
        """Should key deleted items by their left index."""
        delta = diff(["a", "b", "c"], ["a", "c"])

        assert delta == {ARRAY_MARKER: "a", "_1": ["b", 0, 0]}

    def test_moved_item(self) -> None:
        """Should encode a reordered item as a move."""
        delta = diff([{"id": "x"}, {"id": "y"}], [{"id": "y"}, {"id": "x"}])

        assert delta is not None
        moves = [v for k, v in delta.items() if k.startswith("_")]
        assert moves == [["", 1, 3]] or moves == [["", 0, 3]]

    def test_bool_is_not_int(self) -> None:
        """Should treat True and 1 as different values."""
        assert diff({"a": True}, {"a": 1}) == {"a": [True, 1]}

    def test_type_change(self) -> None:
        """Should report a value whose type changed."""
        assert diff({"a": [1]}, {"a": {"b": 1}}) == {"a": [[1], {"b": 1}]}


class TestCount:
    """Tests for change counting."""

    @pytest.mark.parametrize(
        "value",
        [
            None,
            1,
            "text",
            [],
            {},
            {"a": [1, {"id": "x", "v": [1, 2]}], "b": None},
        ],
    )
    def test_same_value_counts_zero(self, value: object) -> None:
        """Should count nothing between a value and itself."""
        assert count(value, value) == 0

    def test_none_pair(self) -> None:
        """Should count nothing between two None values."""
        assert count(None, None) == 0

    def test_reorder_with_identity_counts_zero(self) -> None:
        """Should not count reordered identity-keyed objects."""
        left = [
            {"id": "a.b", "version": "1.0.0"},
            {"id": "c.d", "version": "2.0.0"},
            {"id": "e.f", "version": "3.0.0"},
        ]
        right = [left[2], left[0], left[1]]

        assert count(left, right) == 0

    def test_reorder_nested_field_counts_zero(self) -> None:
        """Should not count reordering inside a nested field."""
        left = {"extensions.json": [{"id": "a"}, {"id": "b"}], "x": 1}
        right = {"extensions.json": [{"id": "b"}, {"id": "a"}], "x": 1}

        assert count(left, right) == 0

    def test_reorder_strings_counts_zero(self) -> None:
        """Should not count reordered strings."""
        assert count(["x", "y", "z"], ["z", "x", "y"]) == 0

    def test_reorder_and_modify(self) -> None:
        """Should count the modification of a moved item."""
        left = [{"id": "a", "v": 1}, {"id": "b", "v": 1}]
        right = [{"id": "b", "v": 1}, {"id": "a", "v": 2}]

        assert count(left, right) == 1

    def test_counts_each_leaf(self) -> None:
        """Should count added, modified and deleted leaves."""
        left = {"a": 1, "b": 2, "c": {"d": 1}}
        right = {"a": 1, "b": 3, "c": {"e": 1}, "f": 0}

        # b modified, c.d deleted, c.e added, f added
        assert count(left, right) == 4

    def test_added_and_removed_array_items(self) -> None:
        """Should count array additions and deletions."""
        left = [{"id": "a"}, {"id": "b"}]
        right = [{"id": "b"}, {"id": "c"}, {"id": "d"}]

        assert count(left, right) == 3

    def test_objects_without_identity_match_by_position(self) -> None:
        """Should compare objects without identity positionally."""
        assert count([{"key": None, "x": 1}], [{"key": None, "x": 2}]) == 1

    def test_marker_never_counts(self) -> None:
        """Should skip the array marker key."""
        assert count_changes({ARRAY_MARKER: "a"}) == 0

    def test_move_counts_zero(self) -> None:
        """Should not count a move encoding."""
        assert count_changes({ARRAY_MARKER: "a", "_0": ["", 2, 3]}) == 0

    def test_keybindings_by_key(self) -> None:
        """Should identify keybindings by their key."""
        left = [{"key": "ctrl+a", "command": "x"}, {"key": "ctrl+b", "command": "y"}]
        right = list(reversed(left))

        assert count(left, right) == 0
