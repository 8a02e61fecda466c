"""Tests for settings exclusion and merge."""

from editorsync.client.sync.settings_filter import (
    declared_patterns,
    exclude,
    format_on_save,
    get_excluded_keys,
    merge,
)
from editorsync.core import jsonc


class TestFormatOnSave:
    """Tests for format_on_save."""

    def test_json_scope_wins(self) -> None:
        """Should prefer the [json] scope over the top level."""
        parsed = {"[json]": {"editor.formatOnSave": False}, "editor.formatOnSave": True}
        assert format_on_save(parsed) is False

    def test_jsonc_scope(self) -> None:
        """Should fall back to the [jsonc] scope."""
        assert format_on_save({"[jsonc]": {"editor.formatOnSave": True}}) is True

    def test_top_level(self) -> None:
        """Should fall back to the top level."""
        assert format_on_save({"editor.formatOnSave": False}) is False

    def test_undeclared(self) -> None:
        """Should return None when nothing declares it."""
        assert format_on_save({}) is None
        assert format_on_save(None) is None


class TestExcludedKeys:
    """Tests for key and pattern lookup."""

    def test_sorted_matches(self) -> None:
        """Should return matching keys sorted."""
        parsed = {"editor.tabSize": 2, "workbench.colorTheme": "x", "editor.fontSize": 14}
        assert get_excluded_keys(parsed, ["editor.*"]) == ["editor.fontSize", "editor.tabSize"]

    def test_declared_patterns(self) -> None:
        """Should keep string patterns only."""
        parsed = {"syncing.excludedSettings": ["editor.*", 3, "a"]}
        assert declared_patterns(parsed) == ["editor.*", "a"]
        assert declared_patterns({"syncing.excludedSettings": "editor.*"}) == []


class TestExclude:
    """Tests for exclude."""

    def test_removes_matching_keys(self) -> None:
        """Should strip excluded keys and keep comments."""
        text = '{\n    // font\n    "editor.fontSize": 14,\n    "files.autoSave": "off"\n}\n'

        result = exclude(text, jsonc.parse(text), ["editor.*"])

        assert jsonc.parse(result) == {"files.autoSave": "off"}
        assert "// font" in result

    def test_nothing_matches(self) -> None:
        """Should return the text unchanged."""
        text = '{"a":1}'
        assert exclude(text, jsonc.parse(text), ["editor.*"]) == text

    def test_formats_after_removal(self) -> None:
        """Should reformat the edited text by default."""
        text = '{"a":1,"b":2}'

        result = exclude(text, jsonc.parse(text), ["b"])

        assert result == '{\n    "a": 1\n}\n'

    def test_format_on_save_disabled(self) -> None:
        """Should not reformat when the document disables formatOnSave."""
        text = '{"editor.formatOnSave": false, "a": 1, "b": 2}'

        result = exclude(text, jsonc.parse(text), ["b"])

        assert jsonc.parse(result) == {"editor.formatOnSave": False, "a": 1}
        assert result != jsonc.format(result)

    def test_unparseable(self) -> None:
        """Should leave text that is not an object untouched."""
        assert exclude("[1]", [1], ["*"]) == "[1]"

    def test_idempotent(self) -> None:
        """Should not change already excluded text."""
        text = '{"editor.a": 1, "b": 2}'
        once = exclude(text, jsonc.parse(text), ["editor.*"])

        assert exclude(once, jsonc.parse(once), ["editor.*"]) == once


class TestMerge:
    """Tests for merge."""

    def test_restores_local_values(self) -> None:
        """Should keep local values for excluded keys."""
        remote = (
            '{\n    "syncing.excludedSettings": ["editor.*"],\n'
            '    "editor.fontSize": 20,\n    "workbench.colorTheme": "Dark"\n}\n'
        )
        local = '{\n    "editor.fontSize": 14,\n    "editor.tabSize": 2,\n    "workbench.colorTheme": "Light"\n}\n'

        result = jsonc.parse(merge(remote, local))

        assert result == {
            "syncing.excludedSettings": ["editor.*"],
            "editor.fontSize": 14,
            "editor.tabSize": 2,
            "workbench.colorTheme": "Dark",
        }

    def test_removes_keys_missing_locally(self) -> None:
        """Should drop an excluded key the local copy does not have."""
        remote = '{"syncing.excludedSettings": ["editor.*"], "editor.fontSize": 20, "a": 1}'

        result = jsonc.parse(merge(remote, '{"a": 5}'))

        assert result == {"syncing.excludedSettings": ["editor.*"], "a": 1}

    def test_equal_values_untouched(self) -> None:
        """Should not rewrite the text when nothing differs."""
        remote = '{"syncing.excludedSettings": ["editor.*"], "editor.fontSize": 14}'

        assert merge(remote, '{"editor.fontSize": 14}') == remote

    def test_no_declared_patterns(self) -> None:
        """Should take the source as-is without patterns."""
        remote = '{"editor.fontSize": 20}'
        assert merge(remote, '{"editor.fontSize": 14}') == remote

    def test_exclude_then_merge_restores_local(self) -> None:
        """Should give back the local document after a round trip through the gist."""
        local = (
            '{\n    "syncing.excludedSettings": ["editor.*"],\n'
            '    "editor.fontSize": 14,\n    "files.autoSave": "off"\n}\n'
        )
        uploaded = exclude(local, jsonc.parse(local), ["editor.*"])

        assert jsonc.parse(merge(uploaded, local)) == jsonc.parse(local)

    def test_invalid_documents(self) -> None:
        """Should return the source when either side cannot be parsed."""
        assert merge("not json", "{}") == "not json"
        assert merge('{"a": 1}', "oops") == '{"a": 1}'
