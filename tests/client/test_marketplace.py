"""Tests for the marketplace client."""

import pytest

from editorsync.client.marketplace import (
    ENGINE_PROPERTY,
    GALLERY_URL,
    VSIX_ASSET,
    ExtensionMeta,
    ExtensionVersion,
    MarketplaceClient,
    is_engine_compatible,
)


def gallery_entry(publisher: str, name: str, versions: list[tuple[str, str]]) -> dict:
    """Build an extension as returned by the gallery."""
    return {
        "extensionId": f"uuid-{name}",
        "extensionName": name,
        "publisher": {"publisherName": publisher},
        "versions": [
            {
                "version": version,
                "properties": [{"key": ENGINE_PROPERTY, "value": engine}],
                "files": [{"assetType": VSIX_ASSET, "source": f"https://cdn/{name}-{version}.vsix"}],
            }
            for version, engine in versions
        ],
    }


class TestIsEngineCompatible:
    """Tests for is_engine_compatible."""

    @pytest.mark.parametrize(
        ("constraint", "host", "expected"),
        [
            ("*", "1.60.0", True),
            (None, "1.60.0", True),
            ("^1.50.0", "1.60.0", True),
            ("^1.50.0", "1.49.2", False),
            ("^1.50.0", "2.0.0", False),
            ("^0.3.0", "0.3.5", True),
            ("^0.3.0", "0.4.0", False),
            ("~1.2.0", "1.2.9", True),
            ("~1.2.0", "1.3.0", False),
            (">=1.40.0", "1.41.0", True),
            (">=1.40.0 <1.50.0", "1.45.0", True),
            (">=1.40.0 <1.50.0", "1.50.0", False),
            ("1.40.0", "1.41.0", True),
            ("^1.60.0", "1.60.0-insider", True),
            ("^1.0.0", "not-a-version", False),
        ],
    )
    def test_constraints(self, constraint: str | None, host: str, expected: bool) -> None:
        """Should evaluate engine constraints against the host version."""
        assert is_engine_compatible(constraint, host) is expected


class TestExtensionMeta:
    """Tests for ExtensionMeta class."""

    def test_from_dict(self) -> None:
        """Should read id, uuid and versions."""
        meta = ExtensionMeta.from_dict(gallery_entry("ms-python", "python", [("2.0.0", "^1.60.0")]))

        assert meta.id == "ms-python.python"
        assert meta.uuid == "uuid-python"
        assert meta.versions == [
            ExtensionVersion("2.0.0", "^1.60.0", "https://cdn/python-2.0.0.vsix")
        ]

    def test_latest_compatible(self) -> None:
        """Should pick the first version accepting the host."""
        meta = ExtensionMeta.from_dict(
            gallery_entry("a", "b", [("3.0.0", "^1.80.0"), ("2.0.0", "^1.60.0"), ("1.0.0", "*")])
        )

        assert meta.latest_compatible("1.70.0").version == "2.0.0"  # type: ignore[union-attr]
        assert meta.latest_compatible(None).version == "3.0.0"  # type: ignore[union-attr]

    def test_no_compatible_version(self) -> None:
        """Should return None when no version fits."""
        meta = ExtensionMeta.from_dict(gallery_entry("a", "b", [("3.0.0", "^1.80.0")]))

        assert meta.latest_compatible("1.10.0") is None


class TestMarketplaceClient:
    """Tests for MarketplaceClient class."""

    def test_query_extensions(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should key results case-insensitively by id."""
        httpx_mock.add_response(
            url=f"{GALLERY_URL}/extensionquery",
            method="POST",
            json={"results": [{"extensions": [gallery_entry("MS-Python", "Python", [("1.0.0", "*")])]}]},
        )

        with MarketplaceClient() as client:
            result = client.query_extensions(["ms-python.python"])

        assert "ms-python.python" in result
        assert result["MS-PYTHON.PYTHON"].versions[0].version == "1.0.0"

    def test_query_failure_returns_empty(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should return an empty mapping when the gallery fails."""
        httpx_mock.add_response(url=f"{GALLERY_URL}/extensionquery", method="POST", status_code=500)

        with MarketplaceClient() as client:
            assert len(client.query_extensions(["a.b"])) == 0

    def test_query_nothing(self) -> None:
        """Should not call the gallery without ids."""
        with MarketplaceClient() as client:
            assert len(client.query_extensions([])) == 0
