"""Client for the extension marketplace gallery API.

Used to find the latest version of each extension that is compatible with
the local editor version, and where to download its package.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any

import httpx
from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.version import InvalidVersion, Version

from editorsync.core.types import CaseInsensitiveDict

logger = logging.getLogger(__name__)

GALLERY_URL = "https://marketplace.visualstudio.com/_apis/public/gallery"

ENGINE_PROPERTY = "Microsoft.VisualStudio.Code.Engine"
VSIX_ASSET = "Microsoft.VisualStudio.Services.VSIXPackage"

# Filter by "publisher.name"
_FILTER_EXTENSION_NAME = 7

# IncludeVersions | IncludeFiles | IncludeVersionProperties | ExcludeNonValidated | IncludeAssetUri
_QUERY_FLAGS = 0x1 | 0x2 | 0x10 | 0x20 | 0x80

_VERSION_PREFIX = re.compile(r"\d+(?:\.\d+)*")


@dataclass
class ExtensionVersion:
    """A published version of an extension."""

    version: str
    engine: str | None = None
    vsix_url: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExtensionVersion:
        """Create from a gallery response entry."""
        engine = next(
            (p.get("value") for p in data.get("properties") or [] if p.get("key") == ENGINE_PROPERTY),
            None,
        )
        vsix_url = next(
            (f.get("source") for f in data.get("files") or [] if f.get("assetType") == VSIX_ASSET),
            None,
        )
        return cls(version=str(data.get("version", "")), engine=engine, vsix_url=vsix_url)


@dataclass
class ExtensionMeta:
    """Marketplace metadata of an extension.

    Attributes:
        id: ``publisher.name``.
        uuid: Marketplace identifier.
        versions: Published versions, newest first.
    """

    id: str
    uuid: str = ""
    versions: list[ExtensionVersion] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExtensionMeta:
        """Create from a gallery response entry."""
        publisher = (data.get("publisher") or {}).get("publisherName", "")
        return cls(
            id=f"{publisher}.{data.get('extensionName', '')}",
            uuid=data.get("extensionId", ""),
            versions=[ExtensionVersion.from_dict(v) for v in data.get("versions") or []],
        )

    def latest_compatible(self, host_version: str | None) -> ExtensionVersion | None:
        """Get the newest version whose engine constraint accepts the host."""
        for version in self.versions:
            if host_version is None or is_engine_compatible(version.engine, host_version):
                return version
        return None


def _parse_version(value: str) -> Version | None:
    match = _VERSION_PREFIX.search(value)
    if not match:
        return None
    try:
        return Version(match.group(0))
    except InvalidVersion:
        return None


def is_engine_compatible(constraint: str | None, host_version: str) -> bool:
    """Check an ``engines.vscode`` constraint against the host version.

    Supports ``*``, caret and tilde ranges, and comparison operators.
    """
    host = _parse_version(host_version)
    if host is None:
        return False
    constraint = (constraint or "*").strip()
    if constraint in ("*", "", "x"):
        return True

    if constraint[0] in "^~":
        base = _parse_version(constraint[1:])
        if base is None:
            return False
        parts = list(base.release) + [0, 0]
        major, minor = parts[0], parts[1]
        if constraint[0] == "~" or major == 0:
            upper = f"{major}.{minor + 1}.0"
        else:
            upper = f"{major + 1}.0.0"
        return base <= host < Version(upper)

    if constraint[0].isdigit():
        base = _parse_version(constraint)
        return base is not None and host >= base

    try:
        return host in SpecifierSet(constraint.replace(" ", ","))
    except InvalidSpecifier:
        logger.debug("Unsupported engine constraint %r", constraint)
        return False


class MarketplaceClient:
    """HTTP client for the extension gallery."""

    def __init__(
        self,
        proxy: str | None = None,
        base_url: str = GALLERY_URL,
        timeout: float = 8.0,
    ) -> None:
        """Initialize the marketplace client.

        Args:
            proxy: Proxy URL.
            base_url: Gallery API URL.
            timeout: Request timeout in seconds.
        """
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers={"Accept": "application/json;api-version=3.0-preview.1"},
            proxy=proxy or None,
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> MarketplaceClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def query_extensions(self, ids: list[str]) -> CaseInsensitiveDict[ExtensionMeta]:
        """Query the metadata of extensions.

        Args:
            ids: Extension ids (``publisher.name``).

        Returns:
            Metadata keyed case-insensitively by id. Empty when the gallery
            cannot be reached.
        """
        result: CaseInsensitiveDict[ExtensionMeta] = CaseInsensitiveDict()
        if not ids:
            return result

        payload = {
            "filters": [
                {
                    "criteria": [
                        {"filterType": _FILTER_EXTENSION_NAME, "value": ext_id} for ext_id in ids
                    ],
                    "pageSize": max(len(ids), 10),
                }
            ],
            "flags": _QUERY_FLAGS,
        }
        try:
            response = self._client.post("/extensionquery", json=payload)
            response.raise_for_status()
            results = response.json().get("results") or []
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Cannot query the marketplace: %s", e)
            return result

        for entry in (results[0].get("extensions") or []) if results else []:
            meta = ExtensionMeta.from_dict(entry)
            result[meta.id] = meta
        return result
