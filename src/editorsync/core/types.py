"""Shared types for editorsync.

This module defines the setting kinds, the Setting and Extension records,
and case-insensitive collections used for extension ids.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, MutableMapping
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, TypeVar

V = TypeVar("V")


class SettingKind(str, Enum):
    """Kind of a synchronized editor setting."""

    SETTINGS = "settings"
    KEYBINDINGS = "keybindings"
    LOCALE = "locale"
    SNIPPETS = "snippets"
    EXTENSIONS = "extensions"


# Processing order for both directions. Extensions must stay last so that
# a partial failure never leaves extensions ahead of settings.
SETTING_KINDS: tuple[SettingKind, ...] = (
    SettingKind.SETTINGS,
    SettingKind.KEYBINDINGS,
    SettingKind.LOCALE,
    SettingKind.SNIPPETS,
    SettingKind.EXTENSIONS,
)


@dataclass
class Setting:
    """A local settings file and its remote counterpart.

    Attributes:
        kind: Kind of setting.
        local_path: Full path of the local file.
        remote_name: Filename in the gist.
        content: File content, None until loaded (or when loading failed).
        last_modified: Remote revision timestamp recorded after a download.
    """

    kind: SettingKind
    local_path: Path
    remote_name: str
    content: str | None = None
    last_modified: float | None = None

    @property
    def identity(self) -> tuple[SettingKind, str]:
        """Identity of the setting."""
        return (self.kind, self.remote_name)

    def with_content(self, content: str | None) -> Setting:
        """Return a copy carrying the given content."""
        return replace(self, content=content)


@dataclass
class Extension:
    """An editor extension, as listed in ``extensions.json``.

    Attributes:
        id: Identifier in the form ``publisher.name``.
        name: Extension name.
        publisher: Publisher name.
        version: Version string.
        uuid: Marketplace identifier, if known.
        download_url: Package URL resolved from the marketplace.
        archive_path: Downloaded package path (set by the installer).
        metadata: Marketplace ``__metadata`` restored on install.
        path: Installed directory (local extensions only).
    """

    id: str
    name: str = ""
    publisher: str = ""
    version: str = ""
    uuid: str | None = None
    download_url: str | None = None
    archive_path: Path | None = None
    metadata: dict[str, Any] | None = None
    path: Path | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if self.id and not (self.publisher and self.name) and "." in self.id:
            publisher, _, name = self.id.partition(".")
            self.publisher = self.publisher or publisher
            self.name = self.name or name

    @property
    def key(self) -> str:
        """Case-insensitive identity used for comparisons."""
        return self.id.lower()

    @property
    def directory_name(self) -> str:
        """Name of the versioned install directory."""
        return f"{self.publisher}.{self.name}-{self.version}"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Extension:
        """Create from an ``extensions.json`` entry."""
        metadata = data.get("__metadata")
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            publisher=str(data.get("publisher", "")),
            version=str(data.get("version", "")),
            uuid=data.get("uuid") or None,
            metadata=metadata if isinstance(metadata, dict) else None,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to an ``extensions.json`` entry."""
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "publisher": self.publisher,
            "version": self.version,
        }
        if self.uuid:
            data["uuid"] = self.uuid
        if self.metadata:
            data["__metadata"] = self.metadata
        return data

    def __str__(self) -> str:
        return f"{self.id}@{self.version}"


class CaseInsensitiveSet:
    """Set of strings compared case-insensitively."""

    def __init__(self, values: Iterable[str] = ()) -> None:
        self._values: set[str] = {value.lower() for value in values}

    def add(self, value: str) -> None:
        self._values.add(value.lower())

    def __contains__(self, value: object) -> bool:
        return isinstance(value, str) and value.lower() in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)


class CaseInsensitiveDict(MutableMapping[str, V]):
    """Mapping with string keys compared case-insensitively."""

    def __init__(self, items: Iterable[tuple[str, V]] = ()) -> None:
        self._data: dict[str, V] = {}
        for key, value in items:
            self[key] = value

    def __getitem__(self, key: str) -> V:
        return self._data[key.lower()]

    def __setitem__(self, key: str, value: V) -> None:
        self._data[key.lower()] = value

    def __delitem__(self, key: str) -> None:
        del self._data[key.lower()]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)
