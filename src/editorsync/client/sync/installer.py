"""Extension package installer.

This module provides:
- ExtensionInstaller: Download, extract and uninstall extension packages
- list_installed_extensions: Read the extensions directory
"""

from __future__ import annotations

import json
import logging
import shutil
import tempfile
import zipfile
from collections.abc import Iterable
from pathlib import Path

import httpx

from editorsync.client.environment import OBSOLETE_FILE
from editorsync.client.sync.types import InstallError
from editorsync.core.types import Extension

logger = logging.getLogger(__name__)

# Folder holding the extension inside a .vsix package
PACKAGE_ROOT = "extension/"

DOWNLOAD_CHUNK_SIZE = 64 * 1024


def gallery_package_url(extension: Extension) -> str:
    """Default package URL of an extension version on the gallery CDN."""
    return (
        f"https://{extension.publisher}.gallery.vsassets.io/_apis/public/gallery/"
        f"publisher/{extension.publisher}/extension/{extension.name}/{extension.version}/"
        "assetbyname/Microsoft.VisualStudio.Services.VSIXPackage"
    )


def read_obsolete(extensions_dir: Path) -> dict[str, bool]:
    """Read the ``.obsolete`` file (folders pending removal)."""
    path = extensions_dir / OBSOLETE_FILE
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return {}
    return dict(data) if isinstance(data, dict) else {}


def list_installed_extensions(extensions_dir: Path) -> list[Extension]:
    """List the extensions installed in a directory.

    Folders marked in ``.obsolete`` and folders without a readable
    ``package.json`` are skipped. Ids are normalized to lower case.
    """
    if not extensions_dir.is_dir():
        return []

    obsolete = read_obsolete(extensions_dir)
    result: list[Extension] = []
    for folder in sorted(extensions_dir.iterdir()):
        if not folder.is_dir() or folder.name.startswith(".") or obsolete.get(folder.name):
            continue
        try:
            manifest = json.loads((folder / "package.json").read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.debug("Skipping %s: no readable package.json", folder)
            continue
        if not isinstance(manifest, dict) or manifest.get("isBuiltin"):
            continue

        publisher = str(manifest.get("publisher", "")).lower()
        name = str(manifest.get("name", "")).lower()
        if not publisher or not name:
            continue
        metadata = manifest.get("__metadata")
        uuid = metadata.get("id") if isinstance(metadata, dict) else None
        result.append(
            Extension(
                id=f"{publisher}.{name}",
                name=name,
                publisher=publisher,
                version=str(manifest.get("version", "")),
                uuid=uuid.lower() if isinstance(uuid, str) else None,
                path=folder,
            )
        )
    return result


class ExtensionInstaller:
    """Installs extension packages into the extensions directory."""

    def __init__(
        self,
        extensions_dir: Path,
        proxy: str | None = None,
        timeout: float = 60.0,
        client: httpx.Client | None = None,
    ) -> None:
        """Initialize the installer.

        Args:
            extensions_dir: Directory holding installed extensions.
            proxy: Proxy URL for package downloads.
            timeout: Download timeout in seconds.
            client: HTTP client to use instead of a new one.
        """
        self._extensions_dir = extensions_dir
        self._client = client or httpx.Client(
            timeout=timeout,
            proxy=proxy or None,
            follow_redirects=True,
        )

    @property
    def extensions_dir(self) -> Path:
        """Get the extensions directory."""
        return self._extensions_dir

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def installed(self) -> list[Extension]:
        """List installed extensions."""
        return list_installed_extensions(self._extensions_dir)

    def download(self, extension: Extension) -> Extension:
        """Download the package of an extension to a temporary file.

        Returns:
            The extension with ``archive_path`` set.

        Raises:
            InstallError: If the download fails.
        """
        url = extension.download_url or gallery_package_url(extension)
        fd, name = tempfile.mkstemp(suffix=f".{extension.id}.vsix")
        archive = Path(name)
        try:
            with open(fd, "wb") as f, self._client.stream("GET", url) as response:
                response.raise_for_status()
                for chunk in response.iter_bytes(DOWNLOAD_CHUNK_SIZE):
                    f.write(chunk)
        except (httpx.HTTPError, OSError) as e:
            archive.unlink(missing_ok=True)
            raise InstallError(f"Cannot download extension: {extension.id}. {e}") from e

        logger.debug("Downloaded %s to %s", extension, archive)
        return Extension(
            id=extension.id,
            name=extension.name,
            publisher=extension.publisher,
            version=extension.version,
            uuid=extension.uuid,
            download_url=url,
            archive_path=archive,
            metadata=extension.metadata,
        )

    def extract(self, extension: Extension) -> Path:
        """Unpack a downloaded package into its versioned directory.

        The marketplace metadata, when known, is written back into the
        installed ``package.json``. The archive is deleted afterwards.

        Returns:
            The installed directory.

        Raises:
            InstallError: If the archive is missing or cannot be unpacked.
        """
        archive = extension.archive_path
        if archive is None or not archive.exists():
            raise InstallError(f"Cannot extract extension: {extension.id}. Package not found.")

        target = self._extensions_dir / extension.directory_name
        try:
            with tempfile.TemporaryDirectory(suffix=f".{extension.id}") as tmp:
                with zipfile.ZipFile(archive) as package:
                    members = [m for m in package.namelist() if m.startswith(PACKAGE_ROOT)]
                    if not members:
                        raise InstallError(
                            f"Cannot extract extension: {extension.id}. Invalid package."
                        )
                    package.extractall(tmp, members)
                if target.exists():
                    shutil.rmtree(target)
                shutil.copytree(Path(tmp) / PACKAGE_ROOT.rstrip("/"), target)
        except (OSError, zipfile.BadZipFile) as e:
            raise InstallError(f"Cannot extract extension: {extension.id}. {e}") from e
        finally:
            archive.unlink(missing_ok=True)

        if extension.metadata:
            self._restore_metadata(target, extension)
        logger.info("Installed %s", extension)
        return target

    def _restore_metadata(self, target: Path, extension: Extension) -> None:
        manifest_path = target / "package.json"
        try:
            manifest = json.loads(manifest_path.read_text(encoding="utf-8"))
            manifest["__metadata"] = extension.metadata
            manifest_path.write_text(json.dumps(manifest, indent=4), encoding="utf-8")
        except (OSError, ValueError, TypeError) as e:
            logger.warning("Cannot restore metadata of %s: %s", extension.id, e)

    def uninstall(self, extension: Extension) -> None:
        """Delete the installed directory of an extension.

        Raises:
            InstallError: If the directory cannot be removed.
        """
        path = extension.path
        if path is None:
            installed = next((e for e in self.installed() if e.key == extension.key), None)
            path = installed.path if installed else self._extensions_dir / extension.directory_name
        try:
            if path is not None and path.exists():
                shutil.rmtree(path)
        except OSError as e:
            raise InstallError(f"Cannot uninstall extension: {extension.id}") from e
        logger.info("Uninstalled %s", extension.id)

    def install(self, extension: Extension) -> Path:
        """Download and unpack an extension."""
        return self.extract(self.download(extension))

    def update(self, extension: Extension, installed: Extension | None = None) -> Path:
        """Replace the installed version of an extension with another one."""
        downloaded = self.download(extension)
        try:
            self.uninstall(installed or extension)
        except InstallError:
            downloaded.archive_path.unlink(missing_ok=True)  # type: ignore[union-attr]
            raise
        return self.extract(downloaded)

    def update_obsolete(
        self,
        added: Iterable[Extension] = (),
        updated: Iterable[Extension] = (),
        removed: Iterable[Extension] = (),
    ) -> None:
        """Update the ``.obsolete`` file after a reconciliation.

        Installed folders are unmarked and removed folders are marked. The
        file is only touched when it already exists.
        """
        path = self._extensions_dir / OBSOLETE_FILE
        if not path.exists():
            return

        obsolete = read_obsolete(self._extensions_dir)
        for extension in [*added, *updated]:
            obsolete.pop(extension.directory_name, None)
        for extension in removed:
            obsolete[extension.directory_name] = True

        try:
            if obsolete:
                path.write_text(json.dumps(obsolete), encoding="utf-8")
            else:
                path.unlink()
        except OSError as e:
            logger.warning("Cannot update %s: %s", path, e)
