"""Extension set reconciliation.

This module provides:
- ExtensionPlan: Extensions to add, update and remove
- ExtensionReconciler: Computes a plan from the desired and installed
  extensions and applies it through the installer
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace

from packaging.version import InvalidVersion, Version

from editorsync.client.marketplace import ExtensionMeta
from editorsync.client.sync.installer import ExtensionInstaller
from editorsync.client.sync.types import InstallError, PhaseResult, ProgressCallback, SyncResult
from editorsync.core.patterns import match_any
from editorsync.core.types import CaseInsensitiveDict, CaseInsensitiveSet, Extension

logger = logging.getLogger(__name__)

# (ids) -> metadata keyed case-insensitively by id
MetadataQuery = Callable[[list[str]], Mapping[str, ExtensionMeta]]


@dataclass
class ExtensionPlan:
    """What a reconciliation will do."""

    added: list[Extension] = field(default_factory=list)
    updated: list[Extension] = field(default_factory=list)
    removed: list[Extension] = field(default_factory=list)

    @property
    def total(self) -> int:
        """Number of planned operations."""
        return len(self.added) + len(self.updated) + len(self.removed)

    @property
    def is_empty(self) -> bool:
        return self.total == 0


def is_not_newer(desired: str, installed: str) -> bool:
    """Check if a desired version is not newer than the installed one."""
    try:
        return Version(desired) <= Version(installed)
    except InvalidVersion:
        return desired == installed


class ExtensionReconciler:
    """Reconciles the installed extensions with a desired list."""

    def __init__(
        self,
        installer: ExtensionInstaller,
        host_version: str | None = None,
    ) -> None:
        """Initialize the reconciler.

        Args:
            installer: Installer performing the package operations.
            host_version: Editor version used to pick compatible versions
                when upgrading; None accepts the newest version.
        """
        self._installer = installer
        self._host_version = host_version

    def _upgrade(self, desired: list[Extension], query: MetadataQuery) -> list[Extension]:
        metadata = query([ext.id for ext in desired])
        if not isinstance(metadata, CaseInsensitiveDict):
            metadata = CaseInsensitiveDict(metadata.items())

        result: list[Extension] = []
        for ext in desired:
            meta = metadata.get(ext.id)
            latest = meta.latest_compatible(self._host_version) if meta else None
            if latest is None:
                result.append(ext)
                continue
            if latest.version != ext.version:
                logger.debug("Upgrading %s to %s", ext, latest.version)
            result.append(
                replace(
                    ext,
                    version=latest.version,
                    download_url=latest.vsix_url,
                    uuid=ext.uuid or meta.uuid or None,  # type: ignore[union-attr]
                )
            )
        return result

    def plan(
        self,
        desired: list[Extension],
        local: list[Extension],
        exclude_patterns: list[str] | None = None,
        auto_update: bool = False,
        query: MetadataQuery | None = None,
    ) -> ExtensionPlan:
        """Compute the extensions to add, update and remove.

        Args:
            desired: Extensions that should be installed.
            local: Installed extensions.
            exclude_patterns: Glob patterns of ids never removed.
            auto_update: Upgrade desired extensions to their latest
                compatible version.
            query: Marketplace metadata lookup, required for auto_update.

        Returns:
            The plan; each list keeps the order of its source list.
        """
        if auto_update and query is not None and desired:
            desired = self._upgrade(desired, query)

        installed: CaseInsensitiveDict[Extension] = CaseInsensitiveDict(
            (ext.id, ext) for ext in local
        )
        plan = ExtensionPlan()
        kept = CaseInsensitiveSet()
        for ext in desired:
            current = installed.get(ext.id)
            if current is None:
                plan.added.append(ext)
            elif is_not_newer(ext.version, current.version):
                kept.add(ext.id)
            else:
                plan.updated.append(ext)
                kept.add(ext.id)

        patterns = exclude_patterns or []
        plan.removed = [
            ext for ext in local
            if ext.id not in kept and not match_any(ext.id, patterns)
        ]
        return plan

    def apply(self, plan: ExtensionPlan, on_progress: ProgressCallback | None = None) -> SyncResult:
        """Apply a plan: add, then update, then remove, one item at a time.

        Failures are recorded per item and never stop the batch.
        """
        result = SyncResult()
        total = plan.total
        step = 0

        def report(message: str) -> None:
            if on_progress is not None:
                on_progress(step, total, message)

        phases: list[tuple[list[Extension], PhaseResult[Extension], str, Callable[[Extension], object]]] = [
            (plan.added, result.added, "Installing extension", self._installer.install),
            (plan.updated, result.updated, "Updating extension", self._installer.update),
            (plan.removed, result.removed, "Uninstalling extension", self._installer.uninstall),
        ]
        for items, phase, label, operation in phases:
            for ext in items:
                step += 1
                report(f"{label}: {ext.id}")
                try:
                    operation(ext)
                except InstallError as e:
                    logger.error("%s failed for %s: %s", label, ext, e)
                    phase.failed.append(ext)
                else:
                    phase.succeeded.append(ext)

        self._installer.update_obsolete(
            added=result.added.succeeded,
            updated=result.updated.succeeded,
            removed=result.removed.succeeded,
        )
        return result
