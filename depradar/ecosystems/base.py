"""
Common ecosystem adapter contract.

An :class:`Ecosystem` bundles everything that differs between packaging
ecosystems: how to read a manifest, which specifiers can be resolved, how
to normalize and compare versions, how to query the registry, and how to
choose the latest and latest-stable releases.  The check pipeline itself
(:class:`~depradar.core.checker.VersionChecker`) is ecosystem-neutral and
only calls the methods defined here.
"""

from __future__ import annotations

import fnmatch
from functools import cmp_to_key
from abc import ABC, abstractmethod
from typing import ClassVar, Dict, Iterable, List, Optional, Tuple

from depradar.core.classifier import classify_status
from depradar.core.ranges import RangeSet
from depradar.core.registry import RegistryClient
from depradar.core.specifier import (
    DEFAULT_OPERATORS,
    normalize_specifier,
    unsupported_reason,
)
from depradar.exceptions import RangeParseError
from depradar.models import (
    DependencyEntry,
    DependencyResult,
    ParsedVersion,
    RegistryVersionSet,
)
from depradar.utils.logger import get_logger
from depradar.utils import version_utils
from depradar.constants import MAX_SPECIFIER_LENGTH

logger = get_logger("ecosystems")


class Ecosystem(ABC):
    """Base class for ecosystem adapters.

    Subclasses set the class attributes and implement
    :meth:`parse_manifest` and :meth:`fetch_versions`; everything else has
    a sensible default built on the generic comparator.

    Attributes:
        name: Canonical ecosystem kind (``"npm"``, ``"python"`` …).
        display_name: Human-readable name.
        aliases: Other accepted kinds (``"pypi"``, ``"cargo"`` …).
        manifest_patterns: Glob patterns of manifest filenames.
        osv_ecosystem: Ecosystem name in the OSV schema, if OSV covers it.
        advisory_source: Which advisory database serves this ecosystem.
        operators: Characters stripped from the front of specifiers.
        coerce: Whether specifiers are coerced to ``x.y.z``.
        supports_ranges: Whether declared ranges can admit newer versions.
        max_specifier_length: Longest raw specifier accepted.
        timeout: Registry timeout override in seconds.
    """

    name: ClassVar[str] = ""
    display_name: ClassVar[str] = ""
    aliases: ClassVar[Tuple[str, ...]] = ()
    manifest_patterns: ClassVar[Tuple[str, ...]] = ()
    osv_ecosystem: ClassVar[Optional[str]] = None
    advisory_source: ClassVar[str] = "osv"
    operators: ClassVar[str] = DEFAULT_OPERATORS
    coerce: ClassVar[bool] = False
    supports_ranges: ClassVar[bool] = False
    max_specifier_length: ClassVar[int] = MAX_SPECIFIER_LENGTH
    timeout: ClassVar[Optional[float]] = None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"

    # ------------------------------------------------------------------
    # Manifest handling
    # ------------------------------------------------------------------

    @abstractmethod
    def parse_manifest(
        self,
        content: str,
        filename: Optional[str] = None,
    ) -> Dict[str, str]:
        """Return the declared ``{name: raw specifier}`` mapping.

        Raises:
            ManifestParseError: The manifest cannot be parsed at all.
        """

    def matches_manifest(self, filename: str) -> bool:
        """Return True if ``filename`` looks like one of this ecosystem's manifests."""
        base = filename.replace("\\", "/").rsplit("/", 1)[-1]
        return any(fnmatch.fnmatch(base, pattern) for pattern in self.manifest_patterns)

    def unsupported_reason(self, name: str, specifier: str) -> Optional[str]:
        """Explain why a dependency cannot be resolved, or return ``None``."""
        return unsupported_reason(specifier, max_length=self.max_specifier_length)

    def extract_entries(
        self,
        content: str,
        filename: Optional[str] = None,
    ) -> List[DependencyEntry]:
        """Parse a manifest and drop entries no registry can resolve."""
        entries: List[DependencyEntry] = []
        for name, specifier in self.parse_manifest(content, filename).items():
            reason = self.unsupported_reason(name, specifier)
            if reason:
                logger.debug("Skipping %s %r: %s", name, specifier, reason)
                continue
            entries.append(DependencyEntry(name=name, raw_specifier=specifier))
        return entries

    # ------------------------------------------------------------------
    # Versions
    # ------------------------------------------------------------------

    def normalize_specifier(self, specifier: str) -> Optional[ParsedVersion]:
        return normalize_specifier(specifier, operators=self.operators, coerce=self.coerce)

    def compare_versions(self, a: str, b: str) -> int:
        return version_utils.compare_versions(a, b)

    def major_version(self, version: str) -> int:
        return version_utils.major_version(version)

    def is_prerelease(self, version: str) -> bool:
        return version_utils.is_prerelease(version)

    def compile_range(self, specifier: str) -> Optional[RangeSet]:
        """Compile a declared range; ``None`` for ecosystems without ranges.

        Raises:
            RangeParseError: The specifier is not a valid range.
        """
        return None

    def highest(self, versions: Iterable[str]) -> Optional[str]:
        """Return the greatest version under this ecosystem's ordering."""
        candidates = list(versions)
        if not candidates:
            return None
        return max(candidates, key=cmp_to_key(self.compare_versions))

    def latest_version(self, version_set: RegistryVersionSet) -> Optional[str]:
        """The registry's latest tag, else the highest installable version."""
        if version_set.latest_tag:
            return version_set.latest_tag
        installable = [v.version for v in version_set.installable()]
        return self.highest(installable or [v.version for v in version_set])

    def latest_stable(self, version_set: RegistryVersionSet) -> Optional[str]:
        """The highest installable non-prerelease version, else the latest."""
        stable = [
            v.version
            for v in version_set.installable()
            if not v.prerelease and not self.is_prerelease(v.version)
        ]
        return self.highest(stable) or self.latest_version(version_set)

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    @abstractmethod
    async def fetch_versions(
        self,
        name: str,
        registry: RegistryClient,
    ) -> RegistryVersionSet:
        """Resolve ``name`` to every version its registry publishes.

        Raises:
            NetworkError: Any registry failure, including
                :class:`~depradar.exceptions.PackageNotFoundError`.
        """

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def build_result(
        self,
        entry: DependencyEntry,
        parsed: ParsedVersion,
        version_set: RegistryVersionSet,
    ) -> Optional[DependencyResult]:
        """Classify one dependency; ``None`` when the registry had no versions."""
        latest = self.latest_version(version_set)
        if latest is None:
            return None
        stable = self.latest_stable(version_set)

        declared: Optional[RangeSet] = None
        if self.supports_ranges:
            try:
                declared = self.compile_range(entry.raw_specifier)
            except RangeParseError as exc:
                logger.debug("Range shortcut unavailable for %s: %s", entry.name, exc)

        def admits(version: str) -> bool:
            return declared is not None and declared.contains(version, self.compare_versions)

        status = classify_status(
            parsed.cleaned,
            latest,
            stable,
            compare=self.compare_versions,
            major=self.major_version,
            admits=admits if declared else None,
        )

        published = version_set.find(latest)
        last_update = (
            published.published_at
            if published is not None and published.published_at
            else version_set.last_update
        )

        return DependencyResult(
            name=entry.name,
            current_version=entry.raw_specifier,
            latest_version=latest,
            latest_stable=stable,
            status=status,
            is_prerelease=self.is_prerelease(latest),
            license=version_set.license,
            last_update=last_update,
            maintainers_count=version_set.maintainers_count,
        )
