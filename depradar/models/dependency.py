"""
Dependency data models for depradar.

These records flow through the version-check pipeline:

    DependencyEntry  →  ParsedVersion  →  DependencyResult

All of them live for a single check; nothing here is persisted.
"""

from __future__ import annotations

from enum import Enum
from dataclasses import dataclass
from typing import Any, Dict, Optional


def pick_target(latest: str, latest_stable: Optional[str]) -> str:
    """Prefer the stable release as the comparison baseline when it differs."""
    if latest_stable and latest_stable != latest:
        return latest_stable
    return latest


class Status(str, Enum):
    """Freshness of a declared dependency relative to the registry."""

    CURRENT = "current"
    OUTDATED = "outdated"
    MAJOR = "major"

    @property
    def rank(self) -> int:
        """Sort rank: major first, then outdated, then current."""
        return _STATUS_RANK[self]


_STATUS_RANK: Dict[Status, int] = {
    Status.MAJOR: 0,
    Status.OUTDATED: 1,
    Status.CURRENT: 2,
}


@dataclass(frozen=True)
class DependencyEntry:
    """One declared dependency as written in a manifest.

    Attributes:
        name: Package name in the ecosystem's own spelling.
        raw_specifier: Version specifier exactly as declared.
    """

    name: str
    raw_specifier: str

    def __str__(self) -> str:
        return f"{self.name} {self.raw_specifier}".strip()


@dataclass(frozen=True)
class ParsedVersion:
    """A specifier reduced to a bare comparable version.

    Attributes:
        original: Specifier as declared (``"^1.2.0"``).
        cleaned: Comparable version (``"1.2.0"``).
        is_range: Whether ``original`` carried a range operator.
        range_operator: The stripped operator run, empty when none.
    """

    original: str
    cleaned: str
    is_range: bool = False
    range_operator: str = ""


@dataclass
class DependencyResult:
    """Outcome of checking one dependency against its registry.

    Attributes:
        name: Package name.
        current_version: Raw specifier from the manifest.
        latest_version: Newest version the registry reports.
        latest_stable: Newest non-prerelease version, if any.
        status: Classification of ``current_version``.
        is_prerelease: Whether ``latest_version`` is a prerelease.
        license: License identifier reported by the registry.
        last_update: Publish timestamp of the latest version (ISO 8601).
        maintainers_count: Number of maintainers/authors, when known.
    """

    name: str
    current_version: str
    latest_version: str
    latest_stable: Optional[str]
    status: Status
    is_prerelease: bool = False
    license: Optional[str] = None
    last_update: Optional[str] = None
    maintainers_count: Optional[int] = None

    @property
    def target_version(self) -> str:
        """Version the status was computed against."""
        return pick_target(self.latest_version, self.latest_stable)

    def to_json(self) -> Dict[str, Any]:
        """Return a JSON-safe dict with camelCase keys."""
        return {
            "name": self.name,
            "currentVersion": self.current_version,
            "latestVersion": self.latest_version,
            "latestStable": self.latest_stable,
            "status": self.status.value,
            "isPrerelease": self.is_prerelease,
            "license": self.license,
            "lastUpdate": self.last_update,
            "maintainersCount": self.maintainers_count,
        }

    def __str__(self) -> str:
        return (
            f"{self.name} {self.current_version} → "
            f"{self.target_version} ({self.status.value})"
        )
