"""
Registry response models for depradar.

A :class:`RegistryVersionSet` is the ecosystem-neutral shape every
registry lookup is decoded into.  It is built for one lookup and thrown
away afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Optional


@dataclass(frozen=True)
class PublishedVersion:
    """A single version published to a registry.

    Attributes:
        version: Version string as published.
        prerelease: Registry or grammar marks it as a prerelease.
        yanked: Withdrawn (yanked, unlisted) by the publisher.
        deprecated: Flagged deprecated by the publisher.
        published_at: Publish timestamp (ISO 8601), when known.
    """

    version: str
    prerelease: bool = False
    yanked: bool = False
    deprecated: bool = False
    published_at: Optional[str] = None


@dataclass
class RegistryVersionSet:
    """Every version a registry publishes for one package.

    Attributes:
        name: Package name as queried.
        versions: Published versions in registry order.
        latest_tag: Version the registry itself labels as latest
            (npm ``dist-tags.latest``, PyPI ``info.version``), if any.
        license: License reported for the package.
        last_update: Timestamp of the most recent publish.
        maintainers_count: Number of maintainers or authors.
    """

    name: str
    versions: List[PublishedVersion] = field(default_factory=list)
    latest_tag: Optional[str] = None
    license: Optional[str] = None
    last_update: Optional[str] = None
    maintainers_count: Optional[int] = None

    def __iter__(self) -> Iterator[PublishedVersion]:
        return iter(self.versions)

    def __len__(self) -> int:
        return len(self.versions)

    @property
    def is_empty(self) -> bool:
        return not self.versions and not self.latest_tag

    def installable(self) -> List[PublishedVersion]:
        """Versions that are neither yanked nor unlisted."""
        return [v for v in self.versions if not v.yanked]

    def find(self, version: str) -> Optional[PublishedVersion]:
        """Return the entry for an exact version string."""
        for published in self.versions:
            if published.version == version:
                return published
        return None
