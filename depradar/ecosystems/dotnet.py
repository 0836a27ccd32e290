"""
.NET (NuGet) ecosystem adapter.

Package metadata comes from the NuGet v3 registration resource.  Its base
URL is discovered through the service index, which is cached for the
lifetime of the :class:`~depradar.core.registry.RegistryClient`.  Large
packages split their registration into pages; pages without inline
``items`` are fetched through their ``@id``.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import replace
from typing import Any, Dict, List, Optional

from depradar.core.ranges import parse_nuget_range
from depradar.core.registry import RegistryClient
from depradar.ecosystems.base import Ecosystem
from depradar.exceptions import ManifestParseError, RangeParseError, RegistryError
from depradar.models import ParsedVersion, PublishedVersion, RegistryVersionSet
from depradar.constants import NUGET_REGISTRATION_TYPE, NUGET_SERVICE_INDEX
from depradar.utils.logger import get_logger

logger = get_logger("ecosystems")


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def find_resource(index: Any, resource_type: str) -> Optional[str]:
    """Return the ``@id`` of the first service-index resource of a type.

    A versioned type (``RegistrationsBaseUrl/3.6.0``) falls back to any
    resource whose type starts with the unversioned name.
    """
    resources = index.get("resources") if isinstance(index, dict) else None
    if not isinstance(resources, list):
        return None

    base_type = resource_type.split("/", 1)[0]
    fallback: Optional[str] = None
    for resource in resources:
        if not isinstance(resource, dict) or not isinstance(resource.get("@id"), str):
            continue
        kind = str(resource.get("@type", ""))
        if kind == resource_type:
            return resource["@id"]
        if fallback is None and kind.split("/", 1)[0] == base_type:
            fallback = resource["@id"]
    return fallback


class DotnetEcosystem(Ecosystem):
    """``*.csproj`` (and other MSBuild project) manifests resolved against nuget.org."""

    name = "dotnet"
    display_name = ".NET"
    aliases = ("nuget", "csharp", "c#", "net")
    manifest_patterns = ("*.csproj", "*.fsproj", "*.vbproj", "Directory.Packages.props")
    osv_ecosystem = "NuGet"
    advisory_source = "nuget"

    def parse_manifest(
        self,
        content: str,
        filename: Optional[str] = None,
    ) -> Dict[str, str]:
        """Collect ``PackageReference`` items from an MSBuild project.

        Raises:
            ManifestParseError: The project is not well-formed XML.
        """
        try:
            root = ET.fromstring(content)
        except ET.ParseError as exc:
            raise ManifestParseError(
                f"Invalid XML: {exc}",
                ecosystem=self.name,
                file_path=filename,
                line_number=exc.position[0] if exc.position else None,
            ) from exc

        dependencies: Dict[str, str] = {}
        for element in root.iter():
            if _local_name(element.tag) not in ("PackageReference", "PackageVersion"):
                continue
            name = element.get("Include") or element.get("Update")
            version = element.get("Version")
            if version is None:
                for child in element:
                    if _local_name(child.tag) == "Version" and child.text:
                        version = child.text.strip()
                        break
            if name and version:
                dependencies[name] = version
        return dependencies

    def normalize_specifier(self, specifier: str) -> Optional[ParsedVersion]:
        """Normalize a version, reducing interval notation to its lower bound.

        ``[1.2.3]`` becomes ``1.2.3`` and ``[1.0,2.0)`` becomes ``1.0``.  An
        interval without a lower bound (``(,2.0]``) has no baseline and
        yields ``None``.
        """
        text = specifier.strip()
        if not text.startswith(("[", "(")):
            return super().normalize_specifier(specifier)

        try:
            interval = parse_nuget_range(text)
        except RangeParseError as exc:
            logger.debug("Cannot normalize NuGet interval %r: %s", specifier, exc)
            return None
        if interval.lower is None:
            return None

        parsed = super().normalize_specifier(interval.lower.version)
        if parsed is None:
            return None
        exact = interval.upper is not None and interval.upper.version == interval.lower.version
        return replace(parsed, original=specifier, is_range=not exact)

    def is_prerelease(self, version: str) -> bool:
        return "-" in version.split("+", 1)[0]

    async def _registration_base(self, registry: RegistryClient) -> str:
        index = await registry.get_cached_json(NUGET_SERVICE_INDEX)
        base = find_resource(index, NUGET_REGISTRATION_TYPE)
        if base is None:
            raise RegistryError(
                "NuGet service index has no registration resource",
                url=NUGET_SERVICE_INDEX,
            )
        return base.rstrip("/")

    async def _leaves(self, registration: Dict[str, Any], registry: RegistryClient) -> List[Any]:
        leaves: List[Any] = []
        pages = registration.get("items") if isinstance(registration.get("items"), list) else []
        for page in pages:
            if not isinstance(page, dict):
                continue
            items = page.get("items")
            if items is None and isinstance(page.get("@id"), str):
                fetched = await registry.get_json(page["@id"], timeout=self.timeout)
                items = fetched.get("items")
            if isinstance(items, list):
                leaves.extend(items)
        return leaves

    async def fetch_versions(
        self,
        name: str,
        registry: RegistryClient,
    ) -> RegistryVersionSet:
        """Resolve every catalog entry of a package's registration.

        Unlisted versions are reported as yanked.
        """
        base = await self._registration_base(registry)
        registration = await registry.get_json(
            f"{base}/{name.lower()}/index.json",
            timeout=self.timeout,
        )

        versions: List[PublishedVersion] = []
        license_info: Optional[str] = None
        authors: Optional[str] = None
        for leaf in await self._leaves(registration, registry):
            entry = leaf.get("catalogEntry") if isinstance(leaf, dict) else None
            if not isinstance(entry, dict) or not isinstance(entry.get("version"), str):
                continue
            version = entry["version"]
            versions.append(
                PublishedVersion(
                    version=version,
                    prerelease=self.is_prerelease(version),
                    yanked=entry.get("listed") is False,
                    published_at=entry.get("published"),
                )
            )
            # Registration leaves are ordered oldest first.
            license_info = entry.get("licenseExpression") or license_info
            authors = entry.get("authors") or authors

        maintainers_count = None
        if isinstance(authors, str) and authors.strip():
            maintainers_count = len([a for a in authors.split(",") if a.strip()])

        published = [v.published_at for v in versions if v.published_at and not v.yanked]
        return RegistryVersionSet(
            name=name,
            versions=versions,
            license=license_info,
            last_update=max(published) if published else None,
            maintainers_count=maintainers_count,
        )
