"""PHP (Composer / Packagist) ecosystem adapter."""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

from depradar.core.ranges import RangeSet, parse_composer_constraint
from depradar.core.registry import RegistryClient
from depradar.ecosystems.base import Ecosystem
from depradar.exceptions import ManifestParseError
from depradar.models import PublishedVersion, RegistryVersionSet
from depradar.constants import PACKAGIST_API

# Platform packages provided by the PHP runtime, not by Packagist.
_PLATFORM_NAMES = ("php", "composer-plugin-api", "composer-runtime-api")
_PLATFORM_PREFIXES = ("ext-", "lib-")


def is_platform_package(name: str) -> bool:
    lowered = name.lower()
    return lowered in _PLATFORM_NAMES or lowered.startswith(_PLATFORM_PREFIXES)


def is_dev_branch(version: str) -> bool:
    lowered = version.lower()
    return lowered.startswith("dev-") or lowered.endswith("-dev")


class PhpEcosystem(Ecosystem):
    """``composer.json`` manifests resolved against packagist.org."""

    name = "php"
    display_name = "PHP"
    aliases = ("composer", "packagist")
    manifest_patterns = ("composer.json",)
    osv_ecosystem = "Packagist"
    advisory_source = "packagist"
    supports_ranges = True

    def parse_manifest(
        self,
        content: str,
        filename: Optional[str] = None,
    ) -> Dict[str, str]:
        """Merge ``require`` and ``require-dev`` without platform packages.

        Raises:
            ManifestParseError: Invalid JSON or a non-object top level.
        """
        try:
            data = json.loads(content)
        except ValueError as exc:
            raise ManifestParseError(
                f"Invalid JSON: {exc}",
                ecosystem=self.name,
                file_path=filename,
            ) from exc
        if not isinstance(data, dict):
            raise ManifestParseError(
                "composer.json must contain a JSON object",
                ecosystem=self.name,
                file_path=filename,
            )

        dependencies: Dict[str, str] = {}
        for section in ("require", "require-dev"):
            table = data.get(section)
            if not isinstance(table, dict):
                continue
            for name, constraint in table.items():
                if isinstance(constraint, str) and not is_platform_package(name):
                    dependencies[name] = constraint
        return dependencies

    def unsupported_reason(self, name: str, specifier: str) -> Optional[str]:
        reason = super().unsupported_reason(name, specifier)
        if reason:
            return reason
        spec = specifier.strip()
        if is_dev_branch(spec):
            return "development branch"
        if "@" in spec:
            return "stability flag"
        return None

    def compile_range(self, specifier: str) -> Optional[RangeSet]:
        return parse_composer_constraint(specifier)

    async def fetch_versions(
        self,
        name: str,
        registry: RegistryClient,
    ) -> RegistryVersionSet:
        """Read ``package.versions`` from Packagist, skipping dev branches."""
        data = await registry.get_json(PACKAGIST_API.format(package=name), timeout=self.timeout)
        package = data.get("package") if isinstance(data.get("package"), dict) else {}
        versions_doc = package.get("versions") if isinstance(package.get("versions"), dict) else {}

        versions = []
        newest: Optional[Dict[str, Any]] = None
        for version, meta in versions_doc.items():
            if is_dev_branch(version):
                continue
            meta = meta if isinstance(meta, dict) else {}
            published = PublishedVersion(
                version=version,
                prerelease=self.is_prerelease(version),
                published_at=meta.get("time"),
            )
            versions.append(published)
            if newest is None or self.compare_versions(version, newest["version"]) > 0:
                newest = {**meta, "version": version}

        license_info: Optional[str] = None
        maintainers_count: Optional[int] = None
        if newest is not None:
            licenses = newest.get("license")
            if isinstance(licenses, list) and licenses:
                license_info = ", ".join(str(item) for item in licenses)
            authors = newest.get("authors")
            if isinstance(authors, list):
                maintainers_count = len(authors)
        if maintainers_count is None and isinstance(package.get("maintainers"), list):
            maintainers_count = len(package["maintainers"])

        last_update = package.get("time") if isinstance(package.get("time"), str) else None

        return RegistryVersionSet(
            name=name,
            versions=versions,
            license=license_info,
            last_update=last_update,
            maintainers_count=maintainers_count,
        )
