"""npm (Node.js) ecosystem adapter."""

from __future__ import annotations

import re
import json
from urllib.parse import quote
from typing import Any, Dict, Optional

from depradar.core.ranges import RangeSet, parse_npm_range
from depradar.core.registry import RegistryClient
from depradar.ecosystems.base import Ecosystem
from depradar.exceptions import ManifestParseError
from depradar.models import PublishedVersion, RegistryVersionSet
from depradar.constants import NPM_REGISTRY_API

# ``1.x``, ``1.2.*``, ``x`` – x-ranges are treated as unresolvable.
_X_RANGE_RE = re.compile(r"(?:^|[\s.^~=<>])[xX*](?=$|[\s.])")


def _string_map(value: Any) -> Dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {str(k): str(v) for k, v in value.items() if isinstance(v, str)}


class NpmEcosystem(Ecosystem):
    """``package.json`` manifests resolved against registry.npmjs.org."""

    name = "npm"
    display_name = "npm"
    aliases = ("node", "javascript", "js")
    manifest_patterns = ("package.json",)
    osv_ecosystem = "npm"
    operators = "^~><="
    coerce = True
    supports_ranges = True

    def parse_manifest(
        self,
        content: str,
        filename: Optional[str] = None,
    ) -> Dict[str, str]:
        """Merge ``dependencies`` and ``devDependencies`` (dev wins on clashes).

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
                "package.json must contain a JSON object",
                ecosystem=self.name,
                file_path=filename,
            )

        dependencies = _string_map(data.get("dependencies"))
        dependencies.update(_string_map(data.get("devDependencies")))
        return dependencies

    def unsupported_reason(self, name: str, specifier: str) -> Optional[str]:
        reason = super().unsupported_reason(name, specifier)
        if reason:
            return reason
        if "/" in specifier:
            return "non-registry source"
        if _X_RANGE_RE.search(specifier.strip()):
            return "wildcard"
        return None

    def compile_range(self, specifier: str) -> Optional[RangeSet]:
        return parse_npm_range(specifier)

    async def fetch_versions(
        self,
        name: str,
        registry: RegistryClient,
    ) -> RegistryVersionSet:
        """Read the package document (packument) from the npm registry."""
        url = NPM_REGISTRY_API.format(package=quote(name, safe="@"))
        data = await registry.get_json(url, timeout=self.timeout)

        times = data.get("time") if isinstance(data.get("time"), dict) else {}
        versions_doc = data.get("versions") if isinstance(data.get("versions"), dict) else {}

        versions = [
            PublishedVersion(
                version=version,
                prerelease=self.is_prerelease(version),
                deprecated=bool(isinstance(meta, dict) and meta.get("deprecated")),
                published_at=times.get(version),
            )
            for version, meta in versions_doc.items()
        ]

        dist_tags = data.get("dist-tags") if isinstance(data.get("dist-tags"), dict) else {}
        latest_tag = dist_tags.get("latest")

        license_info = data.get("license")
        if isinstance(license_info, dict):
            license_info = license_info.get("type")

        maintainers = data.get("maintainers")

        return RegistryVersionSet(
            name=name,
            versions=versions,
            latest_tag=latest_tag if isinstance(latest_tag, str) else None,
            license=license_info if isinstance(license_info, str) else None,
            last_update=times.get("modified"),
            maintainers_count=len(maintainers) if isinstance(maintainers, list) else None,
        )
