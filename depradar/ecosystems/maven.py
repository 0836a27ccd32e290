"""Java (Maven Central) ecosystem adapter for ``pom.xml`` and Gradle builds."""

from __future__ import annotations

import re
from datetime import datetime, timezone
import xml.etree.ElementTree as ET
from typing import Dict, Optional

from depradar.core.registry import RegistryClient
from depradar.ecosystems.base import Ecosystem
from depradar.exceptions import ManifestParseError
from depradar.models import PublishedVersion, RegistryVersionSet
from depradar.utils.logger import get_logger
from depradar.constants import MAVEN_SEARCH_API

logger = get_logger("ecosystems.maven")

_PROPERTY_RE = re.compile(r"\$\{([^}]+)\}")
_MAVEN_RANGE_RE = re.compile(r"^[\[(]\s*([^,\])]*)")
_PRERELEASE_RE = re.compile(
    r"[.\-](alpha|beta|rc|cr|m\d+|snapshot|milestone|ea|preview)",
    re.IGNORECASE,
)

_GRADLE_CONFIGS = (
    r"(?:implementation|api|compile|compileOnly|runtimeOnly|testImplementation"
    r"|testCompile|testRuntimeOnly|annotationProcessor|kapt)"
)
_GRADLE_STRING_RE = re.compile(
    _GRADLE_CONFIGS + r"\s*\(?\s*['\"]([^:'\"\s]+):([^:'\"\s]+):([^:'\"\s@]+)['\"]"
)
_GRADLE_MAP_RE = re.compile(
    _GRADLE_CONFIGS
    + r"\s*\(?\s*group\s*[:=]\s*['\"]([^'\"]+)['\"]\s*,\s*name\s*[:=]\s*['\"]([^'\"]+)['\"]"
    r"\s*,\s*version\s*[:=]\s*['\"]([^'\"]+)['\"]"
)


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _child_text(element: ET.Element, name: str) -> Optional[str]:
    for child in element:
        if _local_name(child.tag) == name and child.text:
            return child.text.strip()
    return None


def _iso_from_millis(timestamp: object) -> Optional[str]:
    if not isinstance(timestamp, (int, float)):
        return None
    return datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc).isoformat()


def lower_bound(version: str) -> str:
    """Reduce a Maven version range to its lower bound.

    Example:
        >>> lower_bound("[1.0,2.0)")
        '1.0'
        >>> lower_bound("3.1.4")
        '3.1.4'
    """
    match = _MAVEN_RANGE_RE.match(version.strip())
    if match:
        return match.group(1).strip()
    return version.strip()


class MavenEcosystem(Ecosystem):
    """Maven and Gradle builds resolved against Maven Central search."""

    name = "maven"
    display_name = "Java"
    aliases = ("java", "gradle")
    manifest_patterns = ("pom.xml", "build.gradle", "build.gradle.kts")
    osv_ecosystem = "Maven"

    def parse_manifest(
        self,
        content: str,
        filename: Optional[str] = None,
    ) -> Dict[str, str]:
        """Return ``{"group:artifact": version}`` for declared dependencies.

        Raises:
            ManifestParseError: A ``pom.xml`` that is not well-formed XML.
        """
        base = (filename or "").replace("\\", "/").rsplit("/", 1)[-1]
        if base.startswith("build.gradle") or (not base and not content.lstrip().startswith("<")):
            return self._parse_gradle(content)
        return self._parse_pom(content, filename)

    def _parse_pom(self, content: str, filename: Optional[str]) -> Dict[str, str]:
        try:
            root = ET.fromstring(content)
        except ET.ParseError as exc:
            raise ManifestParseError(
                f"Invalid XML: {exc}",
                ecosystem=self.name,
                file_path=filename,
            ) from exc

        properties: Dict[str, str] = {}
        for element in root:
            if _local_name(element.tag) == "properties":
                for prop in element:
                    if prop.text:
                        properties[_local_name(prop.tag)] = prop.text.strip()

        project_version = _child_text(root, "version")
        if project_version:
            properties.setdefault("project.version", project_version)

        dependencies: Dict[str, str] = {}
        for element in root.iter():
            if _local_name(element.tag) != "dependency":
                continue
            group = _child_text(element, "groupId")
            artifact = _child_text(element, "artifactId")
            version = _child_text(element, "version")
            if not (group and artifact and version):
                continue

            unresolved = [p for p in _PROPERTY_RE.findall(version) if p not in properties]
            if unresolved:
                logger.debug("Skipping %s:%s: undefined property %s", group, artifact, unresolved[0])
                continue
            version = _PROPERTY_RE.sub(lambda m: properties[m.group(1)], version)
            dependencies[f"{group}:{artifact}"] = lower_bound(version)
        return dependencies

    @staticmethod
    def _parse_gradle(content: str) -> Dict[str, str]:
        dependencies: Dict[str, str] = {}
        for pattern in (_GRADLE_STRING_RE, _GRADLE_MAP_RE):
            for group, artifact, version in pattern.findall(content):
                if "$" in version:
                    continue
                dependencies[f"{group}:{artifact}"] = version
        return dependencies

    def is_prerelease(self, version: str) -> bool:
        return bool(_PRERELEASE_RE.search(version))

    async def fetch_versions(
        self,
        name: str,
        registry: RegistryClient,
    ) -> RegistryVersionSet:
        """Query the Maven Central ``gav`` core for every version of an artifact."""
        group, _, artifact = name.partition(":")
        data = await registry.get_json(
            MAVEN_SEARCH_API,
            params={
                "q": f'g:"{group}" AND a:"{artifact}"',
                "core": "gav",
                "rows": 100,
                "wt": "json",
            },
            timeout=self.timeout,
        )
        response = data.get("response") if isinstance(data.get("response"), dict) else {}
        docs = response.get("docs") if isinstance(response.get("docs"), list) else []

        versions = []
        for doc in docs:
            if not isinstance(doc, dict) or not isinstance(doc.get("v"), str):
                continue
            timestamp = doc.get("timestamp")
            versions.append(
                PublishedVersion(
                    version=doc["v"],
                    prerelease=self.is_prerelease(doc["v"]),
                    published_at=_iso_from_millis(timestamp),
                )
            )

        return RegistryVersionSet(name=name, versions=versions)
