"""Rust (Cargo / crates.io) ecosystem adapter."""

from __future__ import annotations

import tomli
from typing import Any, Dict, Optional

from depradar.core.registry import RegistryClient
from depradar.ecosystems.base import Ecosystem
from depradar.exceptions import ManifestParseError
from depradar.models import PublishedVersion, RegistryVersionSet
from depradar.utils.logger import get_logger
from depradar.constants import CRATES_API

logger = get_logger("ecosystems.rust")

_DEPENDENCY_TABLES = ("dependencies", "dev-dependencies", "build-dependencies")


def _collect(table: Any, into: Dict[str, str]) -> None:
    if not isinstance(table, dict):
        return
    for key, value in table.items():
        if isinstance(value, str):
            into[key] = value
            continue
        if not isinstance(value, dict):
            continue
        if "git" in value or "path" in value:
            logger.debug("Skipping %s: non-registry source", key)
            continue
        version = value.get("version")
        if isinstance(version, str):
            crate = value.get("package")
            into[crate if isinstance(crate, str) else key] = version


class RustEcosystem(Ecosystem):
    """``Cargo.toml`` manifests resolved against crates.io."""

    name = "rust"
    display_name = "Rust"
    aliases = ("cargo", "crates", "crates.io")
    manifest_patterns = ("Cargo.toml",)
    osv_ecosystem = "crates.io"

    def parse_manifest(
        self,
        content: str,
        filename: Optional[str] = None,
    ) -> Dict[str, str]:
        """Read every dependency table, including ``[target.*.dependencies]``.

        Raises:
            ManifestParseError: The manifest is not valid TOML.
        """
        try:
            data = tomli.loads(content)
        except tomli.TOMLDecodeError as exc:
            raise ManifestParseError(
                f"Invalid TOML: {exc}",
                ecosystem=self.name,
                file_path=filename,
            ) from exc

        dependencies: Dict[str, str] = {}
        for section in _DEPENDENCY_TABLES:
            _collect(data.get(section), dependencies)

        targets = data.get("target")
        if isinstance(targets, dict):
            for target in targets.values():
                if isinstance(target, dict):
                    for section in _DEPENDENCY_TABLES:
                        _collect(target.get(section), dependencies)
        return dependencies

    async def fetch_versions(
        self,
        name: str,
        registry: RegistryClient,
    ) -> RegistryVersionSet:
        data = await registry.get_json(CRATES_API.format(package=name), timeout=self.timeout)
        crate = data.get("crate") if isinstance(data.get("crate"), dict) else {}
        entries = data.get("versions") if isinstance(data.get("versions"), list) else []

        versions = [
            PublishedVersion(
                version=entry["num"],
                prerelease=self.is_prerelease(entry["num"]),
                yanked=bool(entry.get("yanked")),
                published_at=entry.get("created_at"),
            )
            for entry in entries
            if isinstance(entry, dict) and isinstance(entry.get("num"), str)
        ]

        license_info = next(
            (
                entry["license"]
                for entry in entries
                if isinstance(entry, dict) and not entry.get("yanked") and entry.get("license")
            ),
            None,
        )

        return RegistryVersionSet(
            name=name,
            versions=versions,
            license=license_info,
            last_update=crate.get("updated_at"),
        )
