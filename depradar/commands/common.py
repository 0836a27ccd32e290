"""Helpers shared by the ``check`` and ``audit`` commands."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Tuple

import click

from depradar.config import DepRadarConfig
from depradar.core.registry import RegistryClient
from depradar.ecosystems import ECOSYSTEMS, Ecosystem, detect_ecosystem, get_ecosystem
from depradar.utils.cache import TTLCache
from depradar.utils.filesystem import find_manifest_files
from depradar.utils.http import HTTPClient
from depradar.utils.logger import get_logger

logger = get_logger("commands")

Manifest = Tuple[Path, Ecosystem]


def resolve_manifests(path: Path, ecosystem: Optional[str]) -> List[Manifest]:
    """Pair each manifest under ``path`` with its ecosystem adapter.

    ``path`` may be a manifest file or a directory; a directory is scanned
    (non-recursively) for every known manifest name, or only for the
    given ecosystem's names when ``ecosystem`` is set.

    Raises:
        click.UsageError: No manifest found, or the ecosystem of a file
            cannot be detected.
        UnknownEcosystemError: ``ecosystem`` names no registered ecosystem.
    """
    forced = get_ecosystem(ecosystem) if ecosystem else None

    if path.is_file():
        adapter = forced or detect_ecosystem(path.name)
        if adapter is None:
            raise click.UsageError(
                f"Cannot detect the ecosystem of '{path.name}'; pass --ecosystem"
            )
        return [(path, adapter)]

    adapters = [forced] if forced else [cls() for cls in ECOSYSTEMS.values()]
    manifests: List[Manifest] = []
    for adapter in adapters:
        for found in find_manifest_files(path, adapter.manifest_patterns):
            manifests.append((found, adapter))

    if not manifests:
        raise click.UsageError(f"No dependency manifest found in {path}")
    logger.debug("Resolved %d manifest(s) in %s", len(manifests), path)
    return manifests


def build_http_client(config: DepRadarConfig) -> HTTPClient:
    return HTTPClient(timeout=config.timeout, max_retries=config.max_retries)


def build_registry(http: HTTPClient, config: DepRadarConfig) -> RegistryClient:
    return RegistryClient(http, cache=TTLCache(config.cache_ttl))
