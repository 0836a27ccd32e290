"""Dependency freshness checking for depradar.

:class:`VersionChecker` turns a manifest into a sorted list of
:class:`~depradar.models.DependencyResult`.  It is ecosystem-neutral:
parsing, filtering, normalization, registry access and version ordering
all come from the :class:`~depradar.ecosystems.base.Ecosystem` adapter.

The pipeline for one manifest:

1. **Parse and filter** – the adapter extracts ``{name: specifier}`` and
   drops specifiers no registry can resolve.
2. **Normalize** – each specifier is reduced to a comparable version;
   entries without one are dropped.
3. **Fetch** – registry lookups run concurrently, bounded by the
   ecosystem's semaphore.  A failed lookup drops that entry only.
4. **Classify and sort** – every surviving entry gets a status; results
   are ordered major → outdated → current, then by name.

Typical usage::

    async with HTTPClient() as http:
        checker = VersionChecker(RegistryClient(http))
        results = await checker.check_manifest(text, "npm", "package.json")

        for result in results:
            print(result)
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Mapping, Optional, Union

from depradar.core.classifier import sort_results
from depradar.core.registry import RegistryClient
from depradar.ecosystems import Ecosystem, get_ecosystem
from depradar.exceptions import EmptyBatchError, NetworkError
from depradar.models import DependencyEntry, DependencyResult
from depradar.utils.cache import TTLCache
from depradar.utils.http import HTTPClient
from depradar.utils.logger import get_logger
from depradar.constants import (
    DEFAULT_CACHE_TTL,
    DEFAULT_CONCURRENCY,
    DEFAULT_MAX_RETRIES,
    DEFAULT_TIMEOUT,
)

logger = get_logger("checker")


class VersionChecker:
    """Check manifest dependencies against their registries.

    Args:
        registry: Shared registry client.  When omitted, each call to
            :meth:`check_manifest` opens (and closes) its own HTTP client.
        concurrency: Per-ecosystem overrides of the number of in-flight
            registry lookups.
        timeout: Default request timeout for self-managed clients.
        max_retries: Transport retries for self-managed clients.
        cache_ttl: Cache lifetime for self-managed clients.

    Example::

        >>> checker = VersionChecker()
        >>> results = asyncio.run(checker.check_manifest(text, "rust", "Cargo.toml"))
        >>> [r.status.value for r in results]
        ['major', 'current']
    """

    def __init__(
        self,
        registry: Optional[RegistryClient] = None,
        *,
        concurrency: Optional[Mapping[str, int]] = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        cache_ttl: float = DEFAULT_CACHE_TTL,
    ) -> None:
        self.registry = registry
        self.concurrency: Dict[str, int] = dict(DEFAULT_CONCURRENCY)
        if concurrency:
            self.concurrency.update(concurrency)
        self.timeout = timeout
        self.max_retries = max_retries
        self.cache_ttl = cache_ttl

    def concurrency_for(self, adapter: Ecosystem) -> int:
        """Number of concurrent lookups allowed for an ecosystem."""
        return max(1, self.concurrency.get(adapter.name, 2))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def check_manifest(
        self,
        content: str,
        ecosystem: Union[str, Ecosystem],
        filename: Optional[str] = None,
    ) -> List[DependencyResult]:
        """Check every resolvable dependency declared in a manifest.

        Args:
            content: Manifest text.
            ecosystem: Ecosystem kind (or alias), or an adapter instance.
            filename: Manifest filename; selects a sub-parser where an
                ecosystem has several manifest formats.

        Returns:
            One result per dependency that could be resolved, sorted by
            status severity and name.

        Raises:
            UnknownEcosystemError: ``ecosystem`` is not registered.
            ManifestParseError: The manifest cannot be parsed.
            EmptyBatchError: The manifest declares no resolvable
                dependencies, or every lookup failed.
        """
        adapter = get_ecosystem(ecosystem) if isinstance(ecosystem, str) else ecosystem

        entries = adapter.extract_entries(content, filename)
        if not entries:
            raise EmptyBatchError(
                "No dependencies found in manifest",
                ecosystem=adapter.name,
                attempted=0,
            )
        logger.info("Checking %d %s dependencies", len(entries), adapter.display_name)

        if self.registry is not None:
            results = await self._check_entries(adapter, entries, self.registry)
        else:
            async with HTTPClient(timeout=self.timeout, max_retries=self.max_retries) as http:
                registry = RegistryClient(http, cache=TTLCache(self.cache_ttl))
                results = await self._check_entries(adapter, entries, registry)

        if not results:
            raise EmptyBatchError(ecosystem=adapter.name, attempted=len(entries))
        return sort_results(results)

    async def check_dependency(
        self,
        adapter: Ecosystem,
        entry: DependencyEntry,
        registry: RegistryClient,
    ) -> Optional[DependencyResult]:
        """Resolve and classify a single dependency.

        Returns ``None`` (and logs why) when the dependency cannot be
        checked; registry failures never propagate.
        """
        parsed = adapter.normalize_specifier(entry.raw_specifier)
        if parsed is None:
            logger.debug("Skipping %s: cannot normalize %r", entry.name, entry.raw_specifier)
            return None

        try:
            version_set = await adapter.fetch_versions(entry.name, registry)
        except NetworkError as exc:
            logger.warning("Registry lookup failed for %s: %s", entry.name, exc)
            return None
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Unexpected registry response for %s: %s", entry.name, exc)
            return None

        if version_set.is_empty:
            logger.debug("Skipping %s: registry lists no versions", entry.name)
            return None

        result = adapter.build_result(entry, parsed, version_set)
        if result is None:
            logger.debug("Skipping %s: no installable version", entry.name)
        return result

    # ------------------------------------------------------------------
    # Task management (private)
    # ------------------------------------------------------------------

    async def _check_entries(
        self,
        adapter: Ecosystem,
        entries: List[DependencyEntry],
        registry: RegistryClient,
    ) -> List[DependencyResult]:
        semaphore = asyncio.Semaphore(self.concurrency_for(adapter))

        async def bounded(entry: DependencyEntry) -> Optional[DependencyResult]:
            async with semaphore:
                return await self.check_dependency(adapter, entry, registry)

        tasks = [asyncio.create_task(bounded(entry)) for entry in entries]
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)
        return self._collect_results(entries, outcomes)

    @staticmethod
    def _collect_results(
        entries: List[DependencyEntry],
        outcomes: List[Any],
    ) -> List[DependencyResult]:
        """Keep successful results; log and drop everything else."""
        results: List[DependencyResult] = []
        for entry, outcome in zip(entries, outcomes):
            if isinstance(outcome, BaseException):
                logger.error("Failed to check %s: %s", entry.name, outcome)
            elif outcome is not None:
                results.append(outcome)
        return results
