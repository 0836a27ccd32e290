"""Vulnerability matching for depradar.

Declared dependency versions are checked against public advisory
databases.  Each ecosystem is served by one :class:`AdvisorySource`:

* :class:`OSVSource` – OSV.dev, used for npm, PyPI, crates.io, Go and Maven.
* :class:`PackagistSource` – Packagist security advisories for Composer.
* :class:`NuGetSource` – the NuGet ``VulnerabilityInfo`` resource.

Every source fetches candidate advisories and decides membership locally
by compiling the advisory's affected range with
:mod:`depradar.core.ranges`.  An affected range that cannot be compiled
is treated as matching, so a malformed advisory is reported rather than
silently dropped.

Typical usage::

    async with HTTPClient() as http:
        scanner = VulnerabilityScanner(RegistryClient(http))
        report = await scanner.scan({"lodash": "4.17.20"}, "npm")
        print(report.summary())
"""

from __future__ import annotations

import re
import asyncio
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Dict, Iterable, List, Mapping, Optional, Union

from depradar.core.ranges import (
    parse_composer_constraint,
    parse_nuget_range,
    ranges_from_osv_events,
)
from depradar.core.registry import RegistryClient
from depradar.ecosystems import Ecosystem, get_ecosystem
from depradar.ecosystems.dotnet import find_resource
from depradar.exceptions import (
    BatchTooLargeError,
    EmptyBatchError,
    NetworkError,
    PackageNotFoundError,
    RangeParseError,
)
from depradar.models import (
    PackageVulnerabilities,
    Severity,
    VulnerabilityMatch,
    VulnerabilityReport,
)
from depradar.utils.cache import TTLCache
from depradar.utils.http import HTTPClient
from depradar.utils.logger import get_logger
from depradar.constants import (
    ADVISORY_CONCURRENCY,
    DEFAULT_CACHE_TTL,
    DEFAULT_MAX_AUDIT_PACKAGES,
    DEFAULT_MAX_RETRIES,
    DEFAULT_TIMEOUT,
    NUGET_SERVICE_INDEX,
    NUGET_VULNERABILITY_TYPE,
    OSV_QUERY_API,
    PACKAGIST_ADVISORIES_API,
)

logger = get_logger("vulnerability")


# ---------------------------------------------------------------------------
# Severity
# ---------------------------------------------------------------------------

_NAMED_SEVERITIES: Dict[str, Severity] = {
    "critical": Severity.CRITICAL,
    "high": Severity.HIGH,
    "moderate": Severity.MODERATE,
    "medium": Severity.MODERATE,
    "low": Severity.LOW,
    "info": Severity.INFO,
    "informational": Severity.INFO,
}

# NuGet VulnerabilityInfo encodes severity as 0 (low) .. 3 (critical).
_NUGET_SEVERITIES = (Severity.LOW, Severity.MODERATE, Severity.HIGH, Severity.CRITICAL)

_KEYWORDS = (
    (re.compile(r"\b(critical|remote code execution|rce)\b"), Severity.CRITICAL),
    (re.compile(r"\b(high|privilege escalation|bypass)\b"), Severity.HIGH),
    (re.compile(r"\b(moderate|medium|disclosure)\b"), Severity.MODERATE),
    (re.compile(r"\blow\b"), Severity.LOW),
)


def _band_cvss(score: float) -> Optional[Severity]:
    if score >= 9.0:
        return Severity.CRITICAL
    if score >= 7.0:
        return Severity.HIGH
    if score >= 4.0:
        return Severity.MODERATE
    if score > 0:
        return Severity.LOW
    return None


def derive_severity(
    explicit: Any = None,
    cvss_scores: Iterable[Any] = (),
    text: str = "",
) -> Severity:
    """Derive an advisory's severity from whatever the source provides.

    The first usable signal wins:

    1. An explicit severity: a name (``"HIGH"``, ``"medium"`` …) or a
       NuGet integer (0 low … 3 critical).
    2. The highest numeric CVSS base score, banded at 9 / 7 / 4 / 0.
       CVSS vector strings carry no score and are skipped.
    3. Keywords in the advisory title or summary.
    4. ``moderate``.

    Example:
        >>> derive_severity("MEDIUM")
        <Severity.MODERATE: 'moderate'>
        >>> derive_severity(None, ["9.8"])
        <Severity.CRITICAL: 'critical'>
        >>> derive_severity(text="Remote code execution in parser")
        <Severity.CRITICAL: 'critical'>
    """
    if isinstance(explicit, bool):
        explicit = None
    if isinstance(explicit, int) and 0 <= explicit < len(_NUGET_SEVERITIES):
        return _NUGET_SEVERITIES[explicit]
    if isinstance(explicit, str):
        named = _NAMED_SEVERITIES.get(explicit.strip().lower())
        if named is not None:
            return named

    scores: List[float] = []
    for score in cvss_scores:
        try:
            scores.append(float(score))
        except (TypeError, ValueError):
            continue
    if scores:
        banded = _band_cvss(max(scores))
        if banded is not None:
            return banded

    lowered = text.lower()
    for pattern, severity in _KEYWORDS:
        if pattern.search(lowered):
            return severity
    return Severity.MODERATE


# ---------------------------------------------------------------------------
# Advisory sources
# ---------------------------------------------------------------------------


class AdvisorySource(ABC):
    """An advisory database queried one package at a time.

    Args:
        registry: Shared registry client.
    """

    name: ClassVar[str] = ""
    display_name: ClassVar[str] = ""

    def __init__(self, registry: RegistryClient) -> None:
        self.registry = registry

    @abstractmethod
    async def advisories_for(
        self,
        package_name: str,
        version: str,
        adapter: Ecosystem,
    ) -> List[VulnerabilityMatch]:
        """Return the advisories affecting ``package_name`` at ``version``.

        Raises:
            NetworkError: The database could not be queried.
        """


class OSVSource(AdvisorySource):
    """OSV.dev ``/v1/query`` with local range matching."""

    name = "osv"
    display_name = "OSV"

    async def _query(self, package_name: str, ecosystem: str) -> List[Dict[str, Any]]:
        vulns: List[Dict[str, Any]] = []
        payload: Dict[str, Any] = {"package": {"name": package_name, "ecosystem": ecosystem}}
        while True:
            data = await self.registry.post_json(OSV_QUERY_API, payload)
            page = data.get("vulns")
            if isinstance(page, list):
                vulns.extend(v for v in page if isinstance(v, dict))
            token = data.get("next_page_token")
            if not token:
                return vulns
            payload = {**payload, "page_token": token}

    @staticmethod
    def affects(
        vuln: Mapping[str, Any],
        package_name: str,
        ecosystem: str,
        version: str,
        adapter: Ecosystem,
    ) -> bool:
        """Decide whether an OSV record affects ``version``.

        Only ``affected[]`` entries naming this package are considered:
        the explicit ``versions`` list first, then ``SEMVER`` and
        ``ECOSYSTEM`` ranges.  ``GIT`` ranges are ignored.
        """
        affected = vuln.get("affected")
        if not isinstance(affected, list):
            return False

        for entry in affected:
            if not isinstance(entry, dict):
                continue
            package = entry.get("package") if isinstance(entry.get("package"), dict) else {}
            if str(package.get("name", "")).lower() != package_name.lower():
                continue
            if package.get("ecosystem") and package["ecosystem"] != ecosystem:
                continue

            listed = entry.get("versions")
            if isinstance(listed, list) and any(
                adapter.compare_versions(str(v), version) == 0 for v in listed
            ):
                return True

            ranges = entry.get("ranges") if isinstance(entry.get("ranges"), list) else []
            for affected_range in ranges:
                if not isinstance(affected_range, dict):
                    continue
                if affected_range.get("type") not in ("SEMVER", "ECOSYSTEM"):
                    continue
                events = affected_range.get("events")
                try:
                    compiled = ranges_from_osv_events(events if isinstance(events, list) else [])
                except RangeParseError as exc:
                    logger.debug("Treating unparseable OSV range as affected: %s", exc)
                    return True
                if compiled.contains(version, adapter.compare_versions):
                    return True
        return False

    @staticmethod
    def _describe_range(vuln: Mapping[str, Any], package_name: str) -> str:
        parts: List[str] = []
        for entry in vuln.get("affected") or []:
            if not isinstance(entry, dict):
                continue
            package = entry.get("package") if isinstance(entry.get("package"), dict) else {}
            if str(package.get("name", "")).lower() != package_name.lower():
                continue
            for affected_range in entry.get("ranges") or []:
                if not isinstance(affected_range, dict) or affected_range.get("type") == "GIT":
                    continue
                try:
                    rendered = str(ranges_from_osv_events(affected_range.get("events") or []))
                except RangeParseError:
                    continue
                if rendered:
                    parts.append(rendered)
        return " || ".join(parts) or "unknown"

    @staticmethod
    def _severity(vuln: Mapping[str, Any]) -> Severity:
        # database_specific wins over ecosystem_specific, which OSV may
        # also carry per affected entry.
        sections = [vuln.get("database_specific"), vuln.get("ecosystem_specific")]
        for entry in vuln.get("affected") or []:
            if isinstance(entry, dict):
                sections.append(entry.get("ecosystem_specific"))

        explicit = None
        for section in sections:
            value = section.get("severity") if isinstance(section, dict) else None
            if isinstance(value, str) and value.strip().lower() in _NAMED_SEVERITIES:
                explicit = value
                break

        scores = [
            s.get("score")
            for s in vuln.get("severity") or []
            if isinstance(s, dict)
        ]
        text = f"{vuln.get('summary') or ''} {vuln.get('details') or ''}"
        return derive_severity(explicit, scores, text)

    async def advisories_for(
        self,
        package_name: str,
        version: str,
        adapter: Ecosystem,
    ) -> List[VulnerabilityMatch]:
        ecosystem = adapter.osv_ecosystem
        if not ecosystem:
            return []

        matches: List[VulnerabilityMatch] = []
        for vuln in await self._query(package_name, ecosystem):
            if not self.affects(vuln, package_name, ecosystem, version, adapter):
                continue

            vuln_id = str(vuln.get("id", ""))
            aliases = vuln.get("aliases") if isinstance(vuln.get("aliases"), list) else []
            cve = next((a for a in aliases if str(a).startswith("CVE-")), None)
            references = vuln.get("references") if isinstance(vuln.get("references"), list) else []
            reference = next(
                (r["url"] for r in references if isinstance(r, dict) and r.get("url")),
                f"https://osv.dev/vulnerability/{vuln_id}",
            )
            matches.append(
                VulnerabilityMatch(
                    advisory_id=vuln_id,
                    package_name=package_name,
                    title=vuln.get("summary") or vuln_id,
                    affected_versions=self._describe_range(vuln, package_name),
                    severity=self._severity(vuln),
                    reference=reference,
                    cve=cve,
                    source=self.display_name,
                    reported_at=vuln.get("published"),
                )
            )
        return matches


class PackagistSource(AdvisorySource):
    """Packagist security advisories for Composer packages."""

    name = "packagist"
    display_name = "Packagist"

    @staticmethod
    def _extract(data: Any, package_name: str) -> List[Dict[str, Any]]:
        """Accept a bare list, ``{"advisories": {name: [...]}}`` or ``{name: [...]}``."""
        advisories: Any = []
        if isinstance(data, list):
            advisories = data
        elif isinstance(data, dict):
            nested = data.get("advisories")
            if isinstance(nested, list):
                advisories = nested
            elif isinstance(nested, dict):
                advisories = nested.get(package_name, [])
            else:
                advisories = data.get(package_name, [])
        if not isinstance(advisories, list):
            return []
        return [a for a in advisories if isinstance(a, dict)]

    @staticmethod
    def affects(affected_versions: str, version: str, adapter: Ecosystem) -> bool:
        try:
            constraint = parse_composer_constraint(affected_versions)
        except RangeParseError as exc:
            logger.debug("Treating unparseable Composer range as affected: %s", exc)
            return True
        return constraint.contains(version, adapter.compare_versions)

    async def advisories_for(
        self,
        package_name: str,
        version: str,
        adapter: Ecosystem,
    ) -> List[VulnerabilityMatch]:
        try:
            data = await self.registry.get_json_value(
                PACKAGIST_ADVISORIES_API,
                params={"packages[]": package_name},
            )
        except PackageNotFoundError:
            return []

        matches: List[VulnerabilityMatch] = []
        for advisory in self._extract(data, package_name):
            affected = advisory.get("affectedVersions")
            if not isinstance(affected, str) or not affected.strip():
                continue
            if not self.affects(affected, version, adapter):
                continue

            advisory_id = str(advisory.get("advisoryId") or advisory.get("id") or "")
            title = advisory.get("title") or "Security Advisory"
            matches.append(
                VulnerabilityMatch(
                    advisory_id=advisory_id,
                    package_name=package_name,
                    title=title,
                    affected_versions=affected,
                    severity=derive_severity(advisory.get("severity"), (), title),
                    reference=advisory.get("link")
                    or advisory.get("reference")
                    or f"https://packagist.org/packages/{package_name}",
                    cve=advisory.get("cve") or None,
                    source=self.display_name,
                    reported_at=advisory.get("reportedAt"),
                )
            )
        return matches


class NuGetSource(AdvisorySource):
    """The NuGet ``VulnerabilityInfo`` index.

    The service index, the vulnerability index and every page are loaded
    through the registry cache, so they are fetched at most once per TTL
    and served stale when a refresh fails.
    """

    name = "nuget"
    display_name = "NuGet"

    async def _pages(self) -> List[Dict[str, Any]]:
        service_index = await self.registry.get_cached_json(NUGET_SERVICE_INDEX)
        index_url = find_resource(service_index, NUGET_VULNERABILITY_TYPE)
        if index_url is None:
            logger.warning("NuGet service index has no vulnerability resource")
            return []

        index = await self.registry.get_cached_json(index_url)
        entries = index if isinstance(index, list) else []

        pages: List[Dict[str, Any]] = []
        for entry in entries:
            if not isinstance(entry, dict) or not isinstance(entry.get("@id"), str):
                continue
            try:
                page = await self.registry.get_cached_json(entry["@id"])
            except NetworkError as exc:
                logger.warning("Skipping NuGet vulnerability page %s: %s", entry["@id"], exc)
                continue
            if isinstance(page, dict):
                pages.append(page)
        return pages

    @staticmethod
    def affects(ranges: Union[str, List[Any]], version: str, adapter: Ecosystem) -> bool:
        expressions = [ranges] if isinstance(ranges, str) else [str(r) for r in ranges]
        for expression in expressions:
            try:
                compiled = parse_nuget_range(expression)
            except RangeParseError as exc:
                logger.debug("Treating unparseable NuGet range as affected: %s", exc)
                return True
            if compiled.contains(version, adapter.compare_versions):
                return True
        return False

    async def advisories_for(
        self,
        package_name: str,
        version: str,
        adapter: Ecosystem,
    ) -> List[VulnerabilityMatch]:
        key = package_name.lower()
        matches: List[VulnerabilityMatch] = []

        for page in await self._pages():
            records = page.get(key)
            if not isinstance(records, list):
                continue
            for record in records:
                if not isinstance(record, dict):
                    continue
                ranges = record.get("versions")
                if not isinstance(ranges, (str, list)) or not ranges:
                    continue
                if not self.affects(ranges, version, adapter):
                    continue

                url = record.get("url") or f"https://www.nuget.org/packages/{package_name}"
                affected = ranges if isinstance(ranges, str) else ", ".join(map(str, ranges))
                matches.append(
                    VulnerabilityMatch(
                        advisory_id=str(url).rstrip("/").rsplit("/", 1)[-1],
                        package_name=package_name,
                        title=f"Known vulnerability in {package_name}",
                        affected_versions=affected,
                        severity=derive_severity(record.get("severity")),
                        reference=url,
                        source=self.display_name,
                    )
                )
        return matches


ADVISORY_SOURCES = {
    source.name: source for source in (OSVSource, PackagistSource, NuGetSource)
}


# ---------------------------------------------------------------------------
# Scanner
# ---------------------------------------------------------------------------


class VulnerabilityScanner:
    """Audit declared dependency versions against advisory databases.

    Args:
        registry: Shared registry client.  When omitted, each call to
            :meth:`scan` opens its own HTTP client.
        max_packages: Largest batch :meth:`scan` accepts.
        concurrency: Per-source overrides of in-flight advisory lookups.
        timeout: Default request timeout for self-managed clients.
        max_retries: Transport retries for self-managed clients.
        cache_ttl: Cache lifetime for self-managed clients.
    """

    def __init__(
        self,
        registry: Optional[RegistryClient] = None,
        *,
        max_packages: int = DEFAULT_MAX_AUDIT_PACKAGES,
        concurrency: Optional[Mapping[str, int]] = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        cache_ttl: float = DEFAULT_CACHE_TTL,
    ) -> None:
        self.registry = registry
        self.max_packages = max_packages
        self.concurrency: Dict[str, int] = dict(ADVISORY_CONCURRENCY)
        if concurrency:
            self.concurrency.update(concurrency)
        self.timeout = timeout
        self.max_retries = max_retries
        self.cache_ttl = cache_ttl

    def source_for(self, adapter: Ecosystem, registry: RegistryClient) -> AdvisorySource:
        return ADVISORY_SOURCES[adapter.advisory_source](registry)

    async def scan(
        self,
        dependencies: Mapping[str, str],
        ecosystem: Union[str, Ecosystem],
    ) -> VulnerabilityReport:
        """Audit a ``{name: declared version}`` mapping.

        Declared versions are normalized the same way the version check
        normalizes them; entries that do not normalize, and lookups that
        fail, are dropped.

        Returns:
            A report whose packages are ordered by highest severity, then
            name.

        Raises:
            UnknownEcosystemError: ``ecosystem`` is not registered.
            EmptyBatchError: ``dependencies`` is empty.
            BatchTooLargeError: More than ``max_packages`` dependencies.
        """
        adapter = get_ecosystem(ecosystem) if isinstance(ecosystem, str) else ecosystem

        if not dependencies:
            raise EmptyBatchError("No dependencies to audit", ecosystem=adapter.name, attempted=0)
        if len(dependencies) > self.max_packages:
            raise BatchTooLargeError(
                f"Too many dependencies to audit: {len(dependencies)} (limit {self.max_packages})",
                size=len(dependencies),
                limit=self.max_packages,
            )

        if self.registry is not None:
            packages = await self._scan(adapter, dependencies, self.registry)
        else:
            async with HTTPClient(timeout=self.timeout, max_retries=self.max_retries) as http:
                registry = RegistryClient(http, cache=TTLCache(self.cache_ttl))
                packages = await self._scan(adapter, dependencies, registry)

        packages.sort(
            key=lambda p: (
                -(p.highest_severity.rank if p.highest_severity else -1),
                p.package_name,
            )
        )
        return VulnerabilityReport(packages=packages)

    async def _scan(
        self,
        adapter: Ecosystem,
        dependencies: Mapping[str, str],
        registry: RegistryClient,
    ) -> List[PackageVulnerabilities]:
        source = self.source_for(adapter, registry)
        semaphore = asyncio.Semaphore(max(1, self.concurrency.get(source.name, 2)))
        logger.info(
            "Auditing %d %s dependencies against %s",
            len(dependencies),
            adapter.display_name,
            source.display_name,
        )

        async def audit(name: str, declared: str) -> Optional[PackageVulnerabilities]:
            parsed = adapter.normalize_specifier(declared)
            if parsed is None:
                logger.debug("Skipping %s: cannot normalize %r", name, declared)
                return None
            async with semaphore:
                try:
                    matches = await source.advisories_for(name, parsed.cleaned, adapter)
                except NetworkError as exc:
                    logger.warning("Advisory lookup failed for %s: %s", name, exc)
                    return None
            return PackageVulnerabilities(
                package_name=name,
                current_version=declared,
                vulnerabilities=matches,
            )

        items = list(dependencies.items())
        outcomes = await asyncio.gather(
            *(audit(name, declared) for name, declared in items),
            return_exceptions=True,
        )

        packages: List[PackageVulnerabilities] = []
        for (name, _), outcome in zip(items, outcomes):
            if isinstance(outcome, BaseException):
                logger.error("Failed to audit %s: %s", name, outcome)
            elif outcome is not None:
                packages.append(outcome)
        return packages
