"""
Vulnerability data models for depradar.

The advisory pipeline produces one :class:`PackageVulnerabilities` per
audited dependency, each holding zero or more :class:`VulnerabilityMatch`
records, and wraps them in a :class:`VulnerabilityReport` with summary
counts.
"""

from __future__ import annotations

from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


class Severity(str, Enum):
    """Advisory severity, from most to least serious."""

    CRITICAL = "critical"
    HIGH = "high"
    MODERATE = "moderate"
    LOW = "low"
    INFO = "info"

    @property
    def rank(self) -> int:
        """Numeric weight; higher is more severe."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK: Dict[Severity, int] = {
    Severity.CRITICAL: 4,
    Severity.HIGH: 3,
    Severity.MODERATE: 2,
    Severity.LOW: 1,
    Severity.INFO: 0,
}


@dataclass
class VulnerabilityMatch:
    """An advisory that applies to the installed version of a package.

    Attributes:
        advisory_id: Identifier in the source database (``GHSA-…``,
            ``RUSTSEC-…``, ``PKSA-…``).
        package_name: Affected package.
        title: One-line summary.
        cve: CVE alias, when the advisory has one.
        affected_versions: Human-readable affected range.
        severity: Derived severity.
        reference: URL with details.
        source: Database the advisory came from.
        reported_at: Publish timestamp, when known.
    """

    advisory_id: str
    package_name: str
    title: str
    affected_versions: str
    severity: Severity
    reference: str = ""
    cve: Optional[str] = None
    source: Optional[str] = None
    reported_at: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        return {
            "advisoryId": self.advisory_id,
            "packageName": self.package_name,
            "title": self.title,
            "cve": self.cve,
            "affectedVersions": self.affected_versions,
            "severity": self.severity.value,
            "reference": self.reference,
            "source": self.source,
            "reportedAt": self.reported_at,
        }


@dataclass
class PackageVulnerabilities:
    """Audit outcome for one dependency."""

    package_name: str
    current_version: str
    vulnerabilities: List[VulnerabilityMatch] = field(default_factory=list)

    @property
    def is_vulnerable(self) -> bool:
        return bool(self.vulnerabilities)

    @property
    def highest_severity(self) -> Optional[Severity]:
        """Most serious severity among the matches, or ``None``."""
        if not self.vulnerabilities:
            return None
        return max((v.severity for v in self.vulnerabilities), key=lambda s: s.rank)

    def to_json(self) -> Dict[str, Any]:
        highest = self.highest_severity
        return {
            "packageName": self.package_name,
            "currentVersion": self.current_version,
            "vulnerabilities": [v.to_json() for v in self.vulnerabilities],
            "isVulnerable": self.is_vulnerable,
            "highestSeverity": highest.value if highest else None,
        }


@dataclass
class VulnerabilityReport:
    """All audited packages plus per-severity counts."""

    packages: List[PackageVulnerabilities] = field(default_factory=list)

    @property
    def vulnerable_packages(self) -> List[PackageVulnerabilities]:
        return [p for p in self.packages if p.is_vulnerable]

    def summary(self) -> Dict[str, int]:
        """Count packages and advisories by severity.

        Returns:
            Mapping with ``total``, ``vulnerable`` and one key per
            :class:`Severity` value.
        """
        counts: Dict[str, int] = {
            "total": len(self.packages),
            "vulnerable": len(self.vulnerable_packages),
        }
        for severity in Severity:
            counts[severity.value] = 0
        for package in self.packages:
            for match in package.vulnerabilities:
                counts[match.severity.value] += 1
        return counts

    def to_json(self) -> Dict[str, Any]:
        return {
            "packages": [p.to_json() for p in self.packages],
            "summary": self.summary(),
        }
