"""
Unified data model exports for depradar.

Example:
    >>> from depradar.models import DependencyResult, Status, Severity
"""

from __future__ import annotations

from depradar.models.dependency import (
    DependencyEntry,
    DependencyResult,
    ParsedVersion,
    Status,
)
from depradar.models.registry import PublishedVersion, RegistryVersionSet
from depradar.models.vulnerability import (
    PackageVulnerabilities,
    Severity,
    VulnerabilityMatch,
    VulnerabilityReport,
)

__all__ = [
    "DependencyEntry",
    "DependencyResult",
    "ParsedVersion",
    "Status",
    "PublishedVersion",
    "RegistryVersionSet",
    "PackageVulnerabilities",
    "Severity",
    "VulnerabilityMatch",
    "VulnerabilityReport",
]
