"""
Core functionality exports for depradar.

This module provides convenient access to the core subsystems of depradar:

    from depradar.core import VersionChecker, VulnerabilityScanner

The range, specifier and classifier modules are ecosystem-neutral and are
imported before the checker and scanner, which depend on the ecosystem
adapters.
"""

from __future__ import annotations

from depradar.core.ranges import (
    Bound,
    RangeSet,
    VersionRange,
    parse_composer_constraint,
    parse_npm_range,
    parse_nuget_range,
    ranges_from_osv_events,
)
from depradar.core.specifier import normalize_specifier, unsupported_reason
from depradar.core.classifier import classify_status, pick_target, sort_results
from depradar.core.registry import RegistryClient
from depradar.core.checker import VersionChecker
from depradar.core.vulnerability import (
    AdvisorySource,
    NuGetSource,
    OSVSource,
    PackagistSource,
    VulnerabilityScanner,
    derive_severity,
)

__all__ = [
    "Bound",
    "RangeSet",
    "VersionRange",
    "parse_composer_constraint",
    "parse_npm_range",
    "parse_nuget_range",
    "ranges_from_osv_events",
    "normalize_specifier",
    "unsupported_reason",
    "classify_status",
    "pick_target",
    "sort_results",
    "RegistryClient",
    "VersionChecker",
    "AdvisorySource",
    "NuGetSource",
    "OSVSource",
    "PackagistSource",
    "VulnerabilityScanner",
    "derive_severity",
]
