"""
Centralized constants for depradar.

This module defines immutable configuration values used across depradar,
including registry endpoints, network settings, per-ecosystem concurrency
limits, specifier filters, and logging formats. All values are intended
to be treated as read-only.
"""

from typing import Final, Mapping, Sequence

# ---------------------------------------------------------------------------
# Project metadata
# ---------------------------------------------------------------------------

#: HTTP User-Agent template used for outbound requests.
USER_AGENT_TEMPLATE: Final[str] = "depradar/{version} (+https://pypi.org/project/depradar/)"

# ---------------------------------------------------------------------------
# Registry endpoints
# ---------------------------------------------------------------------------

#: npm registry packument.
NPM_REGISTRY_API: Final[str] = "https://registry.npmjs.org/{package}"

#: Go module proxy version list (plain text, one version per line).
GO_PROXY_LIST: Final[str] = "https://proxy.golang.org/{module}/@v/list"

#: pkg.go.dev metadata endpoint.
GO_PKG_API: Final[str] = "https://api.pkg.go.dev/v1/{module}"

#: PyPI JSON API.
PYPI_JSON_API: Final[str] = "https://pypi.org/pypi/{package}/json"

#: Packagist package metadata.
PACKAGIST_API: Final[str] = "https://packagist.org/packages/{package}.json"

#: Packagist security advisories.
PACKAGIST_ADVISORIES_API: Final[str] = "https://packagist.org/api/security-advisories/"

#: crates.io crate metadata.
CRATES_API: Final[str] = "https://crates.io/api/v1/crates/{package}"

#: NuGet v3 service index.
NUGET_SERVICE_INDEX: Final[str] = "https://api.nuget.org/v3/index.json"

#: NuGet registration resource type preferred for SemVer 2.0 packages.
NUGET_REGISTRATION_TYPE: Final[str] = "RegistrationsBaseUrl/3.6.0"

#: NuGet vulnerability resource type.
NUGET_VULNERABILITY_TYPE: Final[str] = "VulnerabilityInfo/6.7.0"

#: Maven Central search API.
MAVEN_SEARCH_API: Final[str] = "https://search.maven.org/solrsearch/select"

#: OSV.dev query API.
OSV_QUERY_API: Final[str] = "https://api.osv.dev/v1/query"

# ---------------------------------------------------------------------------
# HTTP configuration
# ---------------------------------------------------------------------------

#: Default network timeout in seconds.
DEFAULT_TIMEOUT: Final[int] = 30

#: Maximum number of retries after the first attempt on transport failure.
DEFAULT_MAX_RETRIES: Final[int] = 2

#: Timeout used for PyPI lookups.
PYPI_TIMEOUT: Final[int] = 8

#: TTL in seconds for in-process registry caches.
DEFAULT_CACHE_TTL: Final[int] = 600

#: Maximum number of packages accepted by a single audit.
DEFAULT_MAX_AUDIT_PACKAGES: Final[int] = 50

# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------

#: Number of in-flight registry lookups per ecosystem.
DEFAULT_CONCURRENCY: Final[Mapping[str, int]] = {
    "npm": 2,
    "go": 2,
    "python": 8,
    "php": 2,
    "rust": 2,
    "dotnet": 4,
    "maven": 2,
}

#: Number of in-flight advisory lookups per advisory source.
ADVISORY_CONCURRENCY: Final[Mapping[str, int]] = {
    "osv": 5,
    "packagist": 3,
    "nuget": 4,
}

# ---------------------------------------------------------------------------
# Specifier filtering
# ---------------------------------------------------------------------------

#: Default ceiling for a raw specifier length.
MAX_SPECIFIER_LENGTH: Final[int] = 50

#: Ceiling for Go module paths and versions.
MAX_GO_SPECIFIER_LENGTH: Final[int] = 100

#: Specifier prefixes that point outside a registry.
NON_REGISTRY_PREFIXES: Final[Sequence[str]] = (
    "git+",
    "git:",
    "git@",
    "github:",
    "gitlab:",
    "bitbucket:",
    "http:",
    "https:",
    "file:",
    "link:",
    "workspace:",
    "portal:",
    "npm:",
    "./",
    "../",
    "~/",
    "/",
)

#: Distribution tags that name a channel rather than a version.
DIST_TAGS: Final[Sequence[str]] = (
    "latest",
    "next",
    "beta",
    "alpha",
    "canary",
    "rc",
    "stable",
    "dev",
)

# ---------------------------------------------------------------------------
# Version ordering
# ---------------------------------------------------------------------------

#: Rank of prerelease tags; unknown tags rank after all of these.
PRERELEASE_TAG_ORDER: Final[Mapping[str, int]] = {
    "dev": 0,
    "alpha": 1,
    "a": 1,
    "beta": 2,
    "b": 2,
    "rc": 3,
    "pre": 3,
}

#: Rank assigned to unrecognized tags.
UNKNOWN_TAG_RANK: Final[int] = 4

# ---------------------------------------------------------------------------
# Security constraints
# ---------------------------------------------------------------------------

#: Maximum allowed file size (in bytes) when reading manifests.
MAX_FILE_SIZE: Final[int] = 10 * 1024 * 1024  # 10 MB

# ---------------------------------------------------------------------------
# Logging configuration
# ---------------------------------------------------------------------------

#: Timestamp format for verbose logging.
LOG_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

#: Default log format (non-verbose).
LOG_DEFAULT_FORMAT: Final[str] = "%(levelname)s: %(message)s"

#: Verbose log format including timestamp and logger name.
LOG_VERBOSE_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
