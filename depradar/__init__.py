"""
depradar: dependency freshness and advisory radar for many ecosystems.

depradar reads a dependency manifest (``package.json``, ``go.mod``,
``requirements.txt``/``Pipfile``/``pyproject.toml``, ``composer.json``,
``Cargo.toml``, ``*.csproj``, ``pom.xml``), asks each ecosystem's public
registry for the newest published versions, and reports every direct
dependency as ``current``, ``outdated`` or ``major``.  The same extracted
versions can be checked against public vulnerability advisories.

Example:
    >>> import asyncio
    >>> from depradar import VersionChecker
    >>> results = asyncio.run(
    ...     VersionChecker().check_manifest(text, "npm", filename="package.json")
    ... )
"""

from __future__ import annotations

from depradar.__version__ import __version__

# ---------------------------------------------------------------------------
# Package Metadata
# ---------------------------------------------------------------------------

__author__ = "depradar Contributors"
__license__ = "Apache-2.0"
__description__ = "Multi-ecosystem dependency version checker and advisory matcher."

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

from depradar.core.checker import VersionChecker
from depradar.core.vulnerability import VulnerabilityScanner
from depradar.ecosystems import get_ecosystem, detect_ecosystem

__all__ = [
    "__version__",
    "VersionChecker",
    "VulnerabilityScanner",
    "get_ecosystem",
    "detect_ecosystem",
]
