"""
Ecosystem adapters for depradar.

Every supported packaging ecosystem is an :class:`Ecosystem` subclass
registered in :data:`ECOSYSTEMS`.  Lookups accept the canonical kind or
any alias, case-insensitively.

Example:
    >>> get_ecosystem("pypi").name
    'python'
    >>> detect_ecosystem("frontend/package.json").name
    'npm'
"""

from __future__ import annotations

from typing import Dict, List, Optional, Type

from depradar.ecosystems.base import Ecosystem
from depradar.ecosystems.dotnet import DotnetEcosystem
from depradar.ecosystems.golang import GoEcosystem
from depradar.ecosystems.maven import MavenEcosystem
from depradar.ecosystems.npm import NpmEcosystem
from depradar.ecosystems.php import PhpEcosystem
from depradar.ecosystems.python import PythonEcosystem
from depradar.ecosystems.rust import RustEcosystem
from depradar.exceptions import UnknownEcosystemError

ECOSYSTEMS: Dict[str, Type[Ecosystem]] = {
    cls.name: cls
    for cls in (
        NpmEcosystem,
        GoEcosystem,
        PythonEcosystem,
        PhpEcosystem,
        RustEcosystem,
        DotnetEcosystem,
        MavenEcosystem,
    )
}

_ALIASES: Dict[str, str] = {
    alias: cls.name for cls in ECOSYSTEMS.values() for alias in (cls.name, *cls.aliases)
}


def available_ecosystems() -> List[str]:
    """Canonical kinds of every registered ecosystem."""
    return list(ECOSYSTEMS)


def get_ecosystem(kind: str) -> Ecosystem:
    """Instantiate the adapter for an ecosystem kind or alias.

    Raises:
        UnknownEcosystemError: ``kind`` names no registered ecosystem.
    """
    canonical = _ALIASES.get(kind.strip().lower())
    if canonical is None:
        raise UnknownEcosystemError(
            f"Unknown ecosystem '{kind}' (expected one of: {', '.join(available_ecosystems())})",
            ecosystem=kind,
        )
    return ECOSYSTEMS[canonical]()


def detect_ecosystem(filename: str) -> Optional[Ecosystem]:
    """Guess the adapter from a manifest filename, or ``None``."""
    for cls in ECOSYSTEMS.values():
        adapter = cls()
        if adapter.matches_manifest(filename):
            return adapter
    return None


__all__ = [
    "ECOSYSTEMS",
    "Ecosystem",
    "available_ecosystems",
    "detect_ecosystem",
    "get_ecosystem",
    "DotnetEcosystem",
    "GoEcosystem",
    "MavenEcosystem",
    "NpmEcosystem",
    "PhpEcosystem",
    "PythonEcosystem",
    "RustEcosystem",
]
