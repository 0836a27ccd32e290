"""Python (PyPI) ecosystem adapter.

Three manifest flavours are understood: pip requirement lists, Pipenv's
``Pipfile`` and ``pyproject.toml`` (PEP 621 and Poetry tables).  Version
ordering follows PEP 440 through :mod:`packaging`, falling back to the
generic comparator for strings PEP 440 rejects.
"""

from __future__ import annotations

import re
import tomli
from typing import Any, Dict, Iterable, Optional, Tuple

from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.version import InvalidVersion, Version

from depradar.core.registry import RegistryClient
from depradar.ecosystems.base import Ecosystem
from depradar.models import ParsedVersion, PublishedVersion, RegistryVersionSet
from depradar.utils.logger import get_logger
from depradar.utils import version_utils
from depradar.constants import PYPI_JSON_API, PYPI_TIMEOUT

logger = get_logger("ecosystems.python")

_REQUIREMENT_RE = re.compile(
    r"^(?P<name>[A-Za-z0-9][A-Za-z0-9._-]*)\s*(?:\[(?P<extras>[^\]]*)\])?\s*(?P<spec>.*)$"
)
_CLAUSE_RE = re.compile(r"^(===|==|~=|>=|<=|!=|>|<|\^|~)?\s*(.+)$")

# Clauses that name a version the project is known to work with.
_LOWER_BOUND_OPERATORS = ("===", "==", "~=", ">=", ">", "^", "~", "")


def _parse_version(version: str) -> Optional[Version]:
    try:
        return Version(version)
    except InvalidVersion:
        return None


# ---------------------------------------------------------------------------
# Requirement lists
# ---------------------------------------------------------------------------


def _logical_lines(content: str) -> Iterable[str]:
    """Yield lines with ``\\`` continuations joined and comments stripped."""
    pending = ""
    for raw in content.splitlines():
        line = raw.rstrip()
        if line.endswith("\\"):
            pending += line[:-1] + " "
            continue
        line = pending + line
        pending = ""
        yield re.sub(r"(^|\s)#.*$", "", line).strip()
    if pending:
        yield pending.strip()


def parse_requirement_line(line: str) -> Optional[Tuple[str, str]]:
    """Parse one requirement line into ``(name, raw specifier)``.

    Option lines, URLs and direct references return ``None``, as do
    lines whose specifier :class:`~packaging.specifiers.SpecifierSet`
    rejects.

    Example:
        >>> parse_requirement_line("requests[socks]>=2.25,<3 ; python_version>'3.7'")
        ('requests', '>=2.25,<3')
    """
    text = " ".join(t for t in line.split() if not t.startswith("--hash"))
    if not text or text.startswith("-") or "://" in text or " @ " in text:
        return None

    text = text.split(";", 1)[0].strip()
    match = _REQUIREMENT_RE.match(text)
    if not match:
        return None

    spec = match.group("spec").strip()
    if spec.startswith("(") and spec.endswith(")"):
        spec = spec[1:-1].strip()
    if spec.startswith("@"):
        return None

    try:
        SpecifierSet(spec)
    except InvalidSpecifier:
        logger.debug("Ignoring invalid requirement %r", line)
        return None
    return match.group("name"), spec


def parse_requirements(content: str) -> Dict[str, str]:
    dependencies: Dict[str, str] = {}
    for line in _logical_lines(content):
        parsed = parse_requirement_line(line)
        if parsed:
            dependencies[parsed[0]] = parsed[1]
    return dependencies


# ---------------------------------------------------------------------------
# TOML manifests
# ---------------------------------------------------------------------------


def _load_toml(content: str) -> Dict[str, Any]:
    try:
        return tomli.loads(content)
    except tomli.TOMLDecodeError as exc:
        logger.debug("Ignoring invalid TOML manifest: %s", exc)
        return {}


def _table_dependencies(table: Any) -> Dict[str, str]:
    """Read a ``name = "spec"`` / ``name = {version = "spec"}`` table."""
    dependencies: Dict[str, str] = {}
    if not isinstance(table, dict):
        return dependencies
    for name, value in table.items():
        if name.lower() == "python":
            continue
        if isinstance(value, str):
            dependencies[name] = value
        elif isinstance(value, dict) and isinstance(value.get("version"), str):
            dependencies[name] = value["version"]
    return dependencies


def parse_pipfile(content: str) -> Dict[str, str]:
    data = _load_toml(content)
    dependencies = _table_dependencies(data.get("packages"))
    dependencies.update(_table_dependencies(data.get("dev-packages")))
    return dependencies


def parse_pyproject(content: str) -> Dict[str, str]:
    """Collect PEP 621 and Poetry dependencies from ``pyproject.toml``."""
    data = _load_toml(content)
    dependencies: Dict[str, str] = {}

    project = data.get("project") if isinstance(data.get("project"), dict) else {}
    requirement_lists = [project.get("dependencies")]
    optional = project.get("optional-dependencies")
    if isinstance(optional, dict):
        requirement_lists.extend(optional.values())
    for requirements in requirement_lists:
        if not isinstance(requirements, list):
            continue
        for requirement in requirements:
            parsed = parse_requirement_line(str(requirement))
            if parsed:
                dependencies[parsed[0]] = parsed[1]

    tool = data.get("tool") if isinstance(data.get("tool"), dict) else {}
    poetry = tool.get("poetry") if isinstance(tool.get("poetry"), dict) else {}
    dependencies.update(_table_dependencies(poetry.get("dependencies")))
    dependencies.update(_table_dependencies(poetry.get("dev-dependencies")))
    groups = poetry.get("group")
    if isinstance(groups, dict):
        for group in groups.values():
            if isinstance(group, dict):
                dependencies.update(_table_dependencies(group.get("dependencies")))
    return dependencies


def _looks_like_toml(content: str) -> Optional[str]:
    if re.search(r"^\[(packages|dev-packages)\]", content, re.MULTILINE):
        return "Pipfile"
    if re.search(r"^\[(project|tool\.poetry)", content, re.MULTILINE):
        return "pyproject.toml"
    return None


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------


class PythonEcosystem(Ecosystem):
    """Requirement files, Pipfiles and pyproject manifests resolved against PyPI."""

    name = "python"
    display_name = "Python"
    aliases = ("pypi", "pip", "py")
    manifest_patterns = ("requirements*.txt", "requirements*.in", "Pipfile", "pyproject.toml")
    osv_ecosystem = "PyPI"
    timeout = PYPI_TIMEOUT

    def parse_manifest(
        self,
        content: str,
        filename: Optional[str] = None,
    ) -> Dict[str, str]:
        """Dispatch on the filename, or sniff the content when there is none."""
        base = (filename or "").replace("\\", "/").rsplit("/", 1)[-1]
        flavour = base if base in ("Pipfile", "pyproject.toml") else None
        if not base:
            flavour = _looks_like_toml(content)

        if flavour == "Pipfile":
            return parse_pipfile(content)
        if flavour == "pyproject.toml":
            return parse_pyproject(content)
        return parse_requirements(content)

    def normalize_specifier(self, specifier: str) -> Optional[ParsedVersion]:
        """Reduce a PEP 440 specifier set to its lower-bound version.

        ``>=2.0,<3`` and ``<3,>=2.0`` both become ``2.0``; a set with only
        upper bounds or exclusions has no usable version.
        """
        clauses = [c.strip() for c in specifier.split(",") if c.strip()]
        if not clauses:
            return None

        chosen = None
        for clause in clauses:
            match = _CLAUSE_RE.match(clause)
            if match and (match.group(1) or "") in _LOWER_BOUND_OPERATORS:
                chosen = match
                break
        if chosen is None:
            return None

        operator = chosen.group(1) or ""
        cleaned = version_utils.strip_version_prefix(chosen.group(2).strip())
        if cleaned.endswith(".*"):
            cleaned = cleaned[:-2] + ".0"
        if not version_utils.has_numeric_prefix(cleaned):
            return None

        return ParsedVersion(
            original=specifier,
            cleaned=cleaned,
            is_range=operator not in ("==", "===") or len(clauses) > 1,
            range_operator=operator,
        )

    def compare_versions(self, a: str, b: str) -> int:
        left, right = _parse_version(a), _parse_version(b)
        if left is None or right is None:
            return version_utils.compare_versions(a, b)
        return (left > right) - (left < right)

    def major_version(self, version: str) -> int:
        parsed = _parse_version(version)
        return parsed.major if parsed is not None else version_utils.major_version(version)

    def is_prerelease(self, version: str) -> bool:
        parsed = _parse_version(version)
        if parsed is None:
            return version_utils.is_prerelease(version)
        return parsed.is_prerelease

    async def fetch_versions(
        self,
        name: str,
        registry: RegistryClient,
    ) -> RegistryVersionSet:
        """Read the PyPI JSON document for ``name``.

        A release counts as yanked only when every one of its files is.
        """
        data = await registry.get_json(PYPI_JSON_API.format(package=name), timeout=self.timeout)
        info = data.get("info") if isinstance(data.get("info"), dict) else {}
        releases = data.get("releases") if isinstance(data.get("releases"), dict) else {}

        versions = []
        for version, files in releases.items():
            files = files if isinstance(files, list) else []
            yanked = bool(files) and all(
                isinstance(f, dict) and f.get("yanked", False) for f in files
            )
            upload_times = [
                f["upload_time_iso_8601"]
                for f in files
                if isinstance(f, dict) and f.get("upload_time_iso_8601")
            ]
            versions.append(
                PublishedVersion(
                    version=version,
                    prerelease=self.is_prerelease(version),
                    yanked=yanked,
                    published_at=max(upload_times) if upload_times else None,
                )
            )

        latest_tag = info.get("version")
        license_info = info.get("license") or None
        published = [v.published_at for v in versions if v.published_at]

        return RegistryVersionSet(
            name=name,
            versions=versions,
            latest_tag=latest_tag if isinstance(latest_tag, str) else None,
            license=license_info if isinstance(license_info, str) else None,
            last_update=max(published) if published else None,
        )
