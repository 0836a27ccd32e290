"""Configuration file loader for depradar.

Handles discovery, loading, parsing, and validation of configuration files.
Supports two formats:

- ``depradar.toml`` with settings under a ``[depradar]`` table
- ``pyproject.toml`` with settings under a ``[tool.depradar]`` table

Discovery order:

1. Explicit path from ``--config`` or ``DEPRADAR_CONFIG``
2. ``depradar.toml`` in current directory
3. ``pyproject.toml`` with ``[tool.depradar]`` section

Typical usage::

    config = load_config()  # Auto-discover
    config = load_config(Path("custom.toml"))  # Explicit path

Example (``depradar.toml``)::

    [depradar]
    timeout = 20
    max_retries = 3
    cache_ttl = 300
    max_audit_packages = 100

    [depradar.concurrency]
    npm = 4
    osv = 8
"""

from __future__ import annotations

import tomli as tomllib
from pathlib import Path
from typing import Any, Dict, Optional
from dataclasses import dataclass, field

from depradar.exceptions import ConfigError
from depradar.utils.logger import get_logger
from depradar.constants import (
    ADVISORY_CONCURRENCY,
    DEFAULT_CACHE_TTL,
    DEFAULT_CONCURRENCY,
    DEFAULT_MAX_AUDIT_PACKAGES,
    DEFAULT_MAX_RETRIES,
    DEFAULT_TIMEOUT,
)

logger = get_logger("config")

_CONCURRENCY_KEYS = frozenset(DEFAULT_CONCURRENCY) | frozenset(ADVISORY_CONCURRENCY)


@dataclass
class DepRadarConfig:
    """Parsed and validated depradar configuration.

    All fields have defaults, so empty config files are valid.

    Attributes:
        timeout: Default registry timeout in seconds.
        max_retries: Retries after the first attempt on transport failure.
        cache_ttl: Lifetime of cached index documents in seconds.
        max_audit_packages: Largest dependency batch ``audit`` accepts.
        concurrency: Overrides of in-flight lookups, keyed by ecosystem
            (``npm``, ``python`` …) or advisory source (``osv`` …).
        source_path: Path to loaded config file, or ``None`` if using defaults.
    """

    timeout: float = DEFAULT_TIMEOUT
    max_retries: int = DEFAULT_MAX_RETRIES
    cache_ttl: float = DEFAULT_CACHE_TTL
    max_audit_packages: int = DEFAULT_MAX_AUDIT_PACKAGES
    concurrency: Dict[str, int] = field(default_factory=dict)

    # Metadata (not a user-facing option)
    source_path: Optional[Path] = field(default=None, repr=False)

    def to_log_dict(self) -> Dict[str, Any]:
        """Return configuration as dictionary for debug logging."""
        return {
            "timeout": self.timeout,
            "max_retries": self.max_retries,
            "cache_ttl": self.cache_ttl,
            "max_audit_packages": self.max_audit_packages,
            "concurrency": dict(self.concurrency),
        }


def discover_config_file(explicit_path: Optional[Path] = None) -> Optional[Path]:
    """Find the configuration file to load.

    Args:
        explicit_path: Explicit config path. If provided, must exist.

    Returns:
        Resolved path to config file, or ``None`` if not found.

    Raises:
        ConfigError: Explicit path provided but does not exist.
    """
    if explicit_path is not None:
        resolved = explicit_path.resolve()
        if not resolved.is_file():
            raise ConfigError(
                f"Configuration file not found: {explicit_path}",
                config_path=str(explicit_path),
            )
        logger.debug("Using explicit config: %s", resolved)
        return resolved

    cwd = Path.cwd()

    depradar_toml = cwd / "depradar.toml"
    if depradar_toml.is_file():
        logger.debug("Found depradar.toml: %s", depradar_toml)
        return depradar_toml

    pyproject_toml = cwd / "pyproject.toml"
    if pyproject_toml.is_file() and _pyproject_has_depradar_section(pyproject_toml):
        logger.debug("Found [tool.depradar] in pyproject.toml: %s", pyproject_toml)
        return pyproject_toml

    logger.debug("No configuration file found")
    return None


def _pyproject_has_depradar_section(path: Path) -> bool:
    """Return True if ``pyproject.toml`` has a ``[tool.depradar]`` table.

    An unreadable or invalid ``pyproject.toml`` simply does not count.
    """
    try:
        raw = _read_toml(path)
    except ConfigError:
        return False
    tool = raw.get("tool")
    return isinstance(tool, dict) and "depradar" in tool


def load_config(config_path: Optional[Path] = None) -> DepRadarConfig:
    """Load and validate depradar configuration.

    Args:
        config_path: Explicit path to config file. If ``None``, uses
            auto-discovery (see :func:`discover_config_file`).

    Returns:
        Validated :class:`DepRadarConfig` with values from file or defaults.

    Raises:
        ConfigError: File cannot be parsed, has unknown keys, or invalid values.
    """
    resolved = discover_config_file(config_path)

    if resolved is None:
        logger.debug("No config file found, using defaults")
        return DepRadarConfig()

    logger.info("Loading configuration from %s", resolved)
    raw = _read_toml(resolved)

    if resolved.name == "pyproject.toml":
        section = raw.get("tool", {}).get("depradar", {})
    else:
        section = raw.get("depradar", {})

    if not section:
        logger.debug("Config file found but no depradar section, using defaults")
        return DepRadarConfig(source_path=resolved)

    if not isinstance(section, dict):
        raise ConfigError(
            "The depradar configuration must be a table",
            config_path=str(resolved),
        )

    config = _parse_section(section, config_path=str(resolved))
    config.source_path = resolved

    logger.debug("Loaded configuration: %s", config.to_log_dict())
    return config


def _read_toml(path: Path) -> Dict[str, Any]:
    """Read and parse a TOML file.

    Raises:
        ConfigError: File cannot be read or is not valid TOML.
    """
    try:
        with open(path, "rb") as fh:
            return tomllib.load(fh)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(
            f"Invalid TOML in {path.name}: {exc}",
            config_path=str(path),
        ) from exc
    except OSError as exc:
        raise ConfigError(
            f"Cannot read configuration file {path}: {exc}",
            config_path=str(path),
        ) from exc


def _positive_number(section: Dict[str, Any], key: str, *, config_path: str) -> float:
    val = section[key]
    if isinstance(val, bool) or not isinstance(val, (int, float)) or val <= 0:
        raise ConfigError(
            f"{key} must be a positive number, got {val!r}",
            config_path=config_path,
            option=key,
        )
    return val


def _non_negative_int(section: Dict[str, Any], key: str, *, config_path: str) -> int:
    val = section[key]
    if isinstance(val, bool) or not isinstance(val, int) or val < 0:
        raise ConfigError(
            f"{key} must be a non-negative integer, got {val!r}",
            config_path=config_path,
            option=key,
        )
    return val


def _parse_section(
    section: Dict[str, Any],
    *,
    config_path: str,
) -> DepRadarConfig:
    """Parse and validate the ``[depradar]`` or ``[tool.depradar]`` table.

    Rejects unknown keys and type mismatches.

    Raises:
        ConfigError: Unknown keys or incorrect types.
    """
    config = DepRadarConfig()

    known_top = {"timeout", "max_retries", "cache_ttl", "max_audit_packages", "concurrency"}
    unknown_top = set(section.keys()) - known_top
    if unknown_top:
        raise ConfigError(
            f"Unknown configuration keys: {', '.join(sorted(unknown_top))}",
            config_path=config_path,
        )

    if "timeout" in section:
        config.timeout = _positive_number(section, "timeout", config_path=config_path)
    if "cache_ttl" in section:
        config.cache_ttl = _positive_number(section, "cache_ttl", config_path=config_path)
    if "max_retries" in section:
        config.max_retries = _non_negative_int(section, "max_retries", config_path=config_path)
    if "max_audit_packages" in section:
        limit = _non_negative_int(section, "max_audit_packages", config_path=config_path)
        if limit == 0:
            raise ConfigError(
                "max_audit_packages must be at least 1",
                config_path=config_path,
                option="max_audit_packages",
            )
        config.max_audit_packages = limit

    if "concurrency" in section:
        table = section["concurrency"]
        if not isinstance(table, dict):
            raise ConfigError(
                f"concurrency must be a table, got {type(table).__name__}",
                config_path=config_path,
                option="concurrency",
            )
        unknown = set(table) - _CONCURRENCY_KEYS
        if unknown:
            raise ConfigError(
                f"Unknown concurrency keys: {', '.join(sorted(unknown))}",
                config_path=config_path,
                option="concurrency",
            )
        for key, val in table.items():
            if isinstance(val, bool) or not isinstance(val, int) or val < 1:
                raise ConfigError(
                    f"concurrency.{key} must be a positive integer, got {val!r}",
                    config_path=config_path,
                    option=f"concurrency.{key}",
                )
            config.concurrency[key] = val

    return config
