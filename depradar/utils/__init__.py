"""
Utility helpers for depradar.

This package provides reusable utilities used across depradar, including:

- Console output helpers (Rich-based)
- Logging configuration and retrieval
- Filesystem safety helpers
- Async HTTP client and TTL cache
- Version comparison helpers

Only symbols listed in ``__all__`` are considered part of the public API.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Filesystem utilities
# ---------------------------------------------------------------------------

from depradar.utils.filesystem import find_manifest_files, safe_read_file

# ---------------------------------------------------------------------------
# Logging utilities
# ---------------------------------------------------------------------------

from depradar.utils.logger import (
    disable_logging,
    get_logger,
    is_logging_configured,
    setup_logging,
)

# ---------------------------------------------------------------------------
# Console utilities
# ---------------------------------------------------------------------------

from depradar.utils.console import (
    colorize_severity,
    colorize_status,
    get_raw_console,
    print_error,
    print_success,
    print_table,
    print_warning,
    reconfigure_console,
)

# ---------------------------------------------------------------------------
# HTTP and caching
# ---------------------------------------------------------------------------

from depradar.utils.http import HTTPClient
from depradar.utils.cache import TTLCache

# ---------------------------------------------------------------------------
# Version utilities
# ---------------------------------------------------------------------------

from depradar.utils.version_utils import compare_versions, get_update_type

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

__all__ = [
    # Console
    "print_error",
    "print_table",
    "print_success",
    "print_warning",
    "get_raw_console",
    "reconfigure_console",
    "colorize_status",
    "colorize_severity",
    # Logging
    "get_logger",
    "setup_logging",
    "disable_logging",
    "is_logging_configured",
    # Filesystem
    "safe_read_file",
    "find_manifest_files",
    # HTTP / cache
    "HTTPClient",
    "TTLCache",
    # Version utilities
    "compare_versions",
    "get_update_type",
]
