"""
Custom exception hierarchy for depradar.

All exceptions inherit from :class:`DepRadarError` and carry optional
structured metadata via the ``details`` attribute.

Per-dependency failures (:class:`PackageNotFoundError`,
:class:`RegistryError`, :class:`RangeParseError`) are caught by the
orchestrators and the dependency is dropped.  Batch-level failures
(:class:`ManifestParseError`, :class:`EmptyBatchError`) propagate to the
caller.
"""

from __future__ import annotations

from typing import Any, Mapping, MutableMapping, Optional


class DepRadarError(Exception):
    """Base exception for all depradar errors.

    Args:
        message: Human-readable error message.
        details: Optional structured metadata describing the error.
    """

    __slots__ = ("message", "details")

    def __init__(
        self,
        message: str,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.message: str = message
        self.details: MutableMapping[str, Any] = dict(details) if details else {}
        super().__init__(message)

    def __str__(self) -> str:
        if not self.details:
            return self.message
        formatted = ", ".join(f"{k}={v}" for k, v in self.details.items())
        return f"{self.message} ({formatted})"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, details={dict(self.details)!r})"
        )


def _add_if(details: MutableMapping[str, Any], key: str, value: Any) -> None:
    """Add a key to ``details`` only if ``value`` is not ``None``."""
    if value is not None:
        details[key] = value


def _truncate(text: str, max_length: int = 200) -> str:
    """Truncate long text for safe logging or error reporting."""
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


# ---------------------------------------------------------------------------
# Manifest and specifier errors
# ---------------------------------------------------------------------------


class ManifestParseError(DepRadarError):
    """Raised when a manifest cannot be parsed at all.

    Args:
        message: Error description.
        ecosystem: Ecosystem kind of the manifest.
        file_path: Path or name of the manifest, if known.
        line_number: Line where parsing failed, if known.
    """

    __slots__ = ("ecosystem", "file_path", "line_number")

    def __init__(
        self,
        message: str,
        *,
        ecosystem: Optional[str] = None,
        file_path: Optional[str] = None,
        line_number: Optional[int] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "ecosystem", ecosystem)
        _add_if(details, "file", file_path)
        _add_if(details, "line", line_number)

        super().__init__(message, details)

        self.ecosystem = ecosystem
        self.file_path = file_path
        self.line_number = line_number


class RangeParseError(DepRadarError):
    """Raised when a version range expression cannot be understood.

    Args:
        message: Error description.
        expression: The range text that failed to parse.
    """

    __slots__ = ("expression",)

    def __init__(self, message: str, *, expression: Optional[str] = None) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "range", expression)
        super().__init__(message, details)
        self.expression = expression


class UnknownEcosystemError(DepRadarError):
    """Raised when an ecosystem kind or manifest name is not recognised."""

    __slots__ = ("ecosystem",)

    def __init__(self, message: str, *, ecosystem: Optional[str] = None) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "ecosystem", ecosystem)
        super().__init__(message, details)
        self.ecosystem = ecosystem


# ---------------------------------------------------------------------------
# Network and registry errors
# ---------------------------------------------------------------------------


class NetworkError(DepRadarError):
    """Raised when HTTP or network operations fail.

    Args:
        message: Error description.
        url: URL being accessed.
        status_code: HTTP status code, if available.
        response_body: Raw response body, truncated for safety.
    """

    __slots__ = ("url", "status_code", "response_body")

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "url", url)
        _add_if(details, "status_code", status_code)

        if response_body is not None:
            details["response"] = _truncate(response_body)

        super().__init__(message, details)

        self.url = url
        self.status_code = status_code
        self.response_body = response_body


class RegistryError(NetworkError):
    """Raised when a package registry answers with an unusable response.

    Args:
        message: Error description.
        package_name: Name of the package involved.
        **kwargs: Additional arguments forwarded to ``NetworkError``.
    """

    __slots__ = ("package_name",)

    def __init__(
        self,
        message: str,
        *,
        package_name: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)

        self.package_name = package_name
        if package_name is not None:
            self.details["package"] = package_name


class PackageNotFoundError(RegistryError):
    """Raised when a registry reports that a package does not exist."""

    __slots__ = ()


class RateLimitedError(RegistryError):
    """Raised when a registry signals rate limiting (HTTP 429).

    Args:
        message: Error description.
        retry_after: Seconds suggested by the ``Retry-After`` header.
        **kwargs: Additional arguments forwarded to ``RegistryError``.
    """

    __slots__ = ("retry_after",)

    def __init__(
        self,
        message: str,
        *,
        retry_after: Optional[float] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.retry_after = retry_after
        _add_if(self.details, "retry_after", retry_after)


# ---------------------------------------------------------------------------
# Batch-level errors
# ---------------------------------------------------------------------------


class EmptyBatchError(DepRadarError):
    """Raised when no dependency in a batch could be processed.

    Args:
        message: Error description.
        ecosystem: Ecosystem kind of the batch.
        attempted: Number of dependencies that were attempted.
    """

    __slots__ = ("ecosystem", "attempted")

    def __init__(
        self,
        message: str = "No dependencies could be processed",
        *,
        ecosystem: Optional[str] = None,
        attempted: Optional[int] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "ecosystem", ecosystem)
        _add_if(details, "attempted", attempted)

        super().__init__(message, details)

        self.ecosystem = ecosystem
        self.attempted = attempted


class BatchTooLargeError(DepRadarError):
    """Raised when a batch exceeds the configured package limit."""

    __slots__ = ("size", "limit")

    def __init__(self, message: str, *, size: int, limit: int) -> None:
        super().__init__(message, {"size": size, "limit": limit})
        self.size = size
        self.limit = limit


# ---------------------------------------------------------------------------
# Configuration and filesystem errors
# ---------------------------------------------------------------------------


class ConfigError(DepRadarError):
    """Raised when a configuration file is missing, unreadable or invalid.

    Args:
        message: Error description.
        config_path: Path of the configuration file.
        option: Offending option name, if any.
    """

    __slots__ = ("config_path", "option")

    def __init__(
        self,
        message: str,
        *,
        config_path: Optional[str] = None,
        option: Optional[str] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "path", config_path)
        _add_if(details, "option", option)

        super().__init__(message, details)

        self.config_path = config_path
        self.option = option


class FileOperationError(DepRadarError):
    """Raised when file system operations fail.

    Args:
        message: Error description.
        file_path: Path to the file involved.
        operation: Operation being performed.
        original_error: Original exception that triggered this error.
    """

    __slots__ = ("file_path", "operation", "original_error")

    def __init__(
        self,
        message: str,
        *,
        file_path: Optional[str] = None,
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "path", file_path)
        _add_if(details, "operation", operation)
        _add_if(
            details,
            "original_error",
            str(original_error) if original_error else None,
        )

        super().__init__(message, details)

        self.file_path = file_path
        self.operation = operation
        self.original_error = original_error
