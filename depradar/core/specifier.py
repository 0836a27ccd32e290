"""
Version specifier filtering and normalization.

Two steps stand between a raw manifest specifier and a comparable
version:

1. :func:`unsupported_reason` decides whether the specifier can be
   resolved from a registry at all (local paths, git URLs, wildcards and
   dist tags cannot).
2. :func:`normalize_specifier` strips range operators and noise and
   returns a :class:`~depradar.models.ParsedVersion`, or ``None`` when
   what is left does not start with a number.

Both are total functions: unsupported input is reported by return value,
never by exception.  Adapters layer ecosystem rules on top.
"""

from __future__ import annotations

import re
from typing import Optional

from depradar.models import ParsedVersion
from depradar.utils.version_utils import (
    coerce_version,
    has_numeric_prefix,
    strip_version_prefix,
)
from depradar.constants import (
    DIST_TAGS,
    MAX_SPECIFIER_LENGTH,
    NON_REGISTRY_PREFIXES,
)

#: Operator characters stripped from the front of a specifier.
DEFAULT_OPERATORS = "^~><=*!"

_CLAUSE_SPLIT_RE = re.compile(r"\s*(?:\|\|?|,|\s)\s*")
_RANGE_MARKERS = (",", "||", " - ", "|")


def unsupported_reason(
    specifier: str,
    *,
    max_length: int = MAX_SPECIFIER_LENGTH,
) -> Optional[str]:
    """Explain why ``specifier`` cannot be resolved from a registry.

    Args:
        specifier: Raw specifier from a manifest.
        max_length: Longest specifier accepted.

    Returns:
        A short reason, or ``None`` when the specifier looks resolvable.

    Example:
        >>> unsupported_reason("git+https://github.com/a/b.git")
        'non-registry source'
        >>> unsupported_reason("^1.2.0") is None
        True
    """
    spec = specifier.strip()
    if not spec:
        return "empty specifier"
    if len(spec) > max_length:
        return "specifier too long"

    lowered = spec.lower()
    if lowered.startswith(tuple(NON_REGISTRY_PREFIXES)) or "://" in lowered:
        return "non-registry source"
    if lowered in DIST_TAGS:
        return "distribution tag"
    if lowered in ("*", "x"):
        return "wildcard"
    return None


def normalize_specifier(
    specifier: str,
    *,
    operators: str = DEFAULT_OPERATORS,
    coerce: bool = False,
) -> Optional[ParsedVersion]:
    """Reduce a specifier to a bare comparable version.

    Strips the leading operator run, drops a ``v`` prefix and build
    metadata, keeps the first clause of a compound range, and turns a
    trailing ``.*`` into ``.0``.  With ``coerce`` the first ``x[.y[.z]]``
    found anywhere is used and padded to three parts.

    Args:
        specifier: Raw specifier (``"^1.2.0"``, ``">=2.0,<3"``, ``"v1.4.0"``).
        operators: Characters that may form the leading operator run.
        coerce: Coerce to ``x.y.z`` instead of keeping the literal text.

    Returns:
        The parsed version, or ``None`` if no numeric prefix remains.

    Example:
        >>> normalize_specifier("^1.2.0")
        ParsedVersion(original='^1.2.0', cleaned='1.2.0', is_range=True, range_operator='^')
        >>> normalize_specifier("1.*").cleaned
        '1.0'
    """
    text = specifier.strip()
    if not text:
        return None

    match = re.match(rf"^[{re.escape(operators)}\s]+", text)
    operator = re.sub(r"\s+", "", match.group(0)) if match else ""
    rest = text[match.end():] if match else text

    if coerce:
        cleaned = coerce_version(rest)
        if cleaned is None:
            return None
    else:
        first_clause = _CLAUSE_SPLIT_RE.split(rest.strip(), maxsplit=1)[0]
        cleaned = strip_version_prefix(first_clause)
        if cleaned.endswith(".*"):
            cleaned = cleaned[:-2] + ".0"

    if not has_numeric_prefix(cleaned):
        return None

    is_range = bool(operator) or any(marker in text for marker in _RANGE_MARKERS)
    return ParsedVersion(
        original=specifier,
        cleaned=cleaned,
        is_range=is_range,
        range_operator=operator,
    )
